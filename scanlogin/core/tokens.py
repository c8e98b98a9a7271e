"""
Tools for encoding and decoding the login tokens handed to browsers once a
scan-to-login session completes.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from .session import LoginSession

ALGORITHM = "HS256"


class LoginTokenInvalid(Exception):
    pass


class LoginTokenExpired(Exception):
    pass


def build_payload(
    session: LoginSession, validity: timedelta, issuer: str | None
) -> dict[str, Any]:
    if not session.completed:
        raise ValueError(f"Session {session.scene} is not complete")

    current_time = datetime.now(timezone.utc)

    payload = {
        "sub": session.subject,
        "scene": session.scene,
        "iat": current_time,
        "nbf": current_time,
        "exp": current_time + validity,
    }

    if session.display_label:
        payload["label"] = session.display_label

    if issuer is not None:
        payload["iss"] = issuer

    return payload


def sign_payload(payload: dict[str, Any], secret: str) -> str:
    return jwt.encode(payload=payload, key=secret, algorithm=ALGORITHM)


def issue_login_token(
    session: LoginSession, secret: str, validity: timedelta, issuer: str | None = None
) -> tuple[str, datetime]:
    """
    Sign a login token for a completed session.

    Returns
    -------
    token
        The encoded JWT.
    expires
        When the token stops being valid.
    """
    payload = build_payload(session=session, validity=validity, issuer=issuer)

    return sign_payload(payload=payload, secret=secret), payload["exp"]


def decode_login_token(
    token: str | bytes, secret: str, issuer: str | None = None
) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            jwt=token,
            key=secret,
            algorithms=[ALGORITHM],
            issuer=issuer,
        )
    except jwt.ExpiredSignatureError:
        raise LoginTokenExpired("Login token has expired")
    except jwt.InvalidTokenError:
        raise LoginTokenInvalid("Unable to decode login token")

    return payload
