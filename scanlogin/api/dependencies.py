"""
Dependencies used by the API.
"""

from functools import lru_cache
from typing import Annotated

import httpx
from fastapi import Depends, HTTPException, Request, status
from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from scanlogin.config.settings import Settings
from scanlogin.core.tokens import (
    LoginTokenExpired,
    LoginTokenInvalid,
    decode_login_token,
)
from scanlogin.service.credentials import CredentialCache
from scanlogin.service.platform import Platform
from scanlogin.service.sessions import SessionStore


@lru_cache
def SETTINGS():
    return Settings()


def logger():
    return get_logger()


# The components below are owned by the application instance (see
# `scanlogin.api.app.create_app`) rather than by this module, so that each
# app, including those built in tests, has its own store and cache.


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_credentials(request: Request) -> CredentialCache:
    return request.app.state.credentials


def get_platform(request: Request) -> Platform:
    return request.app.state.platform


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client



async def get_login_claims(request: Request) -> dict:
    """
    Decode the login token presented as `Authorization: Bearer <token>`.
    Raises a 401 if it is missing, malformed or expired, and a 503 if this
    server does not sign login tokens.
    """
    settings: Settings = request.app.state.settings
    log = logger()

    if not settings.login_token_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Login tokens are not enabled",
        )

    contents = request.headers.get("Authorization", "").split(" ")

    if len(contents) != 2 or contents[0] != "Bearer":
        await log.adebug("api.auth.no_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Login token required"
        )

    try:
        return decode_login_token(
            token=contents[1],
            secret=settings.login_token_secret,
            issuer=settings.login_token_issuer,
        )
    except LoginTokenExpired:
        await log.adebug("api.auth.expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Login token expired"
        )
    except LoginTokenInvalid:
        await log.adebug("api.auth.no_decode")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Login token invalid"
        )


SettingsDependency = Annotated[Settings, Depends(get_settings)]
LoggerDependency = Annotated[FilteringBoundLogger, Depends(logger)]
StoreDependency = Annotated[SessionStore, Depends(get_store)]
CredentialsDependency = Annotated[CredentialCache, Depends(get_credentials)]
PlatformDependency = Annotated[Platform, Depends(get_platform)]
HTTPClientDependency = Annotated[httpx.AsyncClient, Depends(get_http_client)]
LoginClaimsDependency = Annotated[dict, Depends(get_login_claims)]
