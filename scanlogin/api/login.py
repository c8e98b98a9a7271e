"""
Scan-to-login session endpoints: create a session, poll it, and check the
login token handed out on completion.
"""

from fastapi import APIRouter, HTTPException, Path, Query, status

from scanlogin.core.models import (
    LoginIdentityResponse,
    NewSessionResponse,
    PollResponse,
)
from scanlogin.service import login as login_service
from scanlogin.service import sessions as session_service
from scanlogin.service.platform import UpstreamUnavailable

from .dependencies import (
    CredentialsDependency,
    LoggerDependency,
    LoginClaimsDependency,
    PlatformDependency,
    SettingsDependency,
    StoreDependency,
)

login_app = APIRouter(tags=["Scan-to-login"])


@login_app.api_route(
    "/session/new",
    methods=["GET", "POST"],
    response_model=NewSessionResponse,
    summary="Start a new scan-to-login session",
    description=(
        "Creates a login session and a temporary QR code bound to it. Show the "
        "image at `qrcode_url` to the user and poll `/session/{scene}` until "
        "the status becomes `ok` or the session expires."
    ),
    responses={
        200: {"description": "Session created"},
        502: {"description": "The messaging platform could not be reached"},
    },
)
async def new(
    settings: SettingsDependency,
    store: StoreDependency,
    credentials: CredentialsDependency,
    platform: PlatformDependency,
    log: LoggerDependency,
) -> NewSessionResponse:
    try:
        return await login_service.new_session(
            store=store,
            credentials=credentials,
            platform=platform,
            settings=settings,
            log=log,
        )
    except UpstreamUnavailable as e:
        log = log.bind(error=str(e))
        await log.aerror("api.login.new.upstream_unavailable")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Unable to create a login QR code",
        )
    except session_service.DuplicateScene as e:
        log = log.bind(error=str(e))
        await log.aerror("api.login.new.duplicate_scene")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


async def _poll(
    scene: str,
    settings: SettingsDependency,
    store: StoreDependency,
    log: LoggerDependency,
) -> PollResponse:
    log = log.bind(scene=scene)

    try:
        return await login_service.poll_session(
            scene=scene, store=store, settings=settings, log=log
        )
    except session_service.SessionNotFound:
        await log.adebug("api.login.poll.not_found")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Session not found"
        )


@login_app.get(
    "/session/{scene}",
    response_model=PollResponse,
    response_model_exclude_none=True,
    summary="Poll a scan-to-login session",
    responses={
        200: {"description": "Current session status"},
        404: {"description": "Unknown or expired session"},
    },
)
async def poll(
    settings: SettingsDependency,
    store: StoreDependency,
    log: LoggerDependency,
    scene: str = Path(..., description="The scene returned by `/session/new`."),
) -> PollResponse:
    return await _poll(scene=scene, settings=settings, store=store, log=log)


@login_app.get(
    "/login/check",
    response_model=PollResponse,
    response_model_exclude_none=True,
    summary="Poll a scan-to-login session by query parameter",
    responses={
        200: {"description": "Current session status"},
        404: {"description": "Unknown or expired session"},
    },
)
async def check(
    settings: SettingsDependency,
    store: StoreDependency,
    log: LoggerDependency,
    scene_str: str = Query(..., description="The scene returned by `/session/new`."),
) -> PollResponse:
    return await _poll(scene=scene_str, settings=settings, store=store, log=log)


@login_app.get(
    "/login/me",
    response_model=LoginIdentityResponse,
    response_model_exclude_none=True,
    summary="Check a login token",
    description=(
        "Returns the identity carried by the login token handed out when a "
        "poll observed a completed session. Send it as a Bearer token."
    ),
    responses={
        200: {"description": "Token valid"},
        401: {"description": "Token missing, invalid or expired"},
        503: {"description": "Login tokens are not enabled on this server"},
    },
)
async def me(claims: LoginClaimsDependency) -> LoginIdentityResponse:
    return LoginIdentityResponse(
        subject=claims["sub"],
        scene=claims["scene"],
        display_label=claims.get("label"),
        expires=claims["exp"],
    )
