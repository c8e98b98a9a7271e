"""
Website application login - redirection to the platform QR page and handling
of the callback.
"""

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from scanlogin.core.models import OAuthUserResponse
from scanlogin.core.random import oauth_state
from scanlogin.service import oauth as oauth_service

from .dependencies import HTTPClientDependency, LoggerDependency, SettingsDependency

STATE_COOKIE_NAME = "wechat_login_state"
STATE_COOKIE_MAX_AGE = 300

oauth_app = APIRouter(prefix="/oauth", tags=["Website Login"])


def _require_configuration(settings) -> None:
    if not settings.open_platform_configured:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Website login is not configured",
        )


@oauth_app.get(
    "/login",
    response_class=RedirectResponse,
    summary="Redirect user to the platform login QR page",
    responses={
        302: {"description": "Redirect to the platform"},
        503: {"description": "Website login is not configured"},
    },
)
async def login(
    request: Request,
    settings: SettingsDependency,
    log: LoggerDependency,
) -> RedirectResponse:
    _require_configuration(settings)

    state = oauth_state()
    redirect_url = oauth_service.redirect_url(state=state, settings=settings)

    response = RedirectResponse(redirect_url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=STATE_COOKIE_NAME,
        value=state,
        max_age=STATE_COOKIE_MAX_AGE,
        path="/",
        httponly=True,
        secure=request.url.scheme == "https",
    )

    await log.ainfo("api.oauth.login.redirect")

    return response


@oauth_app.get(
    "/callback",
    response_model=OAuthUserResponse,
    summary="Handle the platform login callback",
    description=(
        "Called via browser redirect by the platform after the user confirms "
        "the login on their phone. Exchanges `code` for the user's profile."
    ),
    responses={
        200: {"description": "Logged in"},
        400: {"description": "Missing parameters or state mismatch"},
        502: {"description": "The platform rejected the code"},
    },
)
async def callback(
    request: Request,
    settings: SettingsDependency,
    client: HTTPClientDependency,
    log: LoggerDependency,
    code: str | None = Query(None, description="Code to exchange for a token."),
    state: str | None = Query(None, description="State set by `/oauth/login`."),
) -> OAuthUserResponse:
    _require_configuration(settings)

    if not code or not state:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing code or state"
        )

    if request.cookies.get(STATE_COOKIE_NAME) != state:
        await log.awarning("api.oauth.callback.state_mismatch")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid state"
        )

    try:
        user = await oauth_service.login(
            code=code, client=client, settings=settings, log=log
        )
    except oauth_service.OpenPlatformLoginError as e:
        await log.aerror("api.oauth.callback.login_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Login with platform failed"
        )

    response = OAuthUserResponse(
        openid=user.openid,
        nickname=user.nickname,
        unionid=user.unionid,
        headimgurl=user.headimgurl,
        message=f"hello_world, welcome {user.nickname or user.openid}",
    )

    await log.ainfo("api.oauth.callback.success", openid=user.openid)

    return response
