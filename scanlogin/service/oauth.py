"""
Handlers for the open platform "website application" login flow.

Unlike the scan-to-subscribe flow, this one needs no webhook: the user scans
a code hosted by the platform, which redirects back to us with a `code`
that we exchange for a user-scoped token and then the user's profile.
"""

import urllib.parse

import httpx
from pydantic import BaseModel
from structlog.typing import FilteringBoundLogger

from scanlogin.config.settings import Settings

from .platform import UpstreamUnavailable
from .wechat import wechat_api_call


class OpenPlatformLoginError(Exception):
    pass


class OpenPlatformToken(BaseModel):
    access_token: str
    openid: str
    expires_in: int = 0
    refresh_token: str | None = None
    scope: str | None = None


class OpenPlatformUser(BaseModel):
    openid: str
    nickname: str | None = None
    headimgurl: str | None = None
    unionid: str | None = None


def redirect_url(state: str, settings: Settings) -> str:
    """
    Build the URL that shows the platform-hosted login QR code.
    """
    query = urllib.parse.urlencode(
        {
            "appid": settings.wechat_open_app_id,
            "redirect_uri": settings.wechat_open_callback_url,
            "response_type": "code",
            "scope": "snsapi_login",
            "state": state,
        }
    )

    base = settings.wechat_open_base.rstrip("/")

    return f"{base}/connect/qrconnect?{query}#wechat_redirect"


async def exchange_code(
    code: str,
    client: httpx.AsyncClient,
    settings: Settings,
    log: FilteringBoundLogger,
) -> OpenPlatformToken:
    try:
        content = await wechat_api_call(
            client=client,
            method="GET",
            url=f"{settings.wechat_api_base.rstrip('/')}/sns/oauth2/access_token",
            params={
                "appid": settings.wechat_open_app_id,
                "secret": settings.wechat_open_app_secret,
                "code": code,
                "grant_type": "authorization_code",
            },
        )
        token = OpenPlatformToken.model_validate(content)
    except UpstreamUnavailable as e:
        await log.aerror("oauth.code_exchange_failed", error=str(e))
        raise OpenPlatformLoginError("Could not exchange code") from e
    except ValueError as e:
        await log.aerror("oauth.code_exchange_malformed", error=str(e))
        raise OpenPlatformLoginError("Malformed code exchange response") from e

    await log.ainfo("oauth.code_exchange_success", openid=token.openid)

    return token


async def user_info(
    token: OpenPlatformToken,
    client: httpx.AsyncClient,
    settings: Settings,
    log: FilteringBoundLogger,
) -> OpenPlatformUser:
    try:
        content = await wechat_api_call(
            client=client,
            method="GET",
            url=f"{settings.wechat_api_base.rstrip('/')}/sns/userinfo",
            params={
                "access_token": token.access_token,
                "openid": token.openid,
                "lang": "zh_CN",
            },
        )
        user = OpenPlatformUser.model_validate(content)
    except UpstreamUnavailable as e:
        await log.aerror("oauth.user_info_failed", error=str(e))
        raise OpenPlatformLoginError("Could not read user info") from e
    except ValueError as e:
        await log.aerror("oauth.user_info_malformed", error=str(e))
        raise OpenPlatformLoginError("Malformed user info response") from e

    return user


async def login(
    code: str,
    client: httpx.AsyncClient,
    settings: Settings,
    log: FilteringBoundLogger,
) -> OpenPlatformUser:
    """
    Perform the login _after_ receiving the code from the platform redirect.

    Raises
    ------
    OpenPlatformLoginError
        If we can't reach the platform, or it rejects the code.
    """
    token = await exchange_code(code=code, client=client, settings=settings, log=log)
    user = await user_info(token=token, client=client, settings=settings, log=log)

    log = log.bind(openid=user.openid, unionid=user.unionid)
    await log.ainfo("oauth.login.success")

    return user
