"""
WeChat official account platform client.

All calls go through a single shared `httpx.AsyncClient` with a fixed
timeout. Every failure mode (transport error, timeout, non-200 status,
undecodable or malformed body, or a non-zero `errcode` in the body) is
raised as `UpstreamUnavailable`; there is no retry here, callers decide.
"""

import urllib.parse
from json import JSONDecodeError
from typing import Any

import httpx
from pydantic import ValidationError
from structlog.typing import FilteringBoundLogger

from scanlogin.config.settings import Settings
from scanlogin.core.credential import Credential

from .platform import (
    Platform,
    QRCodeTicket,
    Subscriber,
    UpstreamToken,
    UpstreamUnavailable,
)


def create_client(settings: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.upstream_timeout.total_seconds())


async def wechat_api_call(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    params: dict[str, str] | None = None,
    json: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Make a call to the WeChat API and return the decoded JSON body.

    Raises
    ------
    UpstreamUnavailable
        On any transport, status or platform-reported error.
    """

    try:
        response = await client.request(method, url, params=params, json=json)
    except httpx.TimeoutException:
        raise UpstreamUnavailable(f"Timed out contacting {url}")
    except httpx.HTTPError as e:
        raise UpstreamUnavailable(f"Error contacting {url}: {e}")

    if response.status_code != 200:
        raise UpstreamUnavailable(
            f"WeChat API {url} returned status {response.status_code}"
        )

    try:
        content = response.json()
    except JSONDecodeError:
        raise UpstreamUnavailable(f"WeChat API {url} returned a non-JSON body")

    if not isinstance(content, dict):
        raise UpstreamUnavailable(f"WeChat API {url} returned an unexpected body")

    errcode = content.get("errcode", 0)

    if errcode:
        raise UpstreamUnavailable(
            f"WeChat API error {errcode}: {content.get('errmsg', '')}"
        )

    return content


class WechatPlatform(Platform):
    """
    Platform implementation for WeChat service accounts: global access tokens,
    temporary string-scene QR codes and subscriber lookups.
    """

    name = "wechat"

    settings: Settings
    client: httpx.AsyncClient

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self.client = client if client is not None else create_client(settings)

    def endpoint(self, path: str) -> str:
        return f"{self.settings.wechat_api_base.rstrip('/')}/{path.lstrip('/')}"

    async def fetch_credential(self, log: FilteringBoundLogger) -> UpstreamToken:
        content = await wechat_api_call(
            client=self.client,
            method="GET",
            url=self.endpoint("/cgi-bin/token"),
            params={
                "grant_type": "client_credential",
                "appid": self.settings.wechat_app_id,
                "secret": self.settings.wechat_app_secret,
            },
        )

        try:
            token = UpstreamToken(
                access_token=content["access_token"],
                expires_in=content["expires_in"],
            )
        except KeyError as e:
            raise UpstreamUnavailable(f"Access token response missing {e}")
        except ValidationError as e:
            raise UpstreamUnavailable(f"Malformed access token response: {e}")

        await log.ainfo("wechat.credential.fetched", expires_in=token.expires_in)

        return token

    async def create_qrcode(
        self,
        scene: str,
        expire_seconds: int,
        credential: Credential,
        log: FilteringBoundLogger,
    ) -> QRCodeTicket:
        content = await wechat_api_call(
            client=self.client,
            method="POST",
            url=self.endpoint("/cgi-bin/qrcode/create"),
            params={"access_token": credential.value},
            json={
                "expire_seconds": expire_seconds,
                "action_name": "QR_STR_SCENE",
                "action_info": {"scene": {"scene_str": scene}},
            },
        )

        if not content.get("ticket"):
            raise UpstreamUnavailable("QR code response missing ticket")

        try:
            ticket = QRCodeTicket(
                ticket=content["ticket"],
                expire_seconds=content.get("expire_seconds", expire_seconds),
                url=content.get("url"),
            )
        except ValidationError as e:
            raise UpstreamUnavailable(f"Malformed QR code response: {e}")

        await log.ainfo("wechat.qrcode.created", expire_seconds=ticket.expire_seconds)

        return ticket

    async def subscriber_info(
        self, openid: str, credential: Credential, log: FilteringBoundLogger
    ) -> Subscriber:
        content = await wechat_api_call(
            client=self.client,
            method="GET",
            url=self.endpoint("/cgi-bin/user/info"),
            params={
                "access_token": credential.value,
                "openid": openid,
                "lang": "zh_CN",
            },
        )

        try:
            subscriber = Subscriber(
                openid=content.get("openid") or openid,
                subscribed=content.get("subscribe", 0) == 1,
                nickname=content.get("nickname") or None,
                remark=content.get("remark") or None,
            )
        except ValidationError as e:
            raise UpstreamUnavailable(f"Malformed subscriber response: {e}")

        await log.ainfo("wechat.subscriber.read", subscribed=subscriber.subscribed)

        return subscriber

    def qrcode_image_url(self, ticket: str) -> str:
        query = urllib.parse.urlencode({"ticket": ticket})
        return f"{self.settings.wechat_qrcode_base}?{query}"

    async def close(self):
        await self.client.aclose()
