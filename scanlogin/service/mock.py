"""
The mock Platform, used for testing.
"""

import asyncio

from structlog.typing import FilteringBoundLogger

from scanlogin.core.credential import Credential

from .platform import (
    Platform,
    QRCodeTicket,
    Subscriber,
    UpstreamToken,
    UpstreamUnavailable,
)


class MockPlatform(Platform):
    """
    An in-process platform that counts its calls. Subjects listed in
    `subscribers` are reported as following; everyone else is not.
    Setting `fail` makes every call raise `UpstreamUnavailable`.
    """

    name = "mock"

    def __init__(
        self,
        subscribers: dict[str, str | None] | None = None,
        expires_in: int = 7200,
        delay: float = 0.0,
    ):
        self.subscribers = subscribers if subscribers is not None else {}
        self.expires_in = expires_in
        self.delay = delay
        self.fail = False

        self.credential_calls = 0
        self.qrcode_calls = 0
        self.subscriber_calls = 0
        self.issued = 0

    async def _pause(self):
        # Always yield so concurrent callers actually interleave.
        await asyncio.sleep(self.delay)

    async def fetch_credential(self, log: FilteringBoundLogger) -> UpstreamToken:
        self.credential_calls += 1
        await self._pause()

        if self.fail:
            raise UpstreamUnavailable("Mock platform is down")

        self.issued += 1

        return UpstreamToken(
            access_token=f"mock-credential-{self.issued}", expires_in=self.expires_in
        )

    async def create_qrcode(
        self,
        scene: str,
        expire_seconds: int,
        credential: Credential,
        log: FilteringBoundLogger,
    ) -> QRCodeTicket:
        self.qrcode_calls += 1
        await self._pause()

        if self.fail:
            raise UpstreamUnavailable("Mock platform is down")

        return QRCodeTicket(
            ticket=f"ticket-{scene}",
            expire_seconds=expire_seconds,
            url=f"http://weixin.qq.com/q/{scene}",
        )

    async def subscriber_info(
        self, openid: str, credential: Credential, log: FilteringBoundLogger
    ) -> Subscriber:
        self.subscriber_calls += 1
        await self._pause()

        if self.fail:
            raise UpstreamUnavailable("Mock platform is down")

        if openid in self.subscribers:
            return Subscriber(
                openid=openid, subscribed=True, remark=self.subscribers[openid]
            )

        return Subscriber(openid=openid, subscribed=False)

    def qrcode_image_url(self, ticket: str) -> str:
        return f"https://mock.invalid/showqrcode?ticket={ticket}"
