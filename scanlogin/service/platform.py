"""
Base for messaging platforms.
"""

import abc
from typing import Literal

from pydantic import BaseModel
from structlog.typing import FilteringBoundLogger

from scanlogin.core.credential import Credential


class UpstreamUnavailable(Exception):
    pass


class UpstreamToken(BaseModel):
    access_token: str
    expires_in: int


class QRCodeTicket(BaseModel):
    ticket: str
    expire_seconds: int
    url: str | None = None


class Subscriber(BaseModel):
    openid: str
    subscribed: bool
    nickname: str | None = None
    remark: str | None = None

    @property
    def label(self) -> str | None:
        return self.remark or self.nickname or None


class Platform(abc.ABC):
    """
    The base class for the upstream messaging platform. Downstream must
    implement:

    - fetch_credential: request a fresh long-lived access credential.
    - create_qrcode: mint a short-lived scannable code bound to a scene.
    - subscriber_info: look up whether a subject currently follows us.
    - qrcode_image_url: turn a ticket into an image reference for browsers.

    All calls raise `UpstreamUnavailable` on transport errors, timeouts,
    non-2xx responses and platform-reported errors. None of them retry.
    """

    name: Literal["mock", "wechat"]

    @abc.abstractmethod
    async def fetch_credential(self, log: FilteringBoundLogger) -> UpstreamToken:
        raise NotImplementedError

    @abc.abstractmethod
    async def create_qrcode(
        self,
        scene: str,
        expire_seconds: int,
        credential: Credential,
        log: FilteringBoundLogger,
    ) -> QRCodeTicket:
        raise NotImplementedError

    @abc.abstractmethod
    async def subscriber_info(
        self, openid: str, credential: Credential, log: FilteringBoundLogger
    ) -> Subscriber:
        raise NotImplementedError

    @abc.abstractmethod
    def qrcode_image_url(self, ticket: str) -> str:
        raise NotImplementedError

    async def close(self):
        return
