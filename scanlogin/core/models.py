"""
Pydantic models for request/responses to APIs.
"""

from datetime import datetime

from pydantic import BaseModel

from .session import SessionStatus


class NewSessionResponse(BaseModel):
    scene: str
    qrcode_url: str
    ticket: str
    expires_at: datetime


class PollResponse(BaseModel):
    status: SessionStatus
    subject: str | None = None
    display_label: str | None = None
    access_token: str | None = None
    access_token_expires: datetime | None = None


class OAuthUserResponse(BaseModel):
    openid: str
    nickname: str | None = None
    unionid: str | None = None
    headimgurl: str | None = None
    message: str


class HealthResponse(BaseModel):
    ok: bool
    sessions: int


class LoginIdentityResponse(BaseModel):
    subject: str
    scene: str
    display_label: str | None = None
    expires: datetime
