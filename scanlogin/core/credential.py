"""
The upstream access credential held by the credential cache.
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict


class Credential(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    expires_at: datetime

    def valid(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return bool(self.value) and now < self.expires_at


def from_grant(
    value: str, expires_in: int, safety_margin: timedelta, now: datetime | None = None
) -> Credential:
    """
    Build a credential from an upstream grant, bringing the expiry forward by
    `safety_margin` so that we never present a token on the edge of expiry.
    """
    now = now or datetime.now(timezone.utc)

    return Credential(
        value=value, expires_at=now + timedelta(seconds=expires_in) - safety_margin
    )
