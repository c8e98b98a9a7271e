"""
Core login session model, shared between the store, the correlator and the
API layer.
"""

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SessionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "ok"


class LoginSession(BaseModel):
    """
    A single scan-to-login attempt. Instances are immutable; the session store
    replaces the record wholesale when it transitions, so a reader holding a
    reference always sees a consistent snapshot.
    """

    model_config = ConfigDict(frozen=True)

    scene: str
    qrcode_url: str | None = None
    status: SessionStatus = SessionStatus.PENDING
    subject: str = ""
    display_label: str | None = None
    created_at: datetime
    expires_at: datetime

    @property
    def completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED
