"""
Process-wide cache for the upstream platform access credential.

The platform hands out one global access token per application and rate
limits how often it can be requested, so every component that talks to the
platform shares a single `CredentialCache`. Reads are lock-free while the
credential is valid. Refreshes are serialized so that at most one upstream
refresh call is in flight at any time.
"""

import asyncio
import enum
from datetime import timedelta

from structlog.typing import FilteringBoundLogger

from scanlogin.core.credential import Credential, from_grant

from .platform import Platform, UpstreamUnavailable


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class CredentialCache:
    """
    Lazily populated, self-refreshing holder for the platform credential.
    The cache belongs to the event loop that first refreshes it.

    `get_credential` is the only entry point. It returns the cached
    credential while it is valid; otherwise it takes the refresh lock,
    checks again (another caller may have refreshed while we waited) and
    only then calls the platform. If that call fails the previous value is
    kept, the refreshing caller gets the error, and any caller that was
    queued behind that failed attempt gets the same error instead of
    issuing a refresh of its own.
    """

    platform: Platform
    safety_margin: timedelta
    state: RefreshState

    def __init__(self, platform: Platform, safety_margin: timedelta):
        self.platform = platform
        self.safety_margin = safety_margin
        self.state = RefreshState.IDLE

        self._credential: Credential | None = None
        self._lock = asyncio.Lock()
        self._finished = 0
        self._last_error: Exception | None = None

    @property
    def credential(self) -> Credential | None:
        return self._credential

    async def get_credential(self, log: FilteringBoundLogger) -> Credential:
        """
        Get a valid credential, refreshing it from the platform if required.

        Raises
        ------
        UpstreamUnavailable
            If a refresh was needed and the platform could not provide one.
        """
        credential = self._credential

        if credential is not None and credential.valid():
            return credential

        seen = self._finished

        async with self._lock:
            credential = self._credential

            if credential is not None and credential.valid():
                await log.adebug("credentials.refreshed_by_other_caller")
                return credential

            if seen != self._finished and self._last_error is not None:
                await log.ainfo("credentials.shared_refresh_failure")
                raise UpstreamUnavailable(str(self._last_error)) from self._last_error

            return await self._refresh(log=log)

    async def _refresh(self, log: FilteringBoundLogger) -> Credential:
        # Only ever called with the lock held.
        self.state = RefreshState.REFRESHING
        self._last_error = None
        log = log.bind(refresh=self._finished + 1)

        try:
            grant = await self.platform.fetch_credential(log=log)
        except Exception as e:
            # Queued callers share this failure. A cancelled attempt records
            # nothing, so the next caller in line refreshes.
            self._last_error = e
            await log.aerror("credentials.refresh_failed", error=str(e))
            raise
        finally:
            self.state = RefreshState.IDLE
            self._finished += 1

        credential = from_grant(
            value=grant.access_token,
            expires_in=grant.expires_in,
            safety_margin=self.safety_margin,
        )

        self._credential = credential
        self._last_error = None

        await log.ainfo("credentials.refreshed", expires_at=credential.expires_at)

        return credential
