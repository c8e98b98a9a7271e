"""
Periodic eviction of expired login sessions.
"""

import asyncio
import contextlib
from datetime import datetime, timedelta, timezone

from structlog.typing import FilteringBoundLogger

from .sessions import SessionStore


class SessionSweeper:
    """
    Runs `SessionStore.evict_expired` every `interval` for as long as the
    application is up. Start it from the lifespan handler and stop it on the
    way out; `stop` cancels the task and waits for it to finish.
    """

    store: SessionStore
    interval: timedelta
    grace: timedelta

    def __init__(
        self,
        store: SessionStore,
        interval: timedelta,
        grace: timedelta,
        log: FilteringBoundLogger,
    ):
        self.store = store
        self.interval = interval
        self.grace = grace
        self.log = log.bind(
            sweep_interval=interval.total_seconds(), sweep_grace=grace.total_seconds()
        )
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)

        evicted = self.store.evict_expired(now=now, grace=self.grace)

        if evicted:
            await self.log.ainfo(
                "sweeper.evicted", evicted=evicted, remaining=len(self.store)
            )

        return evicted

    async def run(self):
        await self.log.ainfo("sweeper.started")

        while True:
            await asyncio.sleep(self.interval.total_seconds())

            try:
                await self.sweep_once()
            except Exception:
                await self.log.aexception("sweeper.failed")

    def start(self):
        if self.running:
            return

        self._task = asyncio.create_task(self.run(), name="session-sweeper")

    async def stop(self):
        if self._task is None:
            return

        self._task.cancel()

        with contextlib.suppress(asyncio.CancelledError):
            await self._task

        self._task = None
        await self.log.ainfo("sweeper.stopped")
