"""
In-memory login session store, the single source of truth for login
progress.
"""

import threading
from datetime import datetime, timedelta, timezone

from scanlogin.core.session import LoginSession, SessionStatus


class SessionNotFound(Exception):
    pass


class DuplicateScene(Exception):
    pass


class SessionStateError(Exception):
    pass


class SessionStore:
    """
    Maps scene tokens to `LoginSession` records.

    Every operation takes the store lock for in-memory work only, so it is
    safe to call from request handlers, worker threads and the eviction
    sweep at the same time. Records are immutable; transitions swap in a new
    record, so `get` never returns a partially updated session.
    """

    def __init__(self):
        self._sessions: dict[str, LoginSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, scene: str) -> bool:
        with self._lock:
            return scene in self._sessions

    def create(
        self,
        scene: str,
        ttl: timedelta,
        qrcode_url: str | None = None,
        now: datetime | None = None,
    ) -> LoginSession:
        """
        Insert a new pending session.

        Raises
        ------
        DuplicateScene
            If the scene is already in use; existing records are never
            overwritten.
        """
        now = now or datetime.now(timezone.utc)

        session = LoginSession(
            scene=scene,
            qrcode_url=qrcode_url,
            created_at=now,
            expires_at=now + ttl,
        )

        with self._lock:
            if scene in self._sessions:
                raise DuplicateScene(f"Scene {scene} already exists")

            self._sessions[scene] = session

        return session

    def get(self, scene: str) -> LoginSession:
        with self._lock:
            session = self._sessions.get(scene)

        if session is None:
            raise SessionNotFound(f"Scene {scene} not found")

        return session

    def complete(
        self, scene: str, subject: str, label: str | None = None
    ) -> LoginSession:
        """
        Transition a session from pending to completed. Completing an already
        completed session is a no-op that returns the existing record: the
        first writer wins and duplicate notifications are harmless.

        Raises
        ------
        SessionNotFound
            If the scene is unknown (never created, or already evicted).
        """
        if not subject:
            raise ValueError("A completed session requires a subject")

        with self._lock:
            session = self._sessions.get(scene)

            if session is None:
                raise SessionNotFound(f"Scene {scene} not found")

            match session.status:
                case SessionStatus.COMPLETED:
                    return session
                case SessionStatus.PENDING:
                    session = session.model_copy(
                        update={
                            "status": SessionStatus.COMPLETED,
                            "subject": subject,
                            "display_label": label,
                        }
                    )
                    self._sessions[scene] = session
                    return session
                case _:
                    raise SessionStateError(
                        f"Scene {scene} has unknown status {session.status!r}"
                    )

    def take(self, scene: str) -> LoginSession:
        """
        Read a session, removing it if it has completed. Pending sessions are
        left in place.
        """
        with self._lock:
            session = self._sessions.get(scene)

            if session is None:
                raise SessionNotFound(f"Scene {scene} not found")

            if session.completed:
                del self._sessions[scene]

        return session

    def evict_expired(self, now: datetime, grace: timedelta) -> int:
        """
        Remove every session whose `expires_at + grace` is before `now`.
        Returns the number of sessions removed.
        """
        with self._lock:
            expired = [
                scene
                for scene, session in self._sessions.items()
                if session.expires_at + grace < now
            ]

            for scene in expired:
                del self._sessions[scene]

        return len(expired)
