"""Process-local registry of chat sessions."""

from __future__ import annotations

import threading

from concierge.protocol.types import Clock, Session, utc_now


class SessionRegistry:
    """Creates sessions on first contact and remembers the last signed-in user."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        # Never pruned; sessions live as long as the process.
        self._sessions: dict[str, Session] = {}

    def touch(self, session_id: str, user_id: str | None = None) -> Session:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(session_id=session_id, user_id=user_id, created_at=self._clock())
                self._sessions[session_id] = session
            elif user_id:
                session.user_id = user_id
            return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
