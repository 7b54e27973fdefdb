"""In-memory registry of assignment sessions served over HTTP."""

from __future__ import annotations

import threading
import time
import uuid
from typing import Callable, Optional, TypeVar

from ..session import AssignmentSession

T = TypeVar("T")


class _Entry:
    def __init__(self, session: AssignmentSession, owner_id: str):
        self.session = session
        self.owner_id = owner_id
        self.lock = threading.Lock()
        self.touched = time.monotonic()


class SessionStore:
    """Sessions keyed by id, each with its own lock.

    `apply` runs a mutation under the session's lock so that two
    requests against the same session never interleave. Idle sessions
    expire after `ttl_seconds`; beyond `max_sessions` the least recently
    used ones are dropped.
    """

    def __init__(self, max_sessions: int = 1000, ttl_seconds: int = 12 * 3600):
        self._sessions: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._max_sessions = max_sessions
        self._ttl_seconds = ttl_seconds

    def create(self, session: AssignmentSession, owner_id: str) -> str:
        self._cleanup()
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = _Entry(session, owner_id)
            if len(self._sessions) > self._max_sessions:
                # evict least recently used first
                oldest = sorted(self._sessions.items(), key=lambda kv: kv[1].touched)
                for old_id, _ in oldest[: len(self._sessions) - self._max_sessions]:
                    self._sessions.pop(old_id, None)
        return session_id

    def owner_of(self, session_id: str) -> Optional[str]:
        with self._lock:
            entry = self._sessions.get(session_id)
            return entry.owner_id if entry else None

    def apply(self, session_id: str, fn: Callable[[AssignmentSession], T]) -> T:
        """Run `fn(session)` under the session lock. Raises KeyError if unknown."""
        self._cleanup()
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                raise KeyError(session_id)
            entry.touched = time.monotonic()
        with entry.lock:
            return fn(entry.session)

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _cleanup(self) -> None:
        cutoff = time.monotonic() - self._ttl_seconds
        with self._lock:
            expired = [sid for sid, entry in self._sessions.items() if entry.touched < cutoff]
            for sid in expired:
                self._sessions.pop(sid, None)
