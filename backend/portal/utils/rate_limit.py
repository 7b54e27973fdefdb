"""Throttle for repeated failed sign-in attempts."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class SignInThrottle:
    """Sliding window of failed attempts per key (client address + path).

    A successful sign-in clears the key, so only consecutive failures
    count toward the limit.
    """

    def __init__(self):
        self._failures = defaultdict(deque)
        self._lock = threading.Lock()

    def check(self, key: str, max_failures: int, window_seconds: int) -> tuple[bool, int]:
        """Return `(allowed, retry_after_seconds)` without recording anything."""
        now = time.monotonic()
        with self._lock:
            q = self._failures.get(key)
            if not q:
                return True, 0
            cutoff = now - window_seconds
            while q and q[0] < cutoff:
                q.popleft()
            if not q:
                del self._failures[key]
                return True, 0
            if len(q) >= max_failures:
                return False, max(1, int(window_seconds - (now - q[0])))
        return True, 0

    def record_failure(self, key: str) -> None:
        with self._lock:
            self._failures[key].append(time.monotonic())

    def reset(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
