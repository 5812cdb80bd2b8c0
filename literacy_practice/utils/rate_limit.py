"""In-memory request throttling for the login and content-creation endpoints."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from typing import Optional


def client_key(host: Optional[str], path: str) -> str:
    """Bucket requests per client address and endpoint."""
    return f"{host or 'unknown'}:{path}"


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by `client_key`.

    State lives in the process, so limits apply per worker.
    """

    def __init__(self, clock=time.monotonic):
        self._hits: dict[str, deque] = defaultdict(deque)
        self._lock = threading.Lock()
        self._clock = clock

    def _prune(self, hits: deque, now: float, window_seconds: int) -> None:
        cutoff = now - window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key`; returns (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            hits = self._hits[key]
            self._prune(hits, now, window_seconds)
            if len(hits) >= max_requests:
                return False, max(1, int(window_seconds - (now - hits[0])))
            hits.append(now)
        return True, 0

    def reset(self, key: str) -> None:
        with self._lock:
            self._hits.pop(key, None)
