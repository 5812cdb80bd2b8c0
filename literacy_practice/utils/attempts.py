"""In-memory store of rendered practice attempts.

An attempt is one render of a question set: it owns a `PracticeSession`
plus the bookkeeping needed by activity tracking (who, which content, when
it started). Attempts expire after a TTL and the oldest are evicted once
the store is full; an expired attempt behaves like a page reload.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..grading import PracticeSession


@dataclass
class Attempt:
    attempt_id: str
    practice_content_id: int
    session: PracticeSession
    user_id: Optional[int] = None
    activity_id: Optional[int] = None
    is_sample: bool = False
    started_monotonic: float = field(default_factory=time.monotonic)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def elapsed_seconds(self) -> int:
        return max(0, int(time.monotonic() - self.started_monotonic))


class AttemptStore:
    def __init__(self, max_attempts: int = 2000, ttl_seconds: int = 6 * 3600):
        self._attempts: dict[str, Attempt] = {}
        self._lock = threading.Lock()
        self._max_attempts = max_attempts
        self._ttl_seconds = ttl_seconds

    def create(
        self,
        *,
        practice_content_id: int,
        session: PracticeSession,
        user_id: Optional[int] = None,
        is_sample: bool = False,
    ) -> Attempt:
        self._cleanup()
        attempt = Attempt(
            attempt_id=uuid.uuid4().hex,
            practice_content_id=practice_content_id,
            session=session,
            user_id=user_id,
            is_sample=is_sample,
        )
        with self._lock:
            self._attempts[attempt.attempt_id] = attempt
            overflow = len(self._attempts) - self._max_attempts
            if overflow > 0:
                oldest = sorted(self._attempts.values(), key=lambda a: a.started_monotonic)
                for old in oldest[:overflow]:
                    self._attempts.pop(old.attempt_id, None)
        return attempt

    def get(self, attempt_id: str) -> Optional[Attempt]:
        self._cleanup()
        with self._lock:
            return self._attempts.get(attempt_id)

    def discard(self, attempt_id: str) -> None:
        with self._lock:
            self._attempts.pop(attempt_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)

    def _cleanup(self) -> None:
        cutoff = time.monotonic() - self._ttl_seconds
        with self._lock:
            expired = [aid for aid, a in self._attempts.items() if a.started_monotonic < cutoff]
            for aid in expired:
                self._attempts.pop(aid, None)
