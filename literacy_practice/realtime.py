"""In-process publish/subscribe channel for "new content" notifications."""

from __future__ import annotations

import logging
import queue
import threading
import uuid
from typing import Optional

logger = logging.getLogger("literacy.realtime")


class Subscription:
    def __init__(self, channel: "ContentChannel", max_queue: int):
        self.id = uuid.uuid4().hex
        self._channel = channel
        self._queue: queue.Queue = queue.Queue(maxsize=max_queue)
        self.closed = False

    def deliver(self, event: dict) -> bool:
        try:
            self._queue.put_nowait(event)
            return True
        except queue.Full:
            logger.warning("dropping event for slow subscriber %s", self.id)
            return False

    def get(self, timeout: Optional[float] = None) -> Optional[dict]:
        """Return the next event, or None if none arrives within `timeout`."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self._channel.unsubscribe(self)


class ContentChannel:
    """Fan-out of row-insert events to every live subscriber."""

    def __init__(self, max_queue: int = 100):
        self._subs: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        self._max_queue = max_queue

    def subscribe(self) -> Subscription:
        sub = Subscription(self, self._max_queue)
        with self._lock:
            self._subs[sub.id] = sub
        logger.info("realtime subscriber %s joined (%d active)", sub.id, self.subscriber_count)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            removed = self._subs.pop(sub.id, None)
        sub.closed = True
        if removed is not None:
            logger.info("realtime subscriber %s left", sub.id)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subs)

    def publish(self, event: dict) -> int:
        """Deliver `event` to all subscribers and return the delivered count."""
        with self._lock:
            subs = list(self._subs.values())
        delivered = 0
        for sub in subs:
            if sub.deliver(event):
                delivered += 1
        return delivered


content_channel = ContentChannel()
