"""In-process fan-out of job updates to stream subscribers.

Each subscriber owns a bounded queue. Publishing never blocks: when a
subscriber's queue is full the update is dropped for that subscriber only.
"""

from __future__ import annotations

import logging
import threading
from queue import Empty, Full, Queue

from slidegen.services.job_store import JobUpdate

logger = logging.getLogger("slidegen.stream")


class Subscription:
    def __init__(self, job_id: str, maxsize: int):
        self.job_id = job_id
        self._queue: Queue[JobUpdate] = Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = threading.Event()

    def offer(self, update: JobUpdate) -> bool:
        if self.closed.is_set():
            return False
        try:
            self._queue.put_nowait(update)
        except Full:
            self.dropped += 1
            logger.debug("subscriber_full job=%s revision=%d dropped=%d", self.job_id, update.revision, self.dropped)
            return False
        return True

    def get(self, timeout: float) -> JobUpdate | None:
        try:
            return self._queue.get(True, timeout)
        except Empty:
            return None

    def close(self) -> None:
        self.closed.set()


class JobBroadcaster:
    def __init__(self, buffer_size: int = 10):
        self.buffer_size = buffer_size
        self._subscribers: dict[str, set[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, job_id: str) -> Subscription:
        subscription = Subscription(job_id, self.buffer_size)
        with self._lock:
            self._subscribers.setdefault(job_id, set()).add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()
        with self._lock:
            subscribers = self._subscribers.get(subscription.job_id)
            if subscribers is None:
                return
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscribers[subscription.job_id]

    def publish(self, update: JobUpdate) -> int:
        """Offer ``update`` to every subscriber of its job; returns how many accepted it."""
        with self._lock:
            targets = list(self._subscribers.get(update.id, ()))
        return sum(1 for subscription in targets if subscription.offer(update))

    def subscriber_count(self, job_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(job_id, ()))
