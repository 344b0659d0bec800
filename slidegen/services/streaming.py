"""Server-sent event streams of job status.

A stream subscribes to the in-process broadcaster before reading the first
snapshot, so a transition that lands between the two is still delivered.
When jobs run in another process, a watcher thread polls the job store and
feeds the same subscription. Only revisions newer than the last one emitted
reach the client.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import AsyncIterator, Callable

from slidegen.errors import JobNotFoundError
from slidegen.services.fanout import JobBroadcaster, Subscription
from slidegen.services.job_store import JobRecord, JobStore, JobUpdate

logger = logging.getLogger("slidegen.stream")

CLOSE_MESSAGE = "Stream closing normally"


@dataclass(frozen=True)
class StreamEvent:
    event: str
    data: dict | None = None

    def to_sse(self) -> dict:
        return {"event": self.event, "data": json.dumps(self.data) if self.data is not None else ""}


def _close_event(update: JobUpdate) -> StreamEvent:
    return StreamEvent("close", {"id": update.id, "status": update.status, "message": CLOSE_MESSAGE})


class JobStreamer:
    def __init__(
        self,
        lookup: Callable[[str], JobRecord | None],
        broadcaster: JobBroadcaster,
        job_store: JobStore | None = None,
        *,
        heartbeat_seconds: float = 30.0,
        poll_seconds: float = 0.5,
        remote_watch: bool = False,
    ):
        self.lookup = lookup
        self.broadcaster = broadcaster
        self.job_store = job_store
        self.heartbeat_seconds = heartbeat_seconds
        self.poll_seconds = poll_seconds
        self.remote_watch = remote_watch and job_store is not None

    def _watch(self, job_id: str, subscription: Subscription, stop: threading.Event, after_revision: int) -> None:
        try:
            for record in self.job_store.watch(
                job_id, interval=self.poll_seconds, stop=stop, after_revision=after_revision
            ):
                subscription.offer(record.to_update())
        except Exception:
            # The heartbeat re-check still reaches the store.
            logger.exception("stream_watch_failed job=%s", job_id)

    async def stream(self, job_id: str) -> AsyncIterator[StreamEvent]:
        """Yield ``update``, ``ping`` and ``close`` events until the job is terminal.

        Raises :class:`JobNotFoundError` before the first event when the job is
        unknown or expired.
        """
        subscription = self.broadcaster.subscribe(job_id)
        stop = threading.Event()
        try:
            record = await asyncio.to_thread(self.lookup, job_id)
            if record is None:
                raise JobNotFoundError(job_id)

            snapshot = record.to_update()
            logger.info("stream_open job=%s status=%s revision=%d", job_id, snapshot.status, snapshot.revision)
            yield StreamEvent("update", snapshot.to_payload())
            if snapshot.is_terminal:
                yield _close_event(snapshot)
                return

            last_revision = snapshot.revision
            if self.remote_watch:
                threading.Thread(
                    target=self._watch,
                    args=(job_id, subscription, stop, last_revision),
                    name=f"watch-{job_id[:8]}",
                    daemon=True,
                ).start()

            loop = asyncio.get_running_loop()
            last_output = loop.time()
            while True:
                update = await asyncio.to_thread(subscription.get, self.poll_seconds)
                if update is None:
                    if loop.time() - last_output < self.heartbeat_seconds:
                        continue
                    yield StreamEvent("ping")
                    last_output = loop.time()
                    record = await asyncio.to_thread(self.lookup, job_id)
                    if record is None:
                        logger.info("stream_job_gone job=%s", job_id)
                        return
                    update = record.to_update()

                if update.revision <= last_revision:
                    continue
                last_revision = update.revision
                last_output = loop.time()
                yield StreamEvent("update", update.to_payload())
                if update.is_terminal:
                    yield _close_event(update)
                    logger.info("stream_closed job=%s status=%s", job_id, update.status)
                    return
        finally:
            stop.set()
            self.broadcaster.unsubscribe(subscription)
