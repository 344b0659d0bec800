"""Durable job records backed by SQLAlchemy.

Every update bumps ``revision`` inside the same UPDATE statement, so readers
can order snapshots and drop ones they have already seen.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from slidegen.models import SlideJob
from slidegen.schemas import TERMINAL_STATUSES


def utcnow() -> datetime:
    return datetime.utcnow()


def to_unix(value: datetime) -> int:
    # Stored datetimes are naive UTC.
    return int((value - datetime(1970, 1, 1)).total_seconds())


@dataclass(frozen=True)
class JobRecord:
    id: str
    status: str
    message: str
    created_at: datetime
    updated_at: datetime
    revision: int = 0
    expires_at: datetime | None = None
    result_url: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def to_update(self) -> JobUpdate:
        return JobUpdate(
            id=self.id,
            status=self.status,
            message=self.message,
            result_url=self.result_url if self.status == "completed" else None,
            updated_at=self.updated_at,
            revision=self.revision,
        )

    @classmethod
    def from_row(cls, row: SlideJob) -> JobRecord:
        return cls(
            id=row.id,
            status=row.status,
            message=row.message,
            created_at=row.created_at,
            updated_at=row.updated_at,
            revision=row.revision,
            expires_at=row.expires_at,
            result_url=row.result_url,
        )


@dataclass(frozen=True)
class JobUpdate:
    id: str
    status: str
    message: str
    updated_at: datetime
    revision: int
    result_url: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_payload(self) -> dict:
        payload = {
            "id": self.id,
            "status": self.status,
            "message": self.message,
            "updatedAt": to_unix(self.updated_at),
        }
        if self.result_url:
            payload["resultUrl"] = self.result_url
        return payload


class JobStore:
    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def _session(self) -> Session:
        return self._session_factory()

    def now(self) -> datetime:
        return self._clock()

    def create(self, job_id: str, *, message: str = "Job added to queue") -> JobRecord:
        now = self._clock()
        row = SlideJob(id=job_id, status="queued", message=message, revision=1, created_at=now, updated_at=now)
        with self._session() as db:
            db.add(row)
            db.commit()
        return JobRecord(id=job_id, status="queued", message=message, created_at=now, updated_at=now, revision=1)

    def update(self, job_id: str, **fields) -> JobRecord | None:
        """Apply ``fields`` to a non-terminal job. Returns None when nothing was written."""
        values = {key: value for key, value in fields.items() if key in _UPDATABLE_FIELDS}
        values.setdefault("updated_at", self._clock())
        with self._session() as db:
            result = db.execute(
                update(SlideJob)
                .where(SlideJob.id == job_id, SlideJob.status.not_in(TERMINAL_STATUSES))
                .values(revision=SlideJob.revision + 1, **values)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            if result.rowcount == 0:
                return None
            row = db.get(SlideJob, job_id, populate_existing=True)
            return JobRecord.from_row(row) if row else None

    def get(self, job_id: str) -> JobRecord | None:
        with self._session() as db:
            row = db.get(SlideJob, job_id)
            return JobRecord.from_row(row) if row else None

    def delete(self, job_id: str) -> bool:
        with self._session() as db:
            result = db.execute(delete(SlideJob).where(SlideJob.id == job_id))
            db.commit()
            return result.rowcount > 0

    def count_active(self, *, since: datetime | None = None) -> int:
        stmt = select(func.count()).select_from(SlideJob).where(SlideJob.status.in_(("queued", "processing")))
        if since is not None:
            stmt = stmt.where(SlideJob.updated_at >= since)
        with self._session() as db:
            return int(db.scalar(stmt) or 0)

    def purge_expired(self, now: datetime | None = None) -> int:
        cutoff = now or self._clock()
        with self._session() as db:
            result = db.execute(
                delete(SlideJob).where(SlideJob.expires_at.is_not(None), SlideJob.expires_at < cutoff)
            )
            db.commit()
            return result.rowcount or 0

    def watch(
        self,
        job_id: str,
        *,
        interval: float = 0.5,
        stop: threading.Event | None = None,
        after_revision: int = 0,
    ) -> Iterator[JobRecord]:
        """Poll the record and yield each new revision.

        Ends after a terminal snapshot, when the record disappears, or when
        ``stop`` is set.
        """
        stop = stop or threading.Event()
        last_revision = after_revision
        while not stop.is_set():
            record = self.get(job_id)
            if record is None:
                return
            if record.revision > last_revision:
                last_revision = record.revision
                yield record
            if record.is_terminal:
                return
            if stop.wait(interval):
                return


_UPDATABLE_FIELDS = {"status", "message", "result_url", "updated_at", "expires_at"}

