from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from slidegen.models import SlideResult
from slidegen.services.generator import ArtifactBundle
from slidegen.services.job_store import utcnow


def result_url_for(job_id: str) -> str:
    return f"/results/{job_id}"


@dataclass(frozen=True)
class ResultRecord:
    id: str
    result_url: str
    pdf: bytes
    html: bytes
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_row(cls, row: SlideResult) -> ResultRecord:
        return cls(
            id=row.id,
            result_url=row.result_url,
            pdf=row.pdf_data,
            html=row.html_data,
            created_at=row.created_at,
            expires_at=row.expires_at,
        )


class ResultStore:
    """Generated PDF/HTML artifacts keyed by job id.

    Results outlive their job records; ``get`` deletes a row once it is past
    ``expires_at`` and reports it as missing.
    """

    def __init__(self, session_factory: sessionmaker, clock: Callable[[], datetime] = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    def _session(self) -> Session:
        return self._session_factory()

    def put(self, job_id: str, bundle: ArtifactBundle, ttl_seconds: int) -> ResultRecord:
        now = self._clock()
        row = SlideResult(
            id=job_id,
            result_url=result_url_for(job_id),
            pdf_data=bundle.pdf,
            html_data=bundle.html,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        with self._session() as db:
            db.merge(row)
            db.commit()
        return ResultRecord.from_row(row)

    def get(self, job_id: str) -> ResultRecord | None:
        with self._session() as db:
            row = db.get(SlideResult, job_id)
            if row is None:
                return None
            if self._clock() > row.expires_at:
                db.delete(row)
                db.commit()
                return None
            return ResultRecord.from_row(row)

    def peek_url(self, job_id: str) -> str | None:
        with self._session() as db:
            return db.scalar(
                select(SlideResult.result_url).where(SlideResult.id == job_id, SlideResult.expires_at >= self._clock())
            )

    def delete(self, job_id: str) -> bool:
        with self._session() as db:
            result = db.execute(delete(SlideResult).where(SlideResult.id == job_id))
            db.commit()
            return result.rowcount > 0

    def purge_expired(self, now: datetime | None = None) -> int:
        cutoff = now or self._clock()
        with self._session() as db:
            result = db.execute(delete(SlideResult).where(SlideResult.expires_at < cutoff))
            db.commit()
            return result.rowcount or 0
