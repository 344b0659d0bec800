"""Job admission, scheduling and the per-job processing state machine.

A job moves queued -> processing -> completed | failed. The dispatcher is the
only writer of job records; every write it makes is also published to the
in-process broadcaster so open streams see it without polling.

Local mode runs jobs on a thread pool and bounds admission with a semaphore.
Remote mode stages the input files, hands a ``TaskPayload`` to a task queue,
and bounds admission by counting active jobs in the store.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import timedelta
from time import perf_counter
from uuid import uuid4

from slidegen.errors import InvalidSubmissionError, SchedulingError, SystemBusyError
from slidegen.schemas import VALID_AUDIENCES, VALID_SLIDE_DETAILS, VALID_THEMES, FileReference, SlideSettings, TaskPayload
from slidegen.services.fanout import JobBroadcaster
from slidegen.services.file_validation import UploadedFile, validate_upload
from slidegen.services.generator import SlideGenerator
from slidegen.services.job_store import JobRecord, JobStore
from slidegen.services.result_store import ResultRecord, ResultStore, result_url_for
from slidegen.services.task_queue import TaskEnqueuer
from slidegen.storage import BlobStore, make_staging_key

logger = logging.getLogger("slidegen.jobs")

BUSY_MESSAGE = "System is busy, please try again later"


def _job_log(job_id: str, event: str, **fields) -> None:
    try:
        details = " ".join(
            f"{key}={json.dumps(value, ensure_ascii=False, default=str)}"
            for key, value in fields.items()
            if value is not None
        )
        if details:
            logger.info("job=%s %s | %s", job_id, event, details)
        else:
            logger.info("job=%s %s", job_id, event)
    except Exception:
        # Logging must never break job processing.
        logger.info("job=%s %s | log_error=true", job_id, event)


class StoreProgressSink:
    """Writes generator progress messages onto the job record."""

    def __init__(self, dispatcher: JobDispatcher, job_id: str):
        self.dispatcher = dispatcher
        self.job_id = job_id

    def report(self, message: str) -> None:
        self.dispatcher._write(self.job_id, "job_progress", status="processing", message=message)


class JobDispatcher:
    def __init__(
        self,
        job_store: JobStore,
        result_store: ResultStore,
        generator: SlideGenerator,
        broadcaster: JobBroadcaster,
        blob_store: BlobStore | None = None,
        *,
        enqueuer: TaskEnqueuer | None = None,
        worker_count: int = 4,
        max_in_flight: int = 8,
        job_ttl_seconds: int = 300,
        result_ttl_seconds: int = 3600,
        stale_job_seconds: int = 900,
        max_upload_bytes: int | None = None,
    ):
        if enqueuer is not None and blob_store is None:
            raise ValueError("remote dispatch needs a blob store for staged files")
        self.job_store = job_store
        self.result_store = result_store
        self.generator = generator
        self.broadcaster = broadcaster
        self.blob_store = blob_store
        self.enqueuer = enqueuer
        self.max_in_flight = max_in_flight
        self.job_ttl_seconds = job_ttl_seconds
        self.result_ttl_seconds = result_ttl_seconds
        self.stale_job_seconds = stale_job_seconds
        self.max_upload_bytes = max_upload_bytes

        self._slots = threading.BoundedSemaphore(max_in_flight)
        self._executor: ThreadPoolExecutor | None = None
        if enqueuer is None:
            self._executor = ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="slidegen-worker")
        self._claims: set[str] = set()
        self._claims_lock = threading.Lock()

    @property
    def remote(self) -> bool:
        return self.enqueuer is not None

    # Admission

    def validate_submission(
        self, theme: str, settings: SlideSettings, files: list[tuple[str, bytes]]
    ) -> tuple[SlideSettings, list[UploadedFile]]:
        if theme not in VALID_THEMES:
            raise InvalidSubmissionError(
                f"Invalid theme: {theme}. Supported themes are: {', '.join(VALID_THEMES)}"
            )

        slide_detail = settings.slide_detail or "medium"
        if slide_detail not in VALID_SLIDE_DETAILS:
            raise InvalidSubmissionError(
                f"Invalid slideDetail: {slide_detail}. Supported values are: {', '.join(VALID_SLIDE_DETAILS)}"
            )
        audience = settings.audience or "general"
        if audience not in VALID_AUDIENCES:
            raise InvalidSubmissionError(
                f"Invalid audience: {audience}. Supported values are: {', '.join(VALID_AUDIENCES)}"
            )

        if not files:
            raise InvalidSubmissionError("No files uploaded")
        uploads = [validate_upload(name, data, max_bytes=self.max_upload_bytes) for name, data in files]
        return SlideSettings(slide_detail=slide_detail, audience=audience), uploads

    def _admit(self) -> bool:
        if not self.remote:
            if self._slots.acquire(blocking=False):
                return True
            logger.warning("admission_rejected mode=local limit=%d", self.max_in_flight)
            return False
        since = self.job_store.now() - timedelta(seconds=self.stale_job_seconds)
        active = self.job_store.count_active(since=since)
        if active >= self.max_in_flight:
            logger.warning("admission_rejected mode=remote active=%d limit=%d", active, self.max_in_flight)
            return False
        return True

    def add_job(self, theme: str, files: list[tuple[str, bytes]], settings: SlideSettings | None = None) -> JobRecord:
        """Validate, admit and schedule a job. Returns without waiting for generation."""
        slide_settings, uploads = self.validate_submission(theme, settings or SlideSettings(), files)
        if not self._admit():
            raise SystemBusyError(BUSY_MESSAGE)

        job_id = str(uuid4())
        try:
            record = self.job_store.create(job_id)
        except Exception:
            if not self.remote:
                self._slots.release()
            raise

        _job_log(
            job_id,
            "job_admitted",
            mode="remote" if self.remote else "local",
            theme=theme,
            slide_detail=slide_settings.slide_detail,
            audience=slide_settings.audience,
            files=[upload.filename for upload in uploads],
        )
        if self.remote:
            self._hand_off(job_id, theme, slide_settings, uploads)
        else:
            try:
                self._executor.submit(self._run_local, job_id, theme, slide_settings, uploads)
            except RuntimeError as exc:
                self._slots.release()
                self._finish_failed(job_id, f"Failed to schedule job: {exc}")
                raise SchedulingError("Failed to schedule job, please try again later") from exc
        return record

    def _hand_off(self, job_id: str, theme: str, settings: SlideSettings, uploads: list[UploadedFile]) -> None:
        keys: list[str] = []
        try:
            references = []
            for idx, upload in enumerate(uploads):
                key = self.blob_store.put(make_staging_key(job_id, upload.filename, idx), upload.data)
                keys.append(key)
                references.append(FileReference(filename=upload.filename, type=upload.content_type, key=key))
            self.enqueuer.enqueue(TaskPayload(job_id=job_id, theme=theme, settings=settings, files=references))
        except Exception as exc:
            logger.exception("job=%s hand_off_failed", job_id)
            self._delete_staged(job_id, keys)
            self._finish_failed(job_id, f"Failed to schedule job: {exc}")
            raise SchedulingError("Failed to schedule job, please try again later") from exc

    def _run_local(self, job_id: str, theme: str, settings: SlideSettings, uploads: list[UploadedFile]) -> None:
        try:
            self.process_job(job_id, theme, settings, uploads)
        except Exception:
            logger.exception("job=%s worker_crashed", job_id)
        finally:
            self._slots.release()

    # Processing

    def _claim(self, job_id: str) -> bool:
        with self._claims_lock:
            if job_id in self._claims:
                return False
            self._claims.add(job_id)
            return True

    def _release_claim(self, job_id: str) -> None:
        with self._claims_lock:
            self._claims.discard(job_id)

    def _write(self, job_id: str, event: str, **fields) -> JobRecord | None:
        try:
            record = self.job_store.update(job_id, **fields)
        except Exception as exc:
            logger.warning("job=%s %s_write_failed | error=%s", job_id, event, exc)
            return None
        if record is None:
            _job_log(job_id, f"{event}_skipped", reason="missing_or_terminal")
            return None
        _job_log(job_id, event, status=record.status, message=record.message, revision=record.revision)
        self.broadcaster.publish(record.to_update())
        return record

    def _finish_failed(self, job_id: str, message: str) -> JobRecord | None:
        now = self.job_store.now()
        return self._write(
            job_id,
            "job_failed",
            status="failed",
            message=message,
            updated_at=now,
            expires_at=now + timedelta(seconds=self.job_ttl_seconds),
        )

    def _finish_completed(self, job_id: str) -> JobRecord | None:
        now = self.job_store.now()
        try:
            record = self.job_store.update(
                job_id,
                status="completed",
                message="Slides generated successfully",
                result_url=result_url_for(job_id),
                updated_at=now,
                expires_at=now + timedelta(seconds=self.job_ttl_seconds),
            )
        except Exception as exc:
            logger.warning("job=%s job_completed_write_failed | error=%s", job_id, exc)
            self._discard_result(job_id)
            return self._finish_failed(job_id, f"Failed to update job status: {exc}")
        if record is None:
            _job_log(job_id, "job_completed_skipped", reason="missing_or_terminal")
            return None
        _job_log(job_id, "job_completed", result_url=record.result_url, revision=record.revision)
        self.broadcaster.publish(record.to_update())
        return record

    def _discard_result(self, job_id: str) -> None:
        # A result is only served for a job whose completed write landed.
        try:
            self.result_store.delete(job_id)
        except Exception as exc:
            logger.warning("job=%s result_discard_failed | error=%s", job_id, exc)

    def process_job(
        self, job_id: str, theme: str, settings: SlideSettings, files: list[UploadedFile]
    ) -> JobRecord | None:
        """Run one job to a terminal state. Unknown, terminal or already-running jobs are skipped."""
        if not self._claim(job_id):
            _job_log(job_id, "job_skipped", reason="already_running")
            return None
        try:
            record = self.job_store.get(job_id)
            if record is None or record.is_terminal:
                _job_log(job_id, "job_skipped", reason="missing" if record is None else record.status)
                return record

            started_at = perf_counter()
            self._write(job_id, "job_start", status="processing", message="Processing slides")
            try:
                bundle = self.generator.generate(theme, files, settings, StoreProgressSink(self, job_id))
            except Exception as exc:
                logger.warning("job=%s generation_failed | error=%s", job_id, exc)
                return self._finish_failed(job_id, f"Failed to generate slides: {exc}")

            try:
                self.result_store.put(job_id, bundle, self.result_ttl_seconds)
            except Exception as exc:
                logger.warning("job=%s result_store_failed | error=%s", job_id, exc)
                return self._finish_failed(job_id, f"Failed to store result: {exc}")

            finished = self._finish_completed(job_id)
            _job_log(
                job_id,
                "job_done",
                status=finished.status if finished else None,
                pdf_bytes=len(bundle.pdf),
                html_bytes=len(bundle.html),
                elapsed_ms=int((perf_counter() - started_at) * 1000),
            )
            return finished
        finally:
            self._release_claim(job_id)

    def run_task(self, payload: TaskPayload) -> JobRecord | None:
        """Consume a task handed off by ``add_job`` in remote mode."""
        job_id = payload.job_id
        keys = [ref.key for ref in payload.files]
        try:
            record = self.job_store.get(job_id)
            if record is None or record.is_terminal:
                _job_log(job_id, "task_skipped", reason="missing" if record is None else record.status)
                return record

            files: list[UploadedFile] = []
            for ref in payload.files:
                try:
                    data = self.blob_store.get(ref.key)
                except Exception as exc:
                    logger.warning("job=%s staged_file_unreadable | key=%s error=%s", job_id, ref.key, exc)
                    return self._finish_failed(job_id, f"Failed to download file {ref.filename}: {exc}")
                files.append(UploadedFile(filename=ref.filename, data=data, content_type=ref.type))

            return self.process_job(job_id, payload.theme, payload.settings, files)
        finally:
            self._delete_staged(job_id, keys)

    def _delete_staged(self, job_id: str, keys: list[str]) -> None:
        if self.blob_store is None:
            return
        for key in keys:
            try:
                self.blob_store.delete(key)
            except Exception as exc:
                logger.warning("job=%s staged_file_delete_failed | key=%s error=%s", job_id, key, exc)

    # Lookups

    def get_job(self, job_id: str) -> JobRecord | None:
        record = self.job_store.get(job_id)
        if record is None:
            return None
        if record.is_expired(self.job_store.now()):
            try:
                self.job_store.delete(job_id)
                _job_log(job_id, "job_expired_deleted")
            except Exception as exc:
                logger.warning("job=%s expired_delete_failed | error=%s", job_id, exc)
            return None
        if record.status == "completed":
            try:
                result_url = self.result_store.peek_url(job_id)
            except Exception as exc:
                logger.warning("job=%s result_lookup_failed | error=%s", job_id, exc)
                result_url = None
            record = replace(record, result_url=result_url)
        return record

    def get_result(self, job_id: str) -> ResultRecord | None:
        return self.result_store.get(job_id)

    def cleanup_expired(self) -> dict[str, int]:
        now = self.job_store.now()
        removed = {
            "jobs": self.job_store.purge_expired(now),
            "results": self.result_store.purge_expired(now),
        }
        logger.info("cleanup_expired jobs=%d results=%d", removed["jobs"], removed["results"])
        return removed

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
