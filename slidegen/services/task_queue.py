from __future__ import annotations

import logging
from typing import Protocol

from slidegen.config import Settings
from slidegen.schemas import TaskPayload

logger = logging.getLogger("slidegen.jobs")


class TaskEnqueuer(Protocol):
    """Hands a serialized job to a worker that may live in another process."""

    def enqueue(self, payload: TaskPayload) -> None:
        ...


class CeleryEnqueuer:
    def enqueue(self, payload: TaskPayload) -> None:
        # Imported here because the task module builds the dispatcher on import.
        from slidegen.tasks import process_slides_job

        result = process_slides_job.delay(payload.model_dump(mode="json", by_alias=True))
        logger.info("job=%s task_enqueued | task_id=%s files=%d", payload.job_id, result.id, len(payload.files))


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer | None:
    """Return the enqueuer for remote dispatch, or None when jobs run in-process."""
    if settings.dispatch_mode == "celery":
        return CeleryEnqueuer()
    return None
