import logging
from time import perf_counter

from slidegen.celery_app import celery_app
from slidegen.config import settings
from slidegen.runtime import get_dispatcher
from slidegen.schemas import TaskPayload


logger = logging.getLogger("slidegen.jobs")


def _configure_worker_logging() -> None:
    level = getattr(logging, str(settings.log_level).upper(), logging.INFO)
    logging.getLogger("slidegen").setLevel(level)
    if settings.suppress_httpx_info_logs:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)
        logging.getLogger("anthropic").setLevel(logging.WARNING)


_configure_worker_logging()


@celery_app.task(name="slidegen.tasks.process_slides_job")
def process_slides_job(payload: dict):
    task = TaskPayload.model_validate(payload)
    started_at = perf_counter()
    record = get_dispatcher().run_task(task)
    logger.info(
        "job=%s task_finished | status=%s elapsed_ms=%d",
        task.job_id,
        record.status if record else "missing",
        int((perf_counter() - started_at) * 1000),
    )
    return record.status if record else None


@celery_app.task(name="slidegen.tasks.cleanup_expired")
def cleanup_expired():
    return get_dispatcher().cleanup_expired()
