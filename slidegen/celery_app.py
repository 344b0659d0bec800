from celery import Celery

from slidegen.config import settings

celery_app = Celery("slidegen", broker=settings.redis_url, backend=settings.redis_url, include=["slidegen.tasks"])
celery_app.conf.update(task_track_started=True, task_serializer="json", result_serializer="json", accept_content=["json"])
celery_app.conf.beat_schedule = {
    "cleanup-expired": {
        "task": "slidegen.tasks.cleanup_expired",
        "schedule": float(settings.cleanup_interval_seconds),
    },
}
