"""Process-wide service instances shared by the API and the Celery worker."""

from functools import lru_cache

from slidegen.config import settings
from slidegen.db import SessionLocal
from slidegen.providers.factory import get_provider
from slidegen.services.dispatcher import JobDispatcher
from slidegen.services.fanout import JobBroadcaster
from slidegen.services.generator import SlideGenerator
from slidegen.services.job_store import JobStore
from slidegen.services.render_client import RenderClient
from slidegen.services.result_store import ResultStore
from slidegen.services.streaming import JobStreamer
from slidegen.services.task_queue import get_task_enqueuer
from slidegen.storage import BlobStore


@lru_cache
def get_job_store() -> JobStore:
    return JobStore(SessionLocal)


@lru_cache
def get_result_store() -> ResultStore:
    return ResultStore(SessionLocal)


@lru_cache
def get_broadcaster() -> JobBroadcaster:
    return JobBroadcaster(buffer_size=settings.subscriber_buffer_size)


@lru_cache
def get_dispatcher() -> JobDispatcher:
    return JobDispatcher(
        get_job_store(),
        get_result_store(),
        SlideGenerator(get_provider(), RenderClient()),
        get_broadcaster(),
        BlobStore(),
        enqueuer=get_task_enqueuer(settings),
        worker_count=settings.worker_count,
        max_in_flight=settings.max_in_flight_jobs,
        job_ttl_seconds=settings.job_expiry_seconds,
        result_ttl_seconds=settings.result_expiry_seconds,
        stale_job_seconds=settings.stale_job_seconds,
        max_upload_bytes=settings.max_upload_bytes,
    )


@lru_cache
def get_streamer() -> JobStreamer:
    return JobStreamer(
        get_dispatcher().get_job,
        get_broadcaster(),
        get_job_store(),
        heartbeat_seconds=settings.stream_heartbeat_seconds,
        poll_seconds=settings.stream_poll_seconds,
        remote_watch=settings.dispatch_mode != "local",
    )
