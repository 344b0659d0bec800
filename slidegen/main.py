from __future__ import annotations

import logging

from fastapi import FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ValidationError
from sse_starlette.sse import EventSourceResponse

from slidegen.config import settings
from slidegen.db import Base, engine
from slidegen.errors import InvalidSubmissionError, JobNotFoundError, SchedulingError, SystemBusyError
from slidegen.runtime import get_dispatcher, get_streamer
from slidegen.schemas import JobStatusOut, SlideRequest, SlideResponse, TaskAccepted, TaskPayload
from slidegen.services.job_store import JobRecord, to_unix

logger = logging.getLogger("slidegen")

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_origin, "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class _AccessLogPathFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not settings.suppress_job_poll_access_logs:
            return True

        message = record.getMessage()
        if f'"GET {settings.api_prefix}/slides/' in message:
            return False
        if f'"OPTIONS {settings.api_prefix}/slides/' in message:
            return False
        return True


def _configure_runtime_logging() -> None:
    level = getattr(logging, str(settings.log_level).upper(), logging.INFO)
    logging.getLogger("slidegen").setLevel(level)
    logging.getLogger("slidegen.jobs").setLevel(level)
    logging.getLogger("slidegen.providers").setLevel(level)
    logging.getLogger("slidegen.stream").setLevel(level)

    if settings.suppress_httpx_info_logs:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)
        logging.getLogger("anthropic").setLevel(logging.WARNING)

    access_logger = logging.getLogger("uvicorn.access")
    if settings.suppress_job_poll_access_logs and not any(
        isinstance(row, _AccessLogPathFilter) for row in access_logger.filters
    ):
        access_logger.addFilter(_AccessLogPathFilter())


@app.on_event("startup")
def on_startup():
    _configure_runtime_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("startup dispatch_mode=%s workers=%d max_in_flight=%d", settings.dispatch_mode, settings.worker_count, settings.max_in_flight_jobs)


@app.on_event("shutdown")
def on_shutdown():
    get_dispatcher().shutdown(wait=False)


@app.get("/health")
def health():
    return {"status": "ok"}


def _status_out(record: JobRecord) -> JobStatusOut:
    return JobStatusOut(
        id=record.id,
        status=record.status,
        message=record.message,
        result_url=record.result_url or "",
        updated_at=to_unix(record.updated_at),
    )


@app.post(f"{settings.api_prefix}/generate", response_model=SlideResponse, status_code=202)
async def generate_slides(data: str = Form(...), files: list[UploadFile] | None = File(default=None)):
    try:
        request = SlideRequest.model_validate_json(data)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid request data: {exc.errors()[0]['msg']}") from exc

    contents: list[tuple[str, bytes]] = []
    for upload in files or []:
        contents.append((upload.filename or "", await upload.read()))

    try:
        record = await run_in_threadpool(get_dispatcher().add_job, request.theme, contents, request.settings)
    except InvalidSubmissionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (SystemBusyError, SchedulingError) as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return SlideResponse(
        id=record.id,
        status=record.status,
        message=record.message,
        created_at=to_unix(record.created_at),
        updated_at=to_unix(record.updated_at),
    )


async def _stream_job(job_id: str) -> EventSourceResponse:
    events = get_streamer().stream(job_id)
    try:
        first = await anext(events)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Job not found") from exc

    async def event_source():
        try:
            yield first.to_sse()
            async for event in events:
                yield event.to_sse()
        finally:
            await events.aclose()

    return EventSourceResponse(event_source())


@app.get(f"{settings.api_prefix}/slides/{{job_id}}", response_model=JobStatusOut)
async def get_slide_status(job_id: str, request: Request):
    if "text/event-stream" in request.headers.get("accept", ""):
        return await _stream_job(job_id)

    record = await run_in_threadpool(get_dispatcher().get_job, job_id)
    if not record:
        raise HTTPException(status_code=404, detail="Job not found")
    return _status_out(record)


@app.get(f"{settings.api_prefix}/results/{{job_id}}")
def get_slide_result(job_id: str, download: bool = Query(default=False)):
    result = get_dispatcher().get_result(job_id)
    if not result:
        raise HTTPException(status_code=404, detail="Result not found")

    if download:
        return Response(
            content=result.pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="presentation-{job_id}.pdf"'},
        )
    return Response(content=result.html, media_type="text/html")


@app.post(f"{settings.api_prefix}/tasks/process-slides", response_model=TaskAccepted)
def process_slides_task(payload: TaskPayload):
    record = get_dispatcher().run_task(payload)
    return TaskAccepted(status=record.status if record else "missing", job_id=payload.job_id)
