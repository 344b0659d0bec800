import os
import tempfile
import time
from datetime import datetime, timedelta
from pathlib import Path

# Point settings at a throwaway directory before any slidegen module loads.
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="slidegen-tests-"))
os.environ.setdefault("SLIDEGEN_STORAGE_ROOT", str(_TEST_ROOT))
os.environ.setdefault("SLIDEGEN_DATABASE_URL", f"sqlite:///{(_TEST_ROOT / 'app.db').as_posix()}")
os.environ.setdefault("SLIDEGEN_DEFAULT_LLM_PROVIDER", "mock")

import pytest
from sqlalchemy.orm import sessionmaker

from slidegen.db import Base, build_engine
from slidegen.providers.mock_provider import MockProvider
from slidegen.services.dispatcher import JobDispatcher
from slidegen.services.fanout import JobBroadcaster
from slidegen.services.generator import SlideGenerator
from slidegen.services.job_store import JobStore
from slidegen.services.result_store import ResultStore
from slidegen.storage import BlobStore


PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"
MARKDOWN_BYTES = b"# Quarterly report\n\n- Revenue grew 12%\n- Churn fell\n"


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeRenderer:
    def __init__(self, fail_on: str | None = None):
        self.fail_on = fail_on
        self.calls: list[tuple[str, str]] = []

    def render(self, markdown: str, theme: str, fmt: str) -> bytes:
        from slidegen.errors import RenderError

        self.calls.append((theme, fmt))
        if fmt == self.fail_on:
            raise RenderError(f"failed to generate {fmt.upper()}. Please try again.")
        return f"{fmt}:{theme}:{len(markdown)}".encode()


class RecordingEnqueuer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.payloads = []

    def enqueue(self, payload) -> None:
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.payloads.append(payload)


def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = predicate()
        if value:
            return value
        time.sleep(interval)
    return predicate()


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{(tmp_path / 'jobs.db').as_posix()}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def job_store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def result_store(session_factory):
    return ResultStore(session_factory)


@pytest.fixture
def broadcaster():
    return JobBroadcaster(buffer_size=10)


@pytest.fixture
def blob_store(tmp_path):
    return BlobStore(tmp_path / "staging")


@pytest.fixture
def renderer():
    return FakeRenderer()


@pytest.fixture
def generator(renderer):
    return SlideGenerator(MockProvider(), renderer, max_input_tokens=16384, max_output_tokens=4096)


@pytest.fixture
def make_dispatcher(job_store, result_store, generator, broadcaster, blob_store):
    created: list[JobDispatcher] = []

    def factory(**overrides) -> JobDispatcher:
        options = {
            "job_store": job_store,
            "result_store": result_store,
            "generator": generator,
            "broadcaster": broadcaster,
            "blob_store": blob_store,
            "worker_count": 2,
            "max_in_flight": 4,
        }
        options.update(overrides)
        dispatcher = JobDispatcher(**options)
        created.append(dispatcher)
        return dispatcher

    yield factory
    for dispatcher in created:
        dispatcher.shutdown(wait=True)


@pytest.fixture
def anyio_backend():
    return "asyncio"
