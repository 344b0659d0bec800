import threading
from datetime import timedelta

from slidegen.services.job_store import JobStore, to_unix


def test_create_writes_initial_queued_record(job_store):
    record = job_store.create("job-1")
    stored = job_store.get("job-1")

    assert record.status == "queued"
    assert record.message == "Job added to queue"
    assert record.expires_at is None
    assert stored == record


def test_update_bumps_revision_and_ignores_unknown_fields(job_store):
    job_store.create("job-1")
    first = job_store.update("job-1", status="processing", message="Processing slides", revision=99, id="other")
    second = job_store.update("job-1", message="Generating content for slides")

    assert first.revision == 2
    assert second.revision == 3
    assert second.status == "processing"
    assert job_store.get("other") is None


def test_terminal_records_are_not_rewritten(job_store):
    job_store.create("job-1")
    job_store.update("job-1", status="failed", message="Failed to generate slides: boom")

    assert job_store.update("job-1", status="processing", message="late progress") is None
    stored = job_store.get("job-1")
    assert stored.status == "failed"
    assert stored.message == "Failed to generate slides: boom"


def test_update_of_missing_job_returns_none(job_store):
    assert job_store.update("missing", status="processing") is None


def test_to_update_exposes_result_url_only_when_completed(job_store):
    job_store.create("job-1")
    processing = job_store.update("job-1", status="processing", result_url="/results/job-1")
    assert "resultUrl" not in processing.to_update().to_payload()

    job_store.create("job-2")
    done = job_store.update("job-2", status="completed", result_url="/results/job-2")
    payload = done.to_update().to_payload()
    assert payload["resultUrl"] == "/results/job-2"
    assert payload["updatedAt"] == to_unix(done.updated_at)


def test_count_active_respects_staleness_cutoff(session_factory, clock):
    store = JobStore(session_factory, clock=clock)
    store.create("old")
    clock.advance(600)
    store.create("fresh")
    store.create("done")
    store.update("done", status="completed")

    assert store.count_active() == 2
    assert store.count_active(since=clock() - timedelta(seconds=60)) == 1


def test_purge_expired_removes_only_past_expiry(session_factory, clock):
    store = JobStore(session_factory, clock=clock)
    store.create("a")
    store.create("b")
    store.create("c")
    store.update("a", status="completed", expires_at=clock() + timedelta(seconds=300))
    store.update("b", status="failed", expires_at=clock() + timedelta(seconds=30))

    clock.advance(60)
    assert store.purge_expired() == 1
    assert store.get("a") is not None
    assert store.get("b") is None
    assert store.get("c") is not None


def test_delete(job_store):
    job_store.create("job-1")
    assert job_store.delete("job-1") is True
    assert job_store.delete("job-1") is False


def test_watch_yields_new_revisions_until_terminal(job_store):
    job_store.create("job-1")
    seen = []

    def consume():
        for record in job_store.watch("job-1", interval=0.01):
            seen.append((record.revision, record.status))

    watcher = threading.Thread(target=consume)
    watcher.start()
    job_store.update("job-1", status="processing", message="Processing slides")
    job_store.update("job-1", status="completed", message="Slides generated successfully")
    watcher.join(timeout=5)

    assert not watcher.is_alive()
    revisions = [revision for revision, _ in seen]
    assert revisions == sorted(set(revisions))
    assert seen[-1] == (3, "completed")


def test_watch_stops_on_event_and_on_deletion(job_store):
    job_store.create("job-1")
    stop = threading.Event()
    stop.set()
    assert list(job_store.watch("job-1", interval=0.01, stop=stop)) == []

    job_store.delete("job-1")
    assert list(job_store.watch("job-1", interval=0.01)) == []
