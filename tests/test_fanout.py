import threading
from datetime import datetime

from slidegen.services.fanout import JobBroadcaster
from slidegen.services.job_store import JobUpdate


def _update(job_id: str, revision: int, status: str = "processing") -> JobUpdate:
    return JobUpdate(id=job_id, status=status, message=f"step {revision}", updated_at=datetime(2024, 1, 1), revision=revision)


def test_publish_reaches_every_subscriber_of_the_job_only():
    broadcaster = JobBroadcaster(buffer_size=4)
    first = broadcaster.subscribe("job-1")
    second = broadcaster.subscribe("job-1")
    other = broadcaster.subscribe("job-2")

    assert broadcaster.publish(_update("job-1", 2)) == 2
    assert first.get(0.1).revision == 2
    assert second.get(0.1).revision == 2
    assert other.get(0.01) is None


def test_full_subscriber_drops_updates_without_blocking_others():
    broadcaster = JobBroadcaster(buffer_size=2)
    stalled = broadcaster.subscribe("job-1")
    active = broadcaster.subscribe("job-1")

    for revision in range(2, 7):
        broadcaster.publish(_update("job-1", revision))
        assert active.get(0.1).revision == revision

    assert stalled.dropped == 3
    assert [stalled.get(0.1).revision, stalled.get(0.1).revision] == [2, 3]
    assert stalled.get(0.01) is None


def test_unsubscribe_releases_registry_entry():
    broadcaster = JobBroadcaster()
    subscription = broadcaster.subscribe("job-1")
    assert broadcaster.subscriber_count("job-1") == 1

    broadcaster.unsubscribe(subscription)
    broadcaster.unsubscribe(subscription)

    assert broadcaster.subscriber_count("job-1") == 0
    assert subscription.closed.is_set()
    assert broadcaster.publish(_update("job-1", 2)) == 0


def test_concurrent_publishers_and_subscribers():
    broadcaster = JobBroadcaster(buffer_size=1000)
    subscriptions = [broadcaster.subscribe("job-1") for _ in range(5)]
    churn_stop = threading.Event()

    def churn():
        while not churn_stop.is_set():
            broadcaster.unsubscribe(broadcaster.subscribe("job-1"))

    def publish(offset: int):
        for revision in range(offset, offset + 100):
            broadcaster.publish(_update("job-1", revision))

    churner = threading.Thread(target=churn)
    publishers = [threading.Thread(target=publish, args=(start,)) for start in (0, 100, 200)]
    churner.start()
    for thread in publishers:
        thread.start()
    for thread in publishers:
        thread.join(timeout=5)
    churn_stop.set()
    churner.join(timeout=5)

    for subscription in subscriptions:
        received = []
        while (update := subscription.get(0.01)) is not None:
            received.append(update.revision)
        assert sorted(received) == list(range(300))
