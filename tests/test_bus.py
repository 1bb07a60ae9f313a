import pytest

from nota.session.bus import SnapshotBus
from nota.transcript.models import TranscriptSnapshot


@pytest.mark.asyncio
async def test_sync_and_async_subscribers_receive_snapshots():
    bus = SnapshotBus()
    seen_sync, seen_async = [], []

    async def _async_handler(snapshot):
        seen_async.append(snapshot.displayed)

    bus.subscribe(lambda snapshot: seen_sync.append(snapshot.displayed))
    bus.subscribe(_async_handler)

    await bus.publish(TranscriptSnapshot(committed="Hello world", interim="how"))

    assert seen_sync == ["Hello world how"]
    assert seen_async == ["Hello world how"]
    assert bus.last.committed == "Hello world"


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others():
    bus = SnapshotBus()
    seen = []

    def _broken(snapshot):
        raise RuntimeError("observer bug")

    bus.subscribe(_broken)
    bus.subscribe(lambda snapshot: seen.append(snapshot.connection_status))

    await bus.publish(TranscriptSnapshot(connection_status="Recording"))

    assert seen == ["Recording"]


@pytest.mark.asyncio
async def test_unsubscribe_stops_delivery():
    bus = SnapshotBus()
    seen = []

    unsubscribe = bus.subscribe(seen.append)
    await bus.publish(TranscriptSnapshot(committed="one"))
    unsubscribe()
    unsubscribe()
    await bus.publish(TranscriptSnapshot(committed="two"))

    assert [s.committed for s in seen] == ["one"]
    assert bus.subscriber_count == 0
