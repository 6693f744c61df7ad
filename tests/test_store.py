"""Tests for the published snapshot store."""

import asyncio
from contextlib import aclosing

import pytest

from vitality.models import Snapshot
from vitality.store import SnapshotStore


def test_initial_snapshot_has_neutral_values():
    store = SnapshotStore()

    assert store.version == 0
    assert store.current.cpu_usage == 0.0
    assert store.current.uptime == "N/A"
    assert store.current.disks == ()


def test_publish_replaces_current():
    store = SnapshotStore()
    first = Snapshot(tick=1)
    second = Snapshot(tick=2)

    store.publish(first)
    store.publish(second)

    assert store.current is second
    assert store.version == 2
    # The earlier snapshot is not touched
    assert first.tick == 1


def test_subscribers_receive_every_snapshot():
    store = SnapshotStore()
    received: list[int] = []
    store.subscribe(lambda snap: received.append(snap.tick))

    store.publish(Snapshot(tick=1))
    store.publish(Snapshot(tick=2))

    assert received == [1, 2]


def test_unsubscribe_stops_delivery():
    store = SnapshotStore()
    received: list[int] = []
    unsubscribe = store.subscribe(lambda snap: received.append(snap.tick))

    store.publish(Snapshot(tick=1))
    unsubscribe()
    unsubscribe()  # Second call is a no-op
    store.publish(Snapshot(tick=2))

    assert received == [1]
    assert store.subscriber_count == 0


def test_failing_subscriber_does_not_affect_others():
    store = SnapshotStore()
    received: list[int] = []

    def broken(snap):
        raise RuntimeError("render failed")

    store.subscribe(broken)
    store.subscribe(lambda snap: received.append(snap.tick))

    store.publish(Snapshot(tick=1))

    assert received == [1]
    assert store.version == 1


@pytest.mark.asyncio
async def test_updates_yields_published_snapshots():
    store = SnapshotStore()

    async def consume() -> list[int]:
        ticks = []
        async with aclosing(store.updates(maxsize=10)) as updates:
            async for snap in updates:
                ticks.append(snap.tick)
                if len(ticks) == 3:
                    break
        return ticks

    consumer = asyncio.create_task(consume())
    await asyncio.sleep(0)  # Let the consumer register
    for tick in (1, 2, 3):
        store.publish(Snapshot(tick=tick))

    assert await asyncio.wait_for(consumer, timeout=1.0) == [1, 2, 3]
    assert store.subscriber_count == 0


async def next_snapshot(updates) -> Snapshot:
    return await updates.__anext__()


@pytest.mark.asyncio
async def test_lagging_consumer_gets_newest_snapshot():
    """With a full queue the stale snapshot is dropped, not the new one."""
    store = SnapshotStore()

    async with aclosing(store.updates(maxsize=1)) as updates:
        pending = asyncio.create_task(next_snapshot(updates))
        await asyncio.sleep(0)
        store.publish(Snapshot(tick=1))
        assert (await pending).tick == 1

        # Consumer is busy; three publishes arrive before it reads again
        for tick in (2, 3, 4):
            store.publish(Snapshot(tick=tick))

        snap = await asyncio.wait_for(next_snapshot(updates), timeout=1.0)
        assert snap.tick == 4
