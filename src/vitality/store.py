# src/vitality/store.py
"""Published snapshot state and its subscribers.

PUSH-BASED DESIGN:
- The engine calls publish() once per tick with a complete Snapshot
- Readers see either the previous snapshot or the new one, never a mix
- Callbacks run on the event loop; async consumers use updates()
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable

import structlog

from vitality.models import Snapshot

log = structlog.get_logger()

Subscriber = Callable[[Snapshot], None]


class SnapshotStore:
    """Single-writer, multi-reader holder of the latest Snapshot."""

    def __init__(self, initial: Snapshot | None = None) -> None:
        self._current = initial or Snapshot()
        self._version = 0
        self._callbacks: list[Subscriber] = []
        self._queues: set[asyncio.Queue[Snapshot]] = set()

    @property
    def current(self) -> Snapshot:
        """The latest published snapshot (neutral defaults before the first tick)."""
        return self._current

    @property
    def version(self) -> int:
        """Number of snapshots published so far."""
        return self._version

    @property
    def subscriber_count(self) -> int:
        return len(self._callbacks) + len(self._queues)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked with every published snapshot.

        Returns:
            A function that removes the subscription.
        """
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def publish(self, snapshot: Snapshot) -> None:
        """Replace the current snapshot and notify every subscriber."""
        self._current = snapshot
        self._version += 1

        for callback in list(self._callbacks):
            try:
                callback(snapshot)
            except Exception as e:
                log.warning("subscriber_failed", callback=repr(callback), error=str(e))

        for queue in list(self._queues):
            if queue.full():
                # Consumer is lagging: drop the stale snapshot, keep the newest
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
            queue.put_nowait(snapshot)

    async def updates(self, maxsize: int = 1) -> AsyncIterator[Snapshot]:
        """Yield each newly published snapshot until the consumer stops iterating."""
        queue: asyncio.Queue[Snapshot] = asyncio.Queue(maxsize=maxsize)
        self._queues.add(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)
