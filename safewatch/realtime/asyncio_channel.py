"""In-process asyncio implementation of EventChannel."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from safewatch.core.models import EventChange

log = structlog.get_logger()

_CLOSED = object()


class AsyncioSubscription:
    """One subscriber's bounded asyncio.Queue."""

    def __init__(self, channel: AsyncioEventChannel, max_size: int) -> None:
        self._channel = channel
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self.closed = False

    def offer(self, item: object) -> bool:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> EventChange | None:
        if self.closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            self.closed = True
            return None
        return item

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._channel.detach(self)
        # Wake a reader blocked in get(); a full queue is drained by get() anyway.
        self.offer(_CLOSED)

    def qsize(self) -> int:
        return self._queue.qsize()


class AsyncioEventChannel:
    """EventChannel backed by one asyncio.Queue per subscriber. Zero dependencies."""

    def __init__(self, max_size: int = 1_000) -> None:
        self._max_size = max_size
        self._subscribers: list[AsyncioSubscription] = []

    async def publish(self, change: EventChange) -> None:
        for sub in list(self._subscribers):
            if not sub.offer(change):
                log.warning("realtime_subscriber_lagging", event_id=change.event_id,
                            queue_depth=sub.qsize())

    async def subscribe(self) -> AsyncioSubscription:
        sub = AsyncioSubscription(self, self._max_size)
        self._subscribers.append(sub)
        return sub

    def detach(self, sub: AsyncioSubscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    async def close(self) -> None:
        """Close every subscription; their readers see the end of the feed."""
        for sub in list(self._subscribers):
            await sub.close()

    def subscriber_count(self) -> int:
        return len(self._subscribers)
