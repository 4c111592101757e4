"""Tests for the change channel and the reconnecting realtime manager."""

from __future__ import annotations

import asyncio

import pytest

from conftest import make_event
from safewatch.core.models import EventChange
from safewatch.realtime.asyncio_channel import AsyncioEventChannel
from safewatch.realtime.manager import BackoffPolicy, RealtimeConnectionManager
from safewatch.storage.memory_store import InMemoryEventStore


class FlakyChannel(AsyncioEventChannel):
    """Refuses the first ``failures`` subscribe calls."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.calls = 0

    async def subscribe(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("channel unavailable")
        return await super().subscribe()


class BrokenSubscription:
    """Fails on the first read, like a dropped connection."""

    def __init__(self) -> None:
        self.closed = False

    async def get(self):
        raise ConnectionError("channel error")

    async def close(self) -> None:
        self.closed = True


class DroppingChannel(AsyncioEventChannel):
    """Hands out a broken subscription first, healthy ones afterwards."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0
        self.broken = BrokenSubscription()

    async def subscribe(self):
        self.calls += 1
        if self.calls == 1:
            return self.broken
        return await super().subscribe()


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


async def _until(predicate, rounds: int = 200) -> None:
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def test_backoff_doubles_up_to_the_cap():
    policy = BackoffPolicy()
    assert [policy.delay(n) for n in range(7)] == [1, 2, 4, 8, 16, 30, 30]
    assert BackoffPolicy(base_delay=0.5, max_delay=3).delay(3) == 3


async def test_channel_fans_out_to_every_subscriber():
    channel = AsyncioEventChannel()
    a = await channel.subscribe()
    b = await channel.subscribe()
    change = EventChange(kind="insert", event_id="e1")

    await channel.publish(change)
    assert await a.get() is change
    assert await b.get() is change

    await a.close()
    assert channel.subscriber_count() == 1
    assert await a.get() is None


async def test_full_subscriber_queue_drops_changes():
    channel = AsyncioEventChannel(max_size=1)
    sub = await channel.subscribe()
    await channel.publish(EventChange(kind="insert", event_id="e1"))
    await channel.publish(EventChange(kind="insert", event_id="e2"))

    assert sub.qsize() == 1
    assert (await sub.get()).event_id == "e1"


async def test_retries_with_exponential_backoff():
    channel = FlakyChannel(failures=7)
    sleep = RecordingSleep()
    manager = RealtimeConnectionManager(channel, sleep=sleep)

    await manager.connect()
    await manager.wait_connected(timeout=1)

    assert sleep.delays == [1, 2, 4, 8, 16, 30, 30]
    assert manager.attempt == 0
    assert manager.is_connected
    await manager.disconnect()


async def test_handlers_receive_store_changes():
    channel = AsyncioEventChannel()
    store = InMemoryEventStore(changes=channel)
    manager = RealtimeConnectionManager(channel)
    received: asyncio.Queue = asyncio.Queue()

    async def async_handler(change):
        await received.put(("async", change.event_id))

    manager.on_event(lambda change: received.put_nowait(("sync", change.kind)))
    manager.on_event(async_handler)
    await manager.connect()
    await manager.wait_connected(timeout=1)

    await store.add_event(make_event(id="e1"))

    got = {await asyncio.wait_for(received.get(), 1) for _ in range(2)}
    assert got == {("sync", "insert"), ("async", "e1")}
    await manager.disconnect()


async def test_failing_handler_does_not_stop_dispatch():
    channel = AsyncioEventChannel()
    manager = RealtimeConnectionManager(channel)
    seen: list[str] = []

    def broken(change):
        raise RuntimeError("boom")

    manager.on_event(broken)
    manager.on_event(lambda change: seen.append(change.event_id))
    await manager.connect()
    await manager.wait_connected(timeout=1)

    await channel.publish(EventChange(kind="update", event_id="e1"))
    await _until(lambda: seen == ["e1"])
    await manager.disconnect()


async def test_removed_handler_is_not_called():
    channel = AsyncioEventChannel()
    manager = RealtimeConnectionManager(channel)
    seen: list[str] = []
    remove = manager.on_event(lambda change: seen.append("removed"))
    manager.on_event(lambda change: seen.append(change.event_id))
    remove()

    await manager.connect()
    await manager.wait_connected(timeout=1)
    await channel.publish(EventChange(kind="insert", event_id="e9"))
    await _until(lambda: seen == ["e9"])
    await manager.disconnect()


async def test_resubscribes_after_channel_closes():
    channel = AsyncioEventChannel()
    sleep = RecordingSleep()
    manager = RealtimeConnectionManager(channel, sleep=sleep)
    await manager.connect()
    await manager.wait_connected(timeout=1)

    await channel.close()
    await _until(lambda: sleep.delays == [1] and manager.is_connected)

    assert channel.subscriber_count() == 1
    assert manager.attempt == 0
    await manager.disconnect()


async def test_disconnect_stops_the_loop():
    channel = AsyncioEventChannel()
    manager = RealtimeConnectionManager(channel)
    await manager.connect()
    await manager.wait_connected(timeout=1)

    await manager.disconnect()

    assert not manager.is_connected
    assert channel.subscriber_count() == 0
    with pytest.raises(asyncio.TimeoutError):
        await manager.wait_connected(timeout=0.05)


async def test_read_error_triggers_resubscribe():
    channel = DroppingChannel()
    sleep = RecordingSleep()
    manager = RealtimeConnectionManager(channel, sleep=sleep)
    seen: list[str] = []
    manager.on_event(lambda change: seen.append(change.event_id))

    await manager.connect()
    await _until(lambda: channel.calls == 2 and manager.is_connected)

    assert channel.broken.closed
    assert sleep.delays == [1]
    assert manager.attempt == 0
    assert channel.subscriber_count() == 1

    await channel.publish(EventChange(kind="insert", event_id="e1"))
    await _until(lambda: seen == ["e1"])
    await manager.disconnect()
