"""Realtime connection manager.

Owns one subscription to an EventChannel, dispatches every change to the
registered handlers, and re-subscribes with exponential backoff when the
subscription fails or the feed closes while the manager should stay
connected. All retry state lives on the instance.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Awaitable, Callable, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from safewatch.core.models import EventChange
    from safewatch.realtime.base import EventChannel, Subscription

log = structlog.get_logger()

ChangeHandler = Callable[["EventChange"], "Awaitable[None] | None"]


@dataclass(frozen=True)
class BackoffPolicy:
    base_delay: float = 1.0
    max_delay: float = 30.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt`` (0-based)."""
        return min(self.max_delay, self.base_delay * 2 ** attempt)


class RealtimeConnectionManager:
    """Keeps a subscription alive and fans changes out to handlers."""

    def __init__(
        self,
        channel: EventChannel,
        backoff: BackoffPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._channel = channel
        self._backoff = backoff or BackoffPolicy()
        self._sleep = sleep
        self._handlers: list[ChangeHandler] = []
        self._task: asyncio.Task | None = None
        self._subscription: Subscription | None = None
        self._should_run = False
        self._connected = asyncio.Event()
        self.attempt = 0

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def on_event(self, handler: ChangeHandler) -> Callable[[], None]:
        """Register ``handler``; returns a function that unregisters it."""
        self._handlers.append(handler)

        def remove() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return remove

    async def connect(self) -> None:
        """Start the subscription loop. Calling it twice is harmless."""
        self._should_run = True
        if self._task is None or self._task.done():
            self.attempt = 0
            self._task = asyncio.create_task(self._run())

    async def wait_connected(self, timeout: float | None = None) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def disconnect(self) -> None:
        """Stop retrying and tear down the current subscription."""
        self._should_run = False
        task, self._task = self._task, None
        await self._teardown()
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.attempt = 0

    async def _teardown(self) -> None:
        self._connected.clear()
        sub, self._subscription = self._subscription, None
        if sub is None:
            return
        try:
            await sub.close()
        except Exception:
            log.warning("realtime_unsubscribe_failed", exc_info=True)

    async def _run(self) -> None:
        while self._should_run:
            try:
                self._subscription = await self._channel.subscribe()
            except Exception as exc:
                log.warning("realtime_subscribe_failed", error=str(exc), attempt=self.attempt)
                await self._schedule_retry()
                continue

            self.attempt = 0
            self._connected.set()
            log.info("realtime_subscribed")

            try:
                while True:
                    change = await self._subscription.get()
                    if change is None:
                        break
                    await self._dispatch(change)
            except Exception as exc:
                log.warning("realtime_channel_error", error=str(exc), exc_info=True)
            else:
                log.info("realtime_channel_closed")

            await self._teardown()
            if self._should_run:
                await self._schedule_retry()

    async def _schedule_retry(self) -> None:
        delay = self._backoff.delay(self.attempt)
        self.attempt += 1
        log.info("realtime_retry_scheduled", delay_seconds=delay, attempt=self.attempt)
        await self._sleep(delay)

    async def _dispatch(self, change: EventChange) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(change)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.error("realtime_handler_failed", event_id=change.event_id,
                          kind=change.kind, exc_info=True)
