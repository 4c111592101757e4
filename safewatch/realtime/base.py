"""Realtime change-feed interface (port)."""

from __future__ import annotations

from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from safewatch.core.models import EventChange


class Subscription(Protocol):
    """A live feed of changes. ``get`` returns None once the feed is closed."""

    async def get(self) -> EventChange | None: ...

    async def close(self) -> None: ...


class EventChannel(Protocol):
    """Port: fans out row-level event changes to subscribers."""

    async def publish(self, change: EventChange) -> None: ...

    async def subscribe(self) -> Subscription: ...
