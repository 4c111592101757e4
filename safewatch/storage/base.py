"""Storage interface (port) for events and reporter profiles."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from safewatch.core.models import Event, EventDraft, EventStatus, ReporterProfile
    from safewatch.core.query_builder import EventQuery


class EventStore(Protocol):
    """Port: persists events and reporter profiles.

    Every method raises StoreError when the backend fails; the backend's
    message is kept.
    """

    async def get_event_by_id(self, event_id: str) -> Event | None: ...

    async def insert_event(self, draft: EventDraft, created_at: datetime) -> Event: ...

    async def update_event_status(self, event_id: str, status: EventStatus) -> Event: ...

    async def update_event_fields(self, event_id: str, fields: dict) -> Event | None: ...

    async def get_profile(self, profile_id: str) -> ReporterProfile | None: ...

    async def get_or_create_profile(self, profile_id: str) -> ReporterProfile: ...

    async def update_profile(self, profile: ReporterProfile) -> ReporterProfile: ...

    async def list_recent_reports(
        self, category: str, subcategory: str, since: datetime,
    ) -> list[Event]: ...

    async def query_events(self, query: EventQuery, limit: int = 1000) -> list[Event]: ...
