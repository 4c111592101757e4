"""In-process EventStore keeping rows in dicts.

Used directly in development and tests, and as the working set of
``FileEventStore``. Query predicates are evaluated row by row.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from safewatch.core.errors import StoreError
from safewatch.core.models import (
    Event,
    EventChange,
    EventDraft,
    EventStatus,
    ReporterProfile,
    ensure_utc,
)
from safewatch.storage.rows import event_from_row, event_to_row, profile_from_row, profile_to_row

if TYPE_CHECKING:
    from safewatch.core.query_builder import EventQuery
    from safewatch.realtime.base import EventChannel

log = structlog.get_logger()

# Columns a caller may change through update_event_fields.
MUTABLE_EVENT_FIELDS = frozenset({
    "title", "description", "address", "verification_count", "is_active",
    "radius_meters", "image_url",
})


class InMemoryEventStore:
    """EventStore backed by dicts of rows."""

    def __init__(self, changes: EventChannel | None = None) -> None:
        self._events: dict[str, dict] = {}
        self._profiles: dict[str, dict] = {}
        self._changes = changes

    # -- hooks overridden by persistent subclasses --------------------------

    def _persist_event(self, row: dict) -> None:
        pass

    def _persist_profile(self, row: dict) -> None:
        pass

    async def _publish(self, kind: str, event: Event) -> None:
        if self._changes is not None:
            await self._changes.publish(EventChange(kind=kind, event_id=event.id, event=event))

    def _write_event(self, row: dict) -> Event:
        self._persist_event(row)
        self._events[row["id"]] = row
        return event_from_row(row)

    def _write_profile(self, row: dict) -> ReporterProfile:
        self._persist_profile(row)
        self._profiles[row["id"]] = row
        return profile_from_row(row)

    # -- events ---------------------------------------------------------------

    async def get_event_by_id(self, event_id: str) -> Event | None:
        row = self._events.get(event_id)
        return event_from_row(row) if row is not None else None

    async def insert_event(self, draft: EventDraft, created_at: datetime) -> Event:
        event = Event(
            id=uuid.uuid4().hex,
            title=draft.title,
            description=draft.description,
            category=draft.category,
            subcategory=draft.subcategory,
            location=draft.location,
            address=draft.address,
            created_at=ensure_utc(created_at),
            reporter_id=draft.reporter_id,
            radius_meters=draft.radius_meters,
            image_url=draft.image_url,
        )
        return await self.add_event(event)

    async def add_event(self, event: Event) -> Event:
        """Insert a fully formed event, keeping its id and timestamp."""
        if event.id in self._events:
            raise StoreError(f"duplicate key value: event {event.id} already exists")
        stored = self._write_event(event_to_row(event))
        await self._publish("insert", stored)
        return stored

    async def update_event_status(self, event_id: str, status: EventStatus) -> Event:
        row = self._events.get(event_id)
        if row is None:
            raise StoreError("Failed to update event status.")
        stored = self._write_event({**row, "status": status.value})
        await self._publish("update", stored)
        return stored

    async def update_event_fields(self, event_id: str, fields: dict) -> Event | None:
        unknown = set(fields) - MUTABLE_EVENT_FIELDS
        if unknown:
            raise StoreError(f"cannot update columns: {', '.join(sorted(unknown))}")
        row = self._events.get(event_id)
        if row is None:
            return None
        stored = self._write_event({**row, **fields})
        await self._publish("update", stored)
        return stored

    async def list_recent_reports(
        self, category: str, subcategory: str, since: datetime,
    ) -> list[Event]:
        since = ensure_utc(since)
        rows = [
            r for r in self._events.values()
            if r["category"] == category
            and r.get("subcategory") == subcategory
            and r["created_at"] >= since
        ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return [event_from_row(r) for r in rows]

    async def query_events(self, query: EventQuery, limit: int = 1000) -> list[Event]:
        rows = [r for r in self._events.values() if query.matches(r)]
        if query.order_by:
            rows.sort(key=lambda r: r[query.order_by], reverse=query.descending)
        return [event_from_row(r) for r in rows[:limit]]

    # -- profiles -------------------------------------------------------------

    async def get_profile(self, profile_id: str) -> ReporterProfile | None:
        row = self._profiles.get(profile_id)
        return profile_from_row(row) if row is not None else None

    async def get_or_create_profile(self, profile_id: str) -> ReporterProfile:
        row = self._profiles.get(profile_id)
        if row is not None:
            return profile_from_row(row)
        log.info("profile_created", profile=profile_id)
        return self._write_profile(profile_to_row(ReporterProfile(id=profile_id)))

    async def update_profile(self, profile: ReporterProfile) -> ReporterProfile:
        if profile.id not in self._profiles:
            raise StoreError("Failed to update reporter metrics.")
        return self._write_profile(profile_to_row(profile))
