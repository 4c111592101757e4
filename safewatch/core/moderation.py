"""Moderation service: report intake, status changes and reporter metrics.

This is the core business logic. It depends on the EventStore protocol, not
a concrete implementation.

A status change is two separate writes, the event row first and then the
reporter profile. There is no rollback between them: if the profile write
fails the event keeps its new status, the failure is logged as
``reporter_metrics_inconsistent`` and the StoreError propagates so the
caller can reconcile.
"""

from __future__ import annotations

import math
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, TYPE_CHECKING

import structlog

from safewatch.core.errors import (
    NotFoundError,
    ReportingBlockedError,
    SafeWatchError,
    StoreError,
    ValidationError,
)
from safewatch.core.metrics import apply_transition, is_ban_active
from safewatch.core.models import (
    CATEGORIES,
    Event,
    EventDraft,
    EventStatus,
    ReporterProfile,
    ensure_utc,
    utc_now,
)

if TYPE_CHECKING:
    from safewatch.core.stats import ServiceStats
    from safewatch.storage.base import EventStore

log = structlog.get_logger()

MAX_TITLE_LENGTH = 120


def validate_draft(draft: EventDraft) -> None:
    if not draft.title.strip():
        raise ValidationError("title is required")
    if len(draft.title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"title must be at most {MAX_TITLE_LENGTH} characters")
    if draft.category not in CATEGORIES:
        raise ValidationError(f"unknown category {draft.category!r}")
    lat, lng = draft.location.lat, draft.location.lng
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError(f"non-finite coordinates: lat={lat!r}, lng={lng!r}")
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise ValidationError(f"coordinates out of range: lat={lat}, lng={lng}")
    if draft.radius_meters is not None and not (
        math.isfinite(draft.radius_meters) and draft.radius_meters > 0
    ):
        raise ValidationError("radius_meters must be a positive number")


class ModerationService:
    """Creates reports, moves them through statuses and keeps reporter
    profiles in step."""

    def __init__(self, store: EventStore, stats: ServiceStats) -> None:
        self._store = store
        self._stats = stats

    @contextmanager
    def _store_step(self, step: str, **context) -> Iterator[None]:
        """Normalize store failures to StoreError, keeping the message."""
        try:
            yield
        except StoreError as exc:
            self._stats.record_store_error()
            log.error("store_call_failed", step=step, error=str(exc), **context)
            raise
        except SafeWatchError:
            raise
        except Exception as exc:
            self._stats.record_store_error()
            log.error("store_call_failed", step=step, error=str(exc), exc_info=True, **context)
            raise StoreError(str(exc)) from exc

    async def get_event(self, event_id: str) -> Event:
        with self._store_step("get_event", event_id=event_id):
            event = await self._store.get_event_by_id(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found.")
        return event

    async def get_profile(self, reporter_id: str) -> ReporterProfile:
        with self._store_step("get_profile", reporter=reporter_id):
            profile = await self._store.get_profile(reporter_id)
        if profile is None:
            raise NotFoundError(f"Profile {reporter_id} not found.")
        return profile

    async def submit_report(self, draft: EventDraft, now: datetime | None = None) -> Event:
        """Store a new report as ``pending``.

        Raises ValidationError for malformed drafts and ReportingBlockedError
        while the reporter is banned.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        try:
            validate_draft(draft)
        except ValidationError:
            self._stats.record_rejected()
            raise

        if draft.reporter_id:
            with self._store_step("get_profile", reporter=draft.reporter_id):
                profile = await self._store.get_profile(draft.reporter_id)
            if profile is not None and is_ban_active(profile, now):
                self._stats.record_rejected()
                log.info("report_blocked", reporter=draft.reporter_id,
                         banned_until=profile.report_ban_until.isoformat())
                raise ReportingBlockedError(draft.reporter_id, profile.report_ban_until)

        with self._store_step("insert_event", reporter=draft.reporter_id):
            event = await self._store.insert_event(draft, now)

        self._stats.record_report(draft.reporter_id)
        log.info("report_submitted", event_id=event.id, category=event.category,
                 subcategory=event.subcategory, reporter=event.reporter_id)
        return event

    async def verify_event(self, event_id: str) -> Event:
        """Count one more community verification for the event."""
        current = await self.get_event(event_id)
        with self._store_step("verify_event", event_id=event_id):
            updated = await self._store.update_event_fields(
                event_id, {"verification_count": current.verification_count + 1},
            )
        if updated is None:
            raise NotFoundError(f"Event {event_id} not found.")
        self._stats.record_verification()
        log.info("event_verified", event_id=event_id, count=updated.verification_count)
        return updated

    async def update_event_status(
        self,
        event_id: str,
        next_status: EventStatus | str,
        now: datetime | None = None,
    ) -> Event:
        """Move an event to ``next_status`` and apply the reporter metrics.

        Steps, strictly in order: read event, write event, read-or-create
        profile, write profile. Returns the updated event, or the unchanged
        event when the status does not change.
        """
        next_status = EventStatus.parse(next_status)
        now = ensure_utc(now) if now is not None else utc_now()

        current = await self.get_event(event_id)
        previous_status = EventStatus.coerce(current.status)

        if previous_status == next_status:
            self._stats.record_transition(noop=True)
            log.debug("event_status_unchanged", event_id=event_id, status=next_status.value)
            return current

        with self._store_step("update_event_status", event_id=event_id):
            updated = await self._store.update_event_status(event_id, next_status)

        self._stats.record_transition()
        log.info("event_status_updated", event_id=event_id,
                 previous=previous_status.value, next=next_status.value)

        if current.reporter_id:
            try:
                await self._apply_reporter_metrics(
                    current.reporter_id, previous_status, next_status, now,
                )
            except StoreError:
                log.error("reporter_metrics_inconsistent", event_id=event_id,
                          reporter=current.reporter_id,
                          previous=previous_status.value, next=next_status.value)
                raise

        return updated

    async def _apply_reporter_metrics(
        self,
        reporter_id: str,
        previous_status: EventStatus,
        next_status: EventStatus,
        now: datetime,
    ) -> ReporterProfile:
        with self._store_step("get_or_create_profile", reporter=reporter_id):
            profile = await self._store.get_or_create_profile(reporter_id)

        updated = apply_transition(profile, previous_status, next_status, now)

        with self._store_step("update_profile", reporter=reporter_id):
            saved = await self._store.update_profile(updated)

        if updated.report_ban_tier > profile.report_ban_tier:
            self._stats.record_ban()
            log.warning("reporter_ban_issued", reporter=reporter_id,
                        tier=updated.report_ban_tier,
                        banned_until=updated.report_ban_until.isoformat())
        elif profile.report_ban_until is not None and updated.report_ban_until is None:
            log.info("reporter_ban_lifted", reporter=reporter_id)

        if updated.report_level > profile.report_level:
            self._stats.record_premium_grant()
            log.info("reporter_level_up", reporter=reporter_id,
                     level=updated.report_level,
                     premium_until=updated.premium_until.isoformat())

        log.debug("reporter_metrics_applied", reporter=reporter_id,
                  score=updated.report_score, level=updated.report_level,
                  valid=updated.total_valid_reports, invalid=updated.total_invalid_reports)
        return saved
