"""In-memory feed helpers: filtering, grouping and ordering of events."""

from __future__ import annotations

from datetime import datetime, timedelta

from safewatch.core.models import Event, ensure_utc, utc_now


def filter_events(
    events: list[Event],
    categories: list[str] | None = None,
    timeframe_hours: float | None = None,
    active_only: bool = False,
    now: datetime | None = None,
) -> list[Event]:
    wanted = {c for c in categories or [] if c}
    cutoff = None
    if timeframe_hours is not None and timeframe_hours > 0:
        now = ensure_utc(now) if now is not None else utc_now()
        cutoff = now - timedelta(hours=timeframe_hours)

    result = []
    for event in events:
        if wanted and event.category not in wanted:
            continue
        if cutoff is not None and ensure_utc(event.created_at) < cutoff:
            continue
        if active_only and not event.is_active:
            continue
        result.append(event)
    return result


def group_events_by_category(events: list[Event]) -> dict[str, list[Event]]:
    groups: dict[str, list[Event]] = {}
    for event in events:
        groups.setdefault(event.category, []).append(event)
    return groups


def sort_events_by_recency(events: list[Event]) -> list[Event]:
    """Newest first. Stable for equal timestamps."""
    return sorted(events, key=lambda e: ensure_utc(e.created_at), reverse=True)
