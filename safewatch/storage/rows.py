"""Row <-> model conversion at the store boundary.

Rows are flat dicts shaped like the ``events`` and ``profiles`` tables.
Timestamps are datetimes in memory and ISO-8601 strings on disk; nullable
counters read as 0 and unknown statuses read as pending.
"""

from __future__ import annotations

from datetime import datetime

from safewatch.core.models import Event, EventStatus, Location, ReporterProfile, ensure_utc

EVENT_TIMESTAMP_FIELDS = ("created_at",)
PROFILE_TIMESTAMP_FIELDS = ("report_ban_until", "premium_until")


def _parse_ts(value: datetime | str | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value))


def event_to_row(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "category": event.category,
        "subcategory": event.subcategory,
        "lat": event.location.lat,
        "lng": event.location.lng,
        "address": event.address,
        "created_at": ensure_utc(event.created_at),
        "status": event.status.value,
        "reporter_id": event.reporter_id,
        "verification_count": event.verification_count,
        "is_active": event.is_active,
        "radius_meters": event.radius_meters,
        "image_url": event.image_url,
    }


def event_from_row(row: dict) -> Event:
    return Event(
        id=str(row["id"]),
        title=row.get("title") or "",
        description=row.get("description") or "",
        category=row["category"],
        subcategory=row.get("subcategory"),
        location=Location(lat=float(row["lat"]), lng=float(row["lng"])),
        address=row.get("address") or "",
        created_at=_parse_ts(row["created_at"]),
        status=EventStatus.coerce(row.get("status")),
        reporter_id=row.get("reporter_id"),
        verification_count=row.get("verification_count") or 0,
        is_active=row.get("is_active") if row.get("is_active") is not None else True,
        radius_meters=row.get("radius_meters"),
        image_url=row.get("image_url"),
    )


def profile_to_row(profile: ReporterProfile) -> dict:
    return {
        "id": profile.id,
        "report_score": profile.report_score,
        "report_level": profile.report_level,
        "total_valid_reports": profile.total_valid_reports,
        "total_invalid_reports": profile.total_invalid_reports,
        "report_ban_until": profile.report_ban_until,
        "report_ban_tier": profile.report_ban_tier,
        "premium_until": profile.premium_until,
    }


def profile_from_row(row: dict) -> ReporterProfile:
    return ReporterProfile(
        id=str(row["id"]),
        report_score=row.get("report_score") or 0,
        report_level=row.get("report_level") or 0,
        total_valid_reports=row.get("total_valid_reports") or 0,
        total_invalid_reports=row.get("total_invalid_reports") or 0,
        report_ban_until=_parse_ts(row.get("report_ban_until")),
        report_ban_tier=row.get("report_ban_tier") or 0,
        premium_until=_parse_ts(row.get("premium_until")),
    )


def row_to_json(row: dict, timestamp_fields: tuple[str, ...]) -> dict:
    out = dict(row)
    for key in timestamp_fields:
        if isinstance(out.get(key), datetime):
            out[key] = out[key].isoformat()
    return out


def row_from_json(data: dict, timestamp_fields: tuple[str, ...]) -> dict:
    row = dict(data)
    for key in timestamp_fields:
        row[key] = _parse_ts(row.get(key))
    return row
