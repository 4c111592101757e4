"""SafeWatch core internal data models.

These are plain dataclasses with no framework dependencies.
Store rows and JSON bodies are converted to/from these at the boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from safewatch.core.errors import ValidationError

CATEGORIES = ("danger", "blocked-path", "event", "protest", "crime-alert")


class EventStatus(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    SPAM = "spam"
    FALSE = "false"

    @classmethod
    def coerce(cls, value: object) -> EventStatus:
        """Map a stored value to a status. Anything unknown reads as PENDING."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING

    @classmethod
    def parse(cls, value: object) -> EventStatus:
        """Strict variant of :meth:`coerce` for caller-supplied input."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"unknown status {value!r}, expected one of: {allowed}") from None


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class Event:
    """A user-submitted, geolocated safety report."""

    id: str
    category: str
    location: Location
    created_at: datetime
    title: str = ""
    description: str = ""
    subcategory: str | None = None
    address: str = ""
    status: EventStatus = EventStatus.PENDING
    reporter_id: str | None = None
    verification_count: int = 0
    is_active: bool = True
    radius_meters: float | None = None
    image_url: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "subcategory": self.subcategory,
            "location": self.location.to_dict(),
            "address": self.address,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "reporter_id": self.reporter_id,
            "verification_count": self.verification_count,
            "is_active": self.is_active,
            "radius_meters": self.radius_meters,
            "image_url": self.image_url,
        }


@dataclass(frozen=True)
class EventDraft:
    """A new report as submitted, before the store assigns id and timestamp."""

    title: str
    category: str
    location: Location
    reporter_id: str | None = None
    description: str = ""
    subcategory: str | None = None
    address: str = ""
    radius_meters: float | None = None
    image_url: str | None = None


@dataclass(frozen=True)
class ReporterProfile:
    id: str
    report_score: int = 0
    report_level: int = 0
    total_valid_reports: int = 0
    total_invalid_reports: int = 0
    report_ban_until: datetime | None = None
    report_ban_tier: int = 0
    premium_until: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "report_score": self.report_score,
            "report_level": self.report_level,
            "total_valid_reports": self.total_valid_reports,
            "total_invalid_reports": self.total_invalid_reports,
            "report_ban_until": _iso_or_none(self.report_ban_until),
            "report_ban_tier": self.report_ban_tier,
            "premium_until": _iso_or_none(self.premium_until),
        }


@dataclass(frozen=True)
class HotspotCluster:
    id: str
    center: Location
    radius_meters: float
    members: tuple[Event, ...] = ()

    @property
    def report_count(self) -> int:
        return len(self.members)


@dataclass(frozen=True)
class SafetyQueryFilters:
    """Filter set derived from a natural-language safety question."""

    timeframe_months: int | None = None
    categories: tuple[str, ...] = ()
    location_keywords: tuple[str, ...] = ()
    radius_meters: float | None = None
    coordinates: Location | None = None
    summary: str = ""


@dataclass(frozen=True)
class EventChange:
    """A row-level change notification published after a store write."""

    kind: str  # "insert" or "update"
    event_id: str
    event: Event | None = None


def _iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
