"""Translate a safety filter set into store predicates.

The predicates are small frozen dataclasses that any store adapter can
either translate to its own query language or evaluate row by row with
``Predicate.matches``. Rows are flat dicts as produced by
``safewatch.storage.rows.event_to_row``.
"""

from __future__ import annotations

import calendar
import functools
import math
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from safewatch.core.errors import ValidationError
from safewatch.core.geo import bounding_box, distance_meters, validate_location
from safewatch.core.models import (
    CATEGORIES,
    Event,
    Location,
    SafetyQueryFilters,
    ensure_utc,
    utc_now,
)

KEYWORD_FIELDS = ("address", "title", "description")

MAX_TIMEFRAME_MONTHS = 24
MIN_RADIUS_M = 50.0
MAX_RADIUS_M = 25_000.0
MIN_KEYWORD_LEN = 2
MAX_KEYWORD_LEN = 60

DEFAULT_SUMMARY = "No additional filters were derived; using defaults from the request."


# -- Predicates ---------------------------------------------------------------

@dataclass(frozen=True)
class Gte:
    field: str
    value: Any

    def matches(self, row: dict) -> bool:
        actual = row.get(self.field)
        return actual is not None and actual >= self.value


@dataclass(frozen=True)
class In:
    field: str
    values: tuple

    def matches(self, row: dict) -> bool:
        return row.get(self.field) in self.values


@dataclass(frozen=True)
class Between:
    """Inclusive range."""

    field: str
    low: float
    high: float

    def matches(self, row: dict) -> bool:
        actual = row.get(self.field)
        return actual is not None and self.low <= actual <= self.high


@dataclass(frozen=True)
class Contains:
    """Case-insensitive LIKE match. ``pattern`` uses ``%``/``_`` wildcards
    with ``\\`` as the escape character."""

    field: str
    pattern: str

    def matches(self, row: dict) -> bool:
        actual = row.get(self.field)
        if not actual:
            return False
        return like_to_regex(self.pattern).fullmatch(str(actual)) is not None


@dataclass(frozen=True)
class AnyOf:
    predicates: tuple

    def matches(self, row: dict) -> bool:
        return any(p.matches(row) for p in self.predicates)


@dataclass(frozen=True)
class EventQuery:
    predicates: tuple = ()
    order_by: str = "created_at"
    descending: bool = True

    def matches(self, row: dict) -> bool:
        return all(p.matches(row) for p in self.predicates)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so they match literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@functools.lru_cache(maxsize=256)
def like_to_regex(pattern: str) -> re.Pattern:
    parts: list[str] = []
    chars = iter(pattern)
    for ch in chars:
        if ch == "\\":
            parts.append(re.escape(next(chars, "\\")))
        elif ch == "%":
            parts.append(".*")
        elif ch == "_":
            parts.append(".")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


# -- Builder ------------------------------------------------------------------

def subtract_months(moment: datetime, months: int) -> datetime:
    """Calendar-month subtraction, clamping the day to the target month."""
    total = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def keyword_group(keywords: tuple[str, ...] | list[str]) -> AnyOf | None:
    predicates = []
    for keyword in keywords:
        cleaned = keyword.strip()
        if len(cleaned) <= 1:
            continue
        pattern = f"%{escape_like(cleaned)}%"
        predicates.extend(Contains(field, pattern) for field in KEYWORD_FIELDS)
    return AnyOf(tuple(predicates)) if predicates else None


def build_event_query(filters: SafetyQueryFilters, now: datetime | None = None) -> EventQuery:
    """Build the predicates for ``filters``.

    The radius is applied as a bounding box, which over-selects near the
    corners; use :func:`within_radius` for the exact circle.
    """
    now = ensure_utc(now) if now is not None else utc_now()
    predicates: list = []

    if filters.timeframe_months:
        predicates.append(Gte("created_at", subtract_months(now, filters.timeframe_months)))

    if filters.categories:
        predicates.append(In("category", tuple(filters.categories)))

    group = keyword_group(filters.location_keywords)
    if group is not None:
        predicates.append(group)

    if filters.radius_meters and filters.coordinates is not None:
        box = bounding_box(filters.coordinates, filters.radius_meters)
        predicates.append(Between("lat", box.min_lat, box.max_lat))
        predicates.append(Between("lng", box.min_lng, box.max_lng))

    return EventQuery(predicates=tuple(predicates))


def within_radius(events: list[Event], center: Location, radius_meters: float) -> list[Event]:
    """Exact distance check to follow a bounding-box pre-filter."""
    return [e for e in events if distance_meters(center, e.location) <= radius_meters]


# -- Normalization of extracted filters ---------------------------------------

def _number(value: Any, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be finite")
    return float(value)


def _string_list(value: Any, name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{name} must be a list of strings")
    return list(value)


def _dedupe(values: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


def parse_coordinates(value: Any) -> Location | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("coordinates must be an object with lat and lng")
    lat = _number(value.get("lat"), "coordinates.lat")
    lng = _number(value.get("lng"), "coordinates.lng")
    if lat is None or lng is None:
        raise ValidationError("coordinates must have both lat and lng")
    return validate_location(Location(lat=lat, lng=lng))


def normalize_filters(raw: dict) -> SafetyQueryFilters:
    """Validate and clamp a filter set coming from the advisor front end.

    ``raw`` uses snake_case keys: ``timeframe_months``, ``categories``,
    ``location_keywords``, ``area_name``, ``radius_meters``, ``coordinates``
    and ``summary``. Unknown categories are dropped; out-of-range numbers are
    clamped; wrong types raise ValidationError.
    """
    timeframe = _number(raw.get("timeframe_months"), "timeframe_months")
    if timeframe is not None and timeframe <= 0:
        raise ValidationError("timeframe_months must be positive")
    timeframe_months = (
        max(1, min(int(round(timeframe)), MAX_TIMEFRAME_MONTHS)) if timeframe is not None else None
    )

    categories = _dedupe([
        c for c in _string_list(raw.get("categories"), "categories") if c in CATEGORIES
    ])

    keywords = _string_list(raw.get("location_keywords"), "location_keywords")
    area_name = raw.get("area_name")
    if isinstance(area_name, str):
        keywords.append(area_name)
    location_keywords = _dedupe([
        k.strip() for k in keywords
        if MIN_KEYWORD_LEN <= len(k.strip()) <= MAX_KEYWORD_LEN
    ])

    radius = _number(raw.get("radius_meters"), "radius_meters")
    radius_meters = max(MIN_RADIUS_M, min(radius, MAX_RADIUS_M)) if radius is not None else None

    coordinates = parse_coordinates(raw.get("coordinates"))

    filters = SafetyQueryFilters(
        timeframe_months=timeframe_months,
        categories=categories,
        location_keywords=location_keywords,
        radius_meters=radius_meters,
        coordinates=coordinates,
    )
    summary = raw.get("summary")
    if isinstance(summary, str) and summary.strip():
        return _with_summary(filters, summary.strip())
    return _with_summary(filters, summarize_filters(filters))


def _with_summary(filters: SafetyQueryFilters, summary: str) -> SafetyQueryFilters:
    return replace(filters, summary=summary)


def summarize_filters(filters: SafetyQueryFilters) -> str:
    parts: list[str] = []
    if filters.timeframe_months:
        plural = "s" if filters.timeframe_months > 1 else ""
        parts.append(f"Events from the last {filters.timeframe_months} month{plural}.")
    if filters.categories:
        parts.append(f"Categories: {', '.join(filters.categories)}.")
    if filters.location_keywords:
        parts.append(f"Keyword focus: {', '.join(filters.location_keywords)}.")
    if filters.radius_meters:
        parts.append(f"Radius: ~{round(filters.radius_meters)} meters.")
    return " ".join(parts) or DEFAULT_SUMMARY
