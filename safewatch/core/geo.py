"""Geographic helpers: great-circle distance and bounding boxes.

Spherical-Earth approximation throughout. Pure functions, no framework
dependencies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from safewatch.core.errors import ValidationError
from safewatch.core.models import Location

# Earth radius in meters (for Haversine).
EARTH_RADIUS_M = 6_371_000.0

# Meters per degree of latitude; longitude scales by cos(latitude).
METERS_PER_DEGREE = 111_320.0

# Longitude half-width used when cos(latitude) collapses near the poles.
POLAR_LNG_DELTA_DEG = 0.01

_MIN_LNG_SCALE = 1e-9


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def contains(self, location: Location) -> bool:
        return (
            self.min_lat <= location.lat <= self.max_lat
            and self.min_lng <= location.lng <= self.max_lng
        )


def validate_location(location: Location) -> Location:
    """Reject NaN / infinite coordinates instead of letting them poison math."""
    if not (math.isfinite(location.lat) and math.isfinite(location.lng)):
        raise ValidationError(
            f"non-finite coordinates: lat={location.lat!r}, lng={location.lng!r}",
        )
    return location


def distance_meters(a: Location, b: Location) -> float:
    """Great-circle distance in meters between two points."""
    validate_location(a)
    validate_location(b)
    rlat1, rlat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlng = math.radians(b.lng - a.lng)
    h = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlng / 2) ** 2
    # atan2 form stays in range when rounding pushes h a hair above 1.
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(max(0.0, 1 - h)))


def bounding_box(center: Location, radius_meters: float) -> BoundingBox:
    """Approximate square box around ``center`` with half-side ``radius_meters``.

    This is a pre-filter: points inside the box may still be farther than
    ``radius_meters`` from the center (the corners), so callers that need the
    true circle must follow up with :func:`distance_meters`.
    """
    validate_location(center)
    if not math.isfinite(radius_meters) or radius_meters < 0:
        raise ValidationError(f"invalid radius: {radius_meters!r}")

    lat_delta = radius_meters / METERS_PER_DEGREE
    lng_scale = math.cos(math.radians(center.lat)) * METERS_PER_DEGREE
    if abs(lng_scale) < _MIN_LNG_SCALE:
        lng_delta = POLAR_LNG_DELTA_DEG
    else:
        lng_delta = radius_meters / abs(lng_scale)

    return BoundingBox(
        min_lat=center.lat - lat_delta,
        max_lat=center.lat + lat_delta,
        min_lng=center.lng - lng_delta,
        max_lng=center.lng + lng_delta,
    )
