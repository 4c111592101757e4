"""Hotspot clustering: groups recent, nearby reports of one subtype.

Density-based flood fill over a proximity graph (DBSCAN with
``eps = proximity_meters`` and ``min_pts = minimum_events``). A report is
*dense* when it has at least ``minimum_events - 1`` neighbors within
``proximity_meters``; only dense reports seed a cluster or extend its
frontier, others join as passive border members.

Every dense seed starts a cluster with all of its neighbors. A border
report within reach of two clusters is a member of both; dense reports are
expanded once, so they never appear in two clusters.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog

from safewatch.core.geo import distance_meters, validate_location
from safewatch.core.models import Event, HotspotCluster, Location, ensure_utc, utc_now

log = structlog.get_logger()

# Every hotspot circle is at least this wide.
MIN_RADIUS_M = 200.0

# Safety margin added around the farthest member, as a fraction of that
# distance, clamped to [PADDING_MIN_M, PADDING_MAX_M].
PADDING_RATIO = 0.2
PADDING_MIN_M = 75.0
PADDING_MAX_M = 250.0

CLUSTER_ID_SEPARATOR = "|"


@dataclass(frozen=True)
class ClusterOptions:
    proximity_meters: float = 500.0
    minimum_events: int = 3
    lookback_hours: float = 24.0
    category: str = "crime-alert"
    subcategory: str = "pickpockets"


def _recent_matching(reports: list[Event], options: ClusterOptions, now: datetime) -> list[Event]:
    cutoff = now - timedelta(hours=options.lookback_hours)
    seen: set[str] = set()
    matching: list[Event] = []
    for report in reports:
        if report.category != options.category or report.subcategory != options.subcategory:
            continue
        if ensure_utc(report.created_at) < cutoff:
            continue
        if report.id in seen:
            continue
        validate_location(report.location)
        seen.add(report.id)
        matching.append(report)
    return matching


def _average_location(members: list[Event]) -> Location:
    count = len(members)
    return Location(
        lat=sum(m.location.lat for m in members) / count,
        lng=sum(m.location.lng for m in members) / count,
    )


def _cover_radius(center: Location, members: list[Event]) -> float:
    """Radius covering every member plus a proportional safety margin."""
    max_distance = max((distance_meters(center, m.location) for m in members), default=0.0)
    padding = min(max(max_distance * PADDING_RATIO, PADDING_MIN_M), PADDING_MAX_M)
    return max(max_distance + padding, MIN_RADIUS_M)


def _cluster_id(members: list[Event]) -> str:
    return CLUSTER_ID_SEPARATOR.join(sorted(m.id for m in members))


def detect_hotspots(
    reports: list[Event],
    options: ClusterOptions | None = None,
    now: datetime | None = None,
) -> list[HotspotCluster]:
    """Detect hotspot clusters among ``reports``.

    Only reports matching ``options.category`` / ``options.subcategory`` and
    created within ``options.lookback_hours`` of ``now`` take part. Clusters
    are returned in the order their seed report appears in the input.

    Raises ValidationError if a participating report has non-finite
    coordinates.
    """
    options = options or ClusterOptions()
    now = ensure_utc(now) if now is not None else utc_now()

    candidates = _recent_matching(reports, options, now)
    if not candidates:
        return []

    # Density is a property of the candidate set alone, so compute the
    # neighborhood of every report once.
    neighbors: dict[str, list[Event]] = {r.id: [] for r in candidates}
    for i, a in enumerate(candidates):
        for b in candidates[i + 1:]:
            if distance_meters(a.location, b.location) <= options.proximity_meters:
                neighbors[a.id].append(b)
                neighbors[b.id].append(a)

    # Keep each neighbor list in input order.
    position = {r.id: i for i, r in enumerate(candidates)}
    for neighbor_list in neighbors.values():
        neighbor_list.sort(key=lambda r: position[r.id])

    def is_dense(report: Event) -> bool:
        return len(neighbors[report.id]) + 1 >= options.minimum_events

    visited: set[str] = set()
    clusters: list[HotspotCluster] = []

    for seed in candidates:
        if seed.id in visited:
            continue
        visited.add(seed.id)

        if not is_dense(seed):
            continue

        members: list[Event] = [seed]
        member_ids = {seed.id}
        frontier: deque[Event] = deque()
        for n in neighbors[seed.id]:
            if n.id not in member_ids:
                members.append(n)
                member_ids.add(n.id)
                frontier.append(n)

        while frontier:
            current = frontier.popleft()
            if current.id in visited:
                continue
            visited.add(current.id)
            if not is_dense(current):
                continue
            for n in neighbors[current.id]:
                if n.id not in member_ids:
                    members.append(n)
                    member_ids.add(n.id)
                    frontier.append(n)

        if len(members) < options.minimum_events:
            log.debug("hotspot_discarded", seed=seed.id, members=len(members))
            continue

        center = _average_location(members)
        clusters.append(HotspotCluster(
            id=_cluster_id(members),
            center=center,
            radius_meters=_cover_radius(center, members),
            members=tuple(members),
        ))

    log.debug("hotspots_detected", candidates=len(candidates), clusters=len(clusters))
    return clusters


def clusters_to_geojson(clusters: list[HotspotCluster]) -> dict:
    """Convert clusters to a GeoJSON FeatureCollection."""
    features = []
    for c in clusters:
        created = [ensure_utc(m.created_at) for m in c.members]
        features.append({
            "type": "Feature",
            "id": c.id,
            "geometry": {
                "type": "Point",
                "coordinates": [round(c.center.lng, 6), round(c.center.lat, 6)],
            },
            "properties": {
                "radius_meters": round(c.radius_meters, 1),
                "report_count": c.report_count,
                "report_ids": [m.id for m in c.members],
                "first_seen": min(created).isoformat(),
                "last_seen": max(created).isoformat(),
            },
        })
    return {"type": "FeatureCollection", "features": features}
