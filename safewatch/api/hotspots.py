"""Hotspot API endpoints."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import structlog
from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from safewatch.core.clustering import ClusterOptions, clusters_to_geojson, detect_hotspots
from safewatch.core.models import utc_now

router = APIRouter(prefix="/api/v1")

log = structlog.get_logger()


@router.get("/hotspots")
async def get_hotspots(
    proximity_meters: float | None = Query(default=None, gt=0, le=10_000),
    minimum_events: int | None = Query(default=None, ge=2, le=100),
    lookback_hours: float | None = Query(default=None, gt=0, le=24 * 30),
) -> JSONResponse:
    """Return current hotspots as a GeoJSON FeatureCollection.

    Reads the recent reports of the configured subtype, clusters them and
    returns one Point feature per hotspot with its radius in the properties.
    Query parameters override the configured clustering options.
    """
    from safewatch.main import get_config, get_stats, get_store

    cfg = get_config().clustering
    options = ClusterOptions(
        proximity_meters=cfg.proximity_meters,
        minimum_events=cfg.minimum_events,
        lookback_hours=cfg.lookback_hours,
        category=cfg.category,
        subcategory=cfg.subcategory,
    )
    overrides = {
        k: v for k, v in {
            "proximity_meters": proximity_meters,
            "minimum_events": minimum_events,
            "lookback_hours": lookback_hours,
        }.items() if v is not None
    }
    options = replace(options, **overrides)

    now = utc_now()
    reports = await get_store().list_recent_reports(
        options.category, options.subcategory, since=now - timedelta(hours=options.lookback_hours),
    )
    clusters = detect_hotspots(reports, options, now=now)
    get_stats().record_hotspots(len(clusters))
    log.info("hotspots_served", reports=len(reports), clusters=len(clusters))
    return JSONResponse(content=clusters_to_geojson(clusters), media_type="application/geo+json")
