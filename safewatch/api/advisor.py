"""Safety advisor data endpoint.

The advisor front end extracts a filter set from the user's question; this
endpoint turns it into store predicates and returns the matching events.
Writing the prose answer is left to the caller's text-generation provider.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from safewatch.api.common import read_json_object
from safewatch.core.query_builder import build_event_query, normalize_filters, within_radius

router = APIRouter(prefix="/api/v1")

log = structlog.get_logger()


@router.post("/advisor/events")
async def advisor_events(request: Request) -> JSONResponse:
    """Body: ``{"timeframe_months", "categories", "location_keywords",
    "area_name", "radius_meters", "coordinates": {"lat", "lng"}, "summary"}``,
    every key optional."""
    from safewatch.main import get_config, get_store

    filters = normalize_filters(await read_json_object(request))
    query = build_event_query(filters)
    events = await get_store().query_events(query, limit=get_config().limits.max_query_events)

    prefiltered = len(events)
    if filters.radius_meters and filters.coordinates is not None:
        events = within_radius(events, filters.coordinates, filters.radius_meters)

    log.info("advisor_query", predicates=len(query.predicates),
             prefiltered=prefiltered, matched=len(events))
    return JSONResponse(content={
        "summary": filters.summary,
        "filters": {
            "timeframe_months": filters.timeframe_months,
            "categories": list(filters.categories),
            "location_keywords": list(filters.location_keywords),
            "radius_meters": filters.radius_meters,
            "coordinates": filters.coordinates.to_dict() if filters.coordinates else None,
        },
        "events": [e.to_dict() for e in events],
        "total": len(events),
    })
