"""Event report API endpoints.

This is the thin FastAPI adapter. It parses JSON bodies into internal
models and calls the moderation service; core errors are turned into HTTP
responses by the handlers registered in ``safewatch.main``.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from safewatch.api.common import optional_str, read_json_object
from safewatch.core.errors import ValidationError
from safewatch.core.feed import filter_events, group_events_by_category, sort_events_by_recency
from safewatch.core.models import EventDraft
from safewatch.core.query_builder import EventQuery, In, parse_coordinates

router = APIRouter(prefix="/api/v1")


def _parse_json_draft(body: dict) -> EventDraft:
    """Parse a new report from JSON."""
    location = parse_coordinates(body.get("location"))
    if location is None:
        raise ValidationError("location is required")

    radius = body.get("radius_meters")
    if radius is not None and (isinstance(radius, bool) or not isinstance(radius, (int, float))):
        raise ValidationError("radius_meters must be a number")

    return EventDraft(
        title=optional_str(body, "title") or "",
        description=optional_str(body, "description") or "",
        category=optional_str(body, "category") or "",
        subcategory=optional_str(body, "subcategory"),
        location=location,
        address=optional_str(body, "address") or "",
        reporter_id=optional_str(body, "reporter_id"),
        radius_meters=float(radius) if radius is not None else None,
        image_url=optional_str(body, "image_url"),
    )


@router.post("/events")
async def submit_event(request: Request) -> JSONResponse:
    """Submit a new report. It starts out as ``pending``."""
    from safewatch.main import get_service

    draft = _parse_json_draft(await read_json_object(request))
    event = await get_service().submit_report(draft)
    return JSONResponse(content={"event": event.to_dict()}, status_code=201)


@router.get("/events")
async def list_events(
    category: list[str] | None = Query(default=None),
    timeframe_hours: float | None = Query(default=None, gt=0),
    active_only: bool = False,
    group_by_category: bool = False,
    limit: int = Query(default=100, ge=1, le=1000),
) -> JSONResponse:
    """Return the feed, newest first, optionally with ids grouped by category."""
    from safewatch.main import get_config, get_store

    config = get_config()
    # The store row limit applies after the category and active filters.
    predicates = []
    categories = tuple(c for c in category or [] if c)
    if categories:
        predicates.append(In("category", categories))
    if active_only:
        predicates.append(In("is_active", (True,)))
    events = await get_store().query_events(
        EventQuery(predicates=tuple(predicates)), limit=config.limits.max_feed_events,
    )
    events = sort_events_by_recency(filter_events(events, timeframe_hours=timeframe_hours))[:limit]
    content = {
        "events": [e.to_dict() for e in events],
        "total": len(events),
    }
    if group_by_category:
        content["by_category"] = {
            name: [e.id for e in group]
            for name, group in group_events_by_category(events).items()
        }
    return JSONResponse(content=content)


@router.get("/events/{event_id}")
async def get_event(event_id: str) -> JSONResponse:
    from safewatch.main import get_service

    event = await get_service().get_event(event_id)
    return JSONResponse(content={"event": event.to_dict()})


@router.patch("/events/{event_id}/status")
async def update_event_status(event_id: str, request: Request) -> JSONResponse:
    """Moderate an event: body ``{"status": "pending|valid|spam|false"}``."""
    from safewatch.main import get_service

    body = await read_json_object(request)
    if "status" not in body:
        raise ValidationError("status is required")
    event = await get_service().update_event_status(event_id, body["status"])
    return JSONResponse(content={"event": event.to_dict()})


@router.post("/events/{event_id}/verify")
async def verify_event(event_id: str) -> JSONResponse:
    from safewatch.main import get_service

    event = await get_service().verify_event(event_id)
    return JSONResponse(content={"event": event.to_dict()})
