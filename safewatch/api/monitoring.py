"""Health check and monitoring endpoints."""

from __future__ import annotations

import json
from pathlib import Path

from fastapi import APIRouter

from safewatch.core.metrics import (
    BAN_DURATIONS_DAYS,
    INVALID_REPORTS_PER_BAN_TIER,
    POINTS_PER_LEVEL,
    PREMIUM_DAYS_PER_LEVEL,
)
from safewatch.core.models import CATEGORIES

router = APIRouter(prefix="/api/v1")

VERSION = "0.1.0"

# Load build info once at import time.
_BUILD_INFO_PATH = Path(__file__).parent.parent / "build_info.json"
_BUILD_INFO: dict = {}
if _BUILD_INFO_PATH.exists():
    try:
        _BUILD_INFO = json.loads(_BUILD_INFO_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        pass


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from safewatch.main import get_config, get_realtime, get_stats

    config = get_config()
    realtime = get_realtime()
    snapshot = get_stats().snapshot()
    result = {
        "status": "ok",
        "version": VERSION,
        "uptime_seconds": snapshot["uptime_seconds"],
        "storage_backend": config.storage.backend,
        "realtime_connected": realtime.is_connected if realtime is not None else False,
    }
    result.update(_BUILD_INFO)
    return result


@router.get("/stats")
async def stats() -> dict:
    """Service counters plus the number of recently active reporters."""
    from safewatch.main import get_stats

    return get_stats().snapshot()


@router.get("/config")
async def get_client_config() -> dict:
    """Parameters the client needs to render hotspots and reputation."""
    from safewatch.main import get_config

    cfg = get_config().clustering
    return {
        "categories": list(CATEGORIES),
        "hotspots": {
            "category": cfg.category,
            "subcategory": cfg.subcategory,
            "proximity_meters": cfg.proximity_meters,
            "minimum_events": cfg.minimum_events,
            "lookback_hours": cfg.lookback_hours,
        },
        "reputation": {
            "points_per_level": POINTS_PER_LEVEL,
            "premium_days_per_level": PREMIUM_DAYS_PER_LEVEL,
            "invalid_reports_per_ban_tier": INVALID_REPORTS_PER_BAN_TIER,
            "ban_durations_days": list(BAN_DURATIONS_DAYS),
        },
    }
