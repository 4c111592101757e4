"""Shared test fixtures."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from httpx import ASGITransport, AsyncClient

import safewatch.main as main_module
from safewatch.config import AppConfig
from safewatch.core.models import Event, Location
from safewatch.core.moderation import ModerationService
from safewatch.core.stats import ServiceStats
from safewatch.storage.memory_store import InMemoryEventStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

# A point in central Barcelona; reports are placed around it.
ORIGIN = Location(lat=41.3851, lng=2.1734)

_ids = count(1)


def offset(origin: Location, north_m: float = 0.0, east_m: float = 0.0) -> Location:
    """Location ``north_m`` / ``east_m`` meters away from ``origin`` (small offsets)."""
    dlat = north_m / 111_320.0
    dlng = east_m / (111_320.0 * math.cos(math.radians(origin.lat)))
    return Location(lat=origin.lat + dlat, lng=origin.lng + dlng)


def make_event(
    location: Location = ORIGIN,
    *,
    id: str | None = None,
    category: str = "crime-alert",
    subcategory: str | None = "pickpockets",
    created_at: datetime | None = None,
    age: timedelta = timedelta(hours=1),
    **kwargs,
) -> Event:
    return Event(
        id=id or f"evt-{next(_ids):04d}",
        category=category,
        subcategory=subcategory,
        location=location,
        created_at=created_at or NOW - age,
        title=kwargs.pop("title", "Pickpocket near the metro"),
        **kwargs,
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> InMemoryEventStore:
    return InMemoryEventStore()


@pytest.fixture
def stats() -> ServiceStats:
    return ServiceStats()


@pytest.fixture
def service(store, stats) -> ModerationService:
    return ModerationService(store=store, stats=stats)


@pytest.fixture(autouse=True)
def _init_server(tmp_path, store, stats, service):
    """Initialize server singletons for every test."""
    config = AppConfig()
    config.storage.base_dir = str(tmp_path / "data")
    config.logging.level = "warning"
    config.realtime.enabled = False

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._store = store
    main_module._service = service
    main_module._realtime = None

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._store = None
    main_module._service = None
    main_module._realtime = None


@pytest.fixture
async def client():
    from safewatch.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


