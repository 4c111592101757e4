"""SafeWatch service — main entry point.

This is the only file that knows about concrete implementations.
It wires together the core, realtime, storage, and API layers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from safewatch.api.advisor import router as advisor_router
from safewatch.api.events import router as events_router
from safewatch.api.hotspots import router as hotspots_router
from safewatch.api.monitoring import router as monitoring_router
from safewatch.api.profiles import router as profiles_router
from safewatch.config import AppConfig, load_config
from safewatch.core.errors import (
    NotFoundError,
    ReportingBlockedError,
    StoreError,
    ValidationError,
)
from safewatch.core.models import EventChange
from safewatch.core.moderation import ModerationService
from safewatch.core.stats import ServiceStats
from safewatch.realtime.asyncio_channel import AsyncioEventChannel
from safewatch.realtime.manager import BackoffPolicy, RealtimeConnectionManager
from safewatch.storage.base import EventStore
from safewatch.storage.file_storage import FileEventStore
from safewatch.storage.memory_store import InMemoryEventStore

log = structlog.get_logger()

# Module-level singletons (set during startup)
_service: ModerationService | None = None
_store: EventStore | None = None
_stats: ServiceStats | None = None
_config: AppConfig | None = None
_realtime: RealtimeConnectionManager | None = None


def get_service() -> ModerationService:
    assert _service is not None, "Server not initialized"
    return _service


def get_store() -> EventStore:
    assert _store is not None, "Server not initialized"
    return _store


def get_stats() -> ServiceStats:
    assert _stats is not None, "Server not initialized"
    return _stats


def get_config() -> AppConfig:
    assert _config is not None, "Server not initialized"
    return _config


def get_realtime() -> RealtimeConnectionManager | None:
    return _realtime


def _setup_logging(config: AppConfig) -> None:
    """Configure structlog based on the logging config."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.logging.format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.logging.level.upper()),
        ),
    )


def build_store(config: AppConfig, channel: AsyncioEventChannel | None = None) -> EventStore:
    if config.storage.backend == "file":
        return FileEventStore(base_dir=config.storage.base_dir, changes=channel)
    if config.storage.backend == "memory":
        return InMemoryEventStore(changes=channel)
    raise ValueError(f"unknown storage backend {config.storage.backend!r}")


def _log_change(change: EventChange) -> None:
    status = change.event.status.value if change.event is not None else None
    log.debug("event_change", kind=change.kind, event_id=change.event_id, status=status)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    global _service, _store, _stats, _config, _realtime

    _config = load_config()
    _setup_logging(_config)

    log.info("server_starting",
             env=_config.server.env,
             storage_backend=_config.storage.backend,
             realtime=_config.realtime.enabled)

    # Create components
    channel = None
    if _config.realtime.enabled:
        channel = AsyncioEventChannel(max_size=_config.realtime.max_queue_size)
        _realtime = RealtimeConnectionManager(
            channel,
            backoff=BackoffPolicy(
                base_delay=_config.realtime.base_retry_delay_seconds,
                max_delay=_config.realtime.max_retry_delay_seconds,
            ),
        )
        _realtime.on_event(_log_change)
        await _realtime.connect()

    _stats = ServiceStats(active_window_seconds=_config.limits.active_window_seconds)
    _store = build_store(_config, channel)
    _service = ModerationService(store=_store, stats=_stats)

    log.info("server_started",
             host=_config.server.host,
             port=_config.server.port)

    yield

    # Shutdown
    if _realtime is not None:
        await _realtime.disconnect()
    if channel is not None:
        await channel.close()
    log.info("server_stopped")


app = FastAPI(
    title="SafeWatch",
    description="Community safety reports, hotspots and reporter moderation",
    version="0.1.0",
    lifespan=lifespan,
)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(404, str(exc))


@app.exception_handler(ValidationError)
async def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
    log.info("request_rejected", path=request.url.path, error=str(exc))
    return _error(400, str(exc))


@app.exception_handler(ReportingBlockedError)
async def _blocked(request: Request, exc: ReportingBlockedError) -> JSONResponse:
    return _error(403, str(exc), banned_until=exc.banned_until.isoformat())


@app.exception_handler(StoreError)
async def _store_failed(request: Request, exc: StoreError) -> JSONResponse:
    log.error("request_store_error", path=request.url.path, error=str(exc))
    return _error(500, str(exc))


app.include_router(events_router)
app.include_router(hotspots_router)
app.include_router(profiles_router)
app.include_router(advisor_router)
app.include_router(monitoring_router)


if __name__ == "__main__":
    import uvicorn

    _server_config = load_config().server
    uvicorn.run(app, host=_server_config.host, port=_server_config.port)
