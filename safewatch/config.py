"""Service configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: SAFEWATCH_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class StorageConfig:
    backend: str = "memory"  # "memory" or "file"
    base_dir: str = "data/store"


@dataclass
class ClusteringConfig:
    proximity_meters: float = 500.0
    minimum_events: int = 3
    lookback_hours: float = 24.0
    category: str = "crime-alert"
    subcategory: str = "pickpockets"


@dataclass
class RealtimeConfig:
    enabled: bool = True
    max_queue_size: int = 1_000
    base_retry_delay_seconds: float = 1.0
    max_retry_delay_seconds: float = 30.0


@dataclass
class LimitsConfig:
    max_query_events: int = 1_000
    max_feed_events: int = 500
    active_window_seconds: float = 3600.0


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    clustering: ClusteringConfig = field(default_factory=ClusteringConfig)
    realtime: RealtimeConfig = field(default_factory=RealtimeConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "SAFEWATCH_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "SAFEWATCH_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "SAFEWATCH_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "SAFEWATCH_STORAGE_BACKEND": lambda v: setattr(config.storage, "backend", v),
        "SAFEWATCH_STORAGE_BASE_DIR": lambda v: setattr(config.storage, "base_dir", v),
        "SAFEWATCH_CLUSTERING_PROXIMITY_METERS": lambda v: setattr(config.clustering, "proximity_meters", float(v)),
        "SAFEWATCH_CLUSTERING_MINIMUM_EVENTS": lambda v: setattr(config.clustering, "minimum_events", int(v)),
        "SAFEWATCH_CLUSTERING_LOOKBACK_HOURS": lambda v: setattr(config.clustering, "lookback_hours", float(v)),
        "SAFEWATCH_REALTIME_ENABLED": lambda v: setattr(config.realtime, "enabled", _parse_bool(v)),
        "SAFEWATCH_REALTIME_MAX_QUEUE_SIZE": lambda v: setattr(config.realtime, "max_queue_size", int(v)),
        "SAFEWATCH_LIMITS_MAX_QUERY_EVENTS": lambda v: setattr(config.limits, "max_query_events", int(v)),
        "SAFEWATCH_LIMITS_ACTIVE_WINDOW": lambda v: setattr(config.limits, "active_window_seconds", float(v)),
        "SAFEWATCH_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "SAFEWATCH_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    # Try to load YAML
    if config_path is None:
        config_path = Path(os.environ.get("SAFEWATCH_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section in fields(config):
            values = raw.get(section.name)
            if not isinstance(values, dict):
                continue
            target = getattr(config, section.name)
            for k, v in values.items():
                if hasattr(target, k):
                    setattr(target, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
