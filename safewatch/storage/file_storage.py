"""File-based storage implementation.

Every row write is appended to a JSON Lines log:
- base_dir/events.jsonl   (one full event row per line)
- base_dir/profiles.jsonl (one full profile row per line)

On startup the logs are replayed in order; the last line for an id wins.
The in-memory working set answers all reads.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from safewatch.core.errors import StoreError
from safewatch.storage.memory_store import InMemoryEventStore
from safewatch.storage.rows import (
    EVENT_TIMESTAMP_FIELDS,
    PROFILE_TIMESTAMP_FIELDS,
    row_from_json,
    row_to_json,
)

if TYPE_CHECKING:
    from safewatch.realtime.base import EventChannel

log = structlog.get_logger()


class FileEventStore(InMemoryEventStore):
    """EventStore persisted as append-only JSON Lines files on disk."""

    def __init__(self, base_dir: str | Path, changes: EventChannel | None = None) -> None:
        super().__init__(changes=changes)
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._events_path = self._base_dir / "events.jsonl"
        self._profiles_path = self._base_dir / "profiles.jsonl"
        self._events.update(self._replay(self._events_path, EVENT_TIMESTAMP_FIELDS))
        self._profiles.update(self._replay(self._profiles_path, PROFILE_TIMESTAMP_FIELDS))
        log.info("file_store_loaded", base_dir=str(self._base_dir),
                 events=len(self._events), profiles=len(self._profiles))

    def _replay(self, path: Path, timestamp_fields: tuple[str, ...]) -> dict[str, dict]:
        rows: dict[str, dict] = {}
        if not path.exists():
            return rows
        with open(path) as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    row = row_from_json(json.loads(line), timestamp_fields)
                    rows[row["id"]] = row
                except (json.JSONDecodeError, KeyError, ValueError) as exc:
                    raise StoreError(f"{path}:{line_no}: corrupt row: {exc}") from exc
        return rows

    def _append(self, path: Path, row: dict, timestamp_fields: tuple[str, ...]) -> None:
        entry = json.dumps(row_to_json(row, timestamp_fields), separators=(",", ":"))
        try:
            with open(path, "a") as f:
                f.write(entry + "\n")
        except OSError as exc:
            raise StoreError(str(exc)) from exc
        log.debug("row_written", id=row["id"], path=str(path))

    def _persist_event(self, row: dict) -> None:
        self._append(self._events_path, row, EVENT_TIMESTAMP_FIELDS)

    def _persist_profile(self, row: dict) -> None:
        self._append(self._profiles_path, row, PROFILE_TIMESTAMP_FIELDS)
