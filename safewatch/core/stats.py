"""Service statistics and active-reporter tracking.

Tracks in-memory counters and a sliding window of recently active
reporters. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class ReporterActivity:
    """Tracks a single reporter's recent activity."""
    last_seen: float          # time.monotonic() timestamp
    reports_sent: int = 0


class ServiceStats:
    """Thread-safe service statistics.

    A reporter counts as active while their last submitted report is within
    ``active_window_seconds`` (default 1 hour).
    """

    def __init__(self, active_window_seconds: float = 3600.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.reports_received: int = 0
        self.reports_rejected: int = 0
        self.verifications: int = 0
        self.status_transitions: int = 0
        self.status_noops: int = 0
        self.bans_issued: int = 0
        self.premium_grants: int = 0
        self.store_errors: int = 0
        self.hotspot_runs: int = 0
        self.last_hotspot_count: int = 0

        # reporter_id → ReporterActivity
        self._reporters: dict[str, ReporterActivity] = {}

    def record_report(self, reporter_id: str | None) -> None:
        now = time.monotonic()
        with self._lock:
            self.reports_received += 1
            if not reporter_id:
                return
            if reporter_id in self._reporters:
                activity = self._reporters[reporter_id]
                activity.last_seen = now
                activity.reports_sent += 1
            else:
                self._reporters[reporter_id] = ReporterActivity(last_seen=now, reports_sent=1)

    def record_rejected(self, count: int = 1) -> None:
        with self._lock:
            self.reports_rejected += count

    def record_verification(self) -> None:
        with self._lock:
            self.verifications += 1

    def record_transition(self, *, noop: bool = False) -> None:
        with self._lock:
            if noop:
                self.status_noops += 1
            else:
                self.status_transitions += 1

    def record_ban(self) -> None:
        with self._lock:
            self.bans_issued += 1

    def record_premium_grant(self) -> None:
        with self._lock:
            self.premium_grants += 1

    def record_store_error(self) -> None:
        with self._lock:
            self.store_errors += 1

    def record_hotspots(self, count: int) -> None:
        with self._lock:
            self.hotspot_runs += 1
            self.last_hotspot_count = count

    def _prune_stale_reporters(self, now: float) -> None:
        """Remove reporters not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [rid for rid, act in self._reporters.items() if act.last_seen < cutoff]
        for rid in stale:
            del self._reporters[rid]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_reporters(now_mono)
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "reports_received": self.reports_received,
                "reports_rejected": self.reports_rejected,
                "verifications": self.verifications,
                "status_transitions": self.status_transitions,
                "status_noops": self.status_noops,
                "bans_issued": self.bans_issued,
                "premium_grants": self.premium_grants,
                "store_errors": self.store_errors,
                "hotspot_runs": self.hotspot_runs,
                "last_hotspot_count": self.last_hotspot_count,
                "active_reporters": {
                    "total": len(self._reporters),
                    "window_seconds": self._active_window,
                },
            }
