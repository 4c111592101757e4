"""Tests for ServiceStats and active reporter tracking."""

from __future__ import annotations

import time

from safewatch.core.stats import ServiceStats


def test_initial_stats():
    stats = ServiceStats()
    snap = stats.snapshot()
    assert snap["reports_received"] == 0
    assert snap["status_transitions"] == 0
    assert snap["active_reporters"]["total"] == 0
    assert snap["active_reporters"]["window_seconds"] == 3600.0


def test_record_report():
    stats = ServiceStats()
    stats.record_report("reporter-a")
    stats.record_report("reporter-b")
    stats.record_report("reporter-a")

    snap = stats.snapshot()
    assert snap["reports_received"] == 3
    assert snap["active_reporters"]["total"] == 2


def test_anonymous_reports_are_counted_but_not_tracked():
    stats = ServiceStats()
    stats.record_report(None)
    stats.record_report("")

    snap = stats.snapshot()
    assert snap["reports_received"] == 2
    assert snap["active_reporters"]["total"] == 0


def test_stale_reporters_pruned():
    """Reporters older than the active window should be pruned from stats."""
    stats = ServiceStats(active_window_seconds=0.1)
    stats.record_report("reporter-e")

    snap = stats.snapshot()
    assert snap["active_reporters"]["total"] == 1

    # Wait for the window to expire
    time.sleep(0.15)

    snap = stats.snapshot()
    assert snap["active_reporters"]["total"] == 0


def test_transition_counters():
    stats = ServiceStats()
    stats.record_transition()
    stats.record_transition()
    stats.record_transition(noop=True)

    snap = stats.snapshot()
    assert snap["status_transitions"] == 2
    assert snap["status_noops"] == 1


def test_moderation_counters():
    stats = ServiceStats()
    stats.record_rejected(2)
    stats.record_verification()
    stats.record_ban()
    stats.record_premium_grant()
    stats.record_store_error()

    snap = stats.snapshot()
    assert snap["reports_rejected"] == 2
    assert snap["verifications"] == 1
    assert snap["bans_issued"] == 1
    assert snap["premium_grants"] == 1
    assert snap["store_errors"] == 1


def test_hotspot_runs():
    stats = ServiceStats()
    stats.record_hotspots(4)
    stats.record_hotspots(1)

    snap = stats.snapshot()
    assert snap["hotspot_runs"] == 2
    assert snap["last_hotspot_count"] == 1
