"""Tests for the reporter reputation state machine."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from itertools import product

import pytest

from conftest import NOW
from safewatch.core.metrics import (
    apply_transition,
    ban_duration,
    is_ban_active,
    level_for_score,
    premium_state,
    profile_summary,
)
from safewatch.core.models import EventStatus, ReporterProfile

P, V, S, F = EventStatus.PENDING, EventStatus.VALID, EventStatus.SPAM, EventStatus.FALSE
DAY = timedelta(days=1)


@pytest.fixture
def fresh() -> ReporterProfile:
    return ReporterProfile(id="reporter-1")


def _apply_many(profile, transitions, now=NOW):
    for previous, nxt in transitions:
        profile = apply_transition(profile, previous, nxt, now)
    return profile


def test_pending_to_valid(fresh):
    p = apply_transition(fresh, P, V, NOW)
    assert p.report_score == 1
    assert p.total_valid_reports == 1
    assert p.total_invalid_reports == 0
    assert p.report_level == 0
    assert p.report_ban_tier == 0
    assert p.report_ban_until is None
    assert p.premium_until is None


def test_pending_to_spam_goes_negative(fresh):
    p = apply_transition(fresh, P, S, NOW)
    assert p.report_score == -1
    assert p.total_invalid_reports == 1
    assert p.report_level == 0


@pytest.mark.parametrize("status", list(EventStatus))
def test_same_status_is_a_no_op(status):
    profile = ReporterProfile(
        id="r", report_score=7, report_level=3, total_valid_reports=2,
        total_invalid_reports=4, report_ban_until=NOW + DAY, report_ban_tier=1,
        premium_until=NOW - DAY,
    )
    assert apply_transition(profile, status, status, NOW) == profile


@pytest.mark.parametrize("score,level", [(-5, 0), (0, 0), (19, 0), (20, 1), (39, 1), (40, 2), (100, 5)])
def test_level_thresholds(score, level):
    assert level_for_score(score) == level


def test_three_spams_issue_a_one_day_ban(fresh):
    p = _apply_many(fresh, [(P, S)] * 2)
    assert p.report_ban_tier == 0
    assert p.report_ban_until is None

    p = apply_transition(p, P, S, NOW)
    assert p.total_invalid_reports == 3
    assert p.report_ban_tier == 1
    assert p.report_ban_until == NOW + DAY
    assert p.report_score == -3
    assert is_ban_active(p, NOW)
    assert not is_ban_active(p, NOW + DAY)


def test_correction_lifts_the_ban(fresh):
    p = _apply_many(fresh, [(P, S)] * 3)
    p = apply_transition(p, S, V, NOW + timedelta(hours=2))

    assert p.report_score == -3 + 2
    assert p.total_invalid_reports == 2
    assert p.total_valid_reports == 1
    assert p.report_ban_tier == 0
    assert p.report_ban_until is None


def test_unchanged_positive_tier_keeps_the_expiry(fresh):
    p = _apply_many(fresh, [(P, S)] * 4)
    assert p.report_ban_tier == 1
    assert p.report_ban_until == NOW + DAY

    later = NOW + timedelta(hours=5)
    p = apply_transition(p, S, F, later)
    p = apply_transition(p, P, F, later)
    assert p.total_invalid_reports == 5
    assert p.report_ban_tier == 1
    assert p.report_ban_until == NOW + DAY


@pytest.mark.parametrize("tier,days", [(1, 1), (2, 2), (3, 7), (4, 7), (10, 7)])
def test_ban_schedule(tier, days):
    assert ban_duration(tier) == timedelta(days=days)


def test_escalation_stacks_on_an_active_ban(fresh):
    p = _apply_many(fresh, [(P, S)] * 3)
    assert p.report_ban_until == NOW + DAY

    later = NOW + timedelta(hours=6)
    p = _apply_many(p, [(P, F)] * 3, now=later)
    assert p.report_ban_tier == 2
    # Extends from the still-running ban, not from "later".
    assert p.report_ban_until == NOW + DAY + 2 * DAY

    much_later = NOW + 30 * DAY
    p = _apply_many(p, [(P, S)] * 3, now=much_later)
    assert p.report_ban_tier == 3
    assert p.report_ban_until == much_later + 7 * DAY


def test_premium_granted_on_level_up():
    p = ReporterProfile(id="r", report_score=19, total_valid_reports=19)
    p = apply_transition(p, P, V, NOW)
    assert p.report_level == 1
    assert p.premium_until == NOW + 7 * DAY
    assert premium_state(p, NOW) == "active"
    assert premium_state(p, NOW + 8 * DAY) == "expired"


def test_premium_extends_from_running_window():
    running = NOW + 3 * DAY
    p = ReporterProfile(id="r", report_score=39, report_level=1, total_valid_reports=39,
                        premium_until=running)
    p = apply_transition(p, P, V, NOW)
    assert p.report_level == 2
    assert p.premium_until == running + 7 * DAY


def test_premium_restarts_after_expiry():
    p = ReporterProfile(id="r", report_score=39, report_level=1, premium_until=NOW - 3 * DAY)
    p = apply_transition(p, P, V, NOW)
    assert p.premium_until == NOW + 7 * DAY


def test_level_drop_never_revokes_premium():
    p = ReporterProfile(id="r", report_score=20, report_level=1, total_valid_reports=20,
                        premium_until=NOW + 7 * DAY)
    p = apply_transition(p, V, S, NOW)
    assert p.report_score == 18
    assert p.report_level == 0
    assert p.premium_until == NOW + 7 * DAY

    # Climbing back to level 1 counts as a fresh level gain.
    p = apply_transition(p, S, V, NOW + DAY)
    assert p.report_level == 1
    assert p.premium_until == NOW + 14 * DAY


def test_counts_never_go_negative(fresh):
    p = apply_transition(fresh, V, P, NOW)
    assert p.total_valid_reports == 0
    assert p.report_score == -1
    p = apply_transition(p, S, P, NOW)
    assert p.total_invalid_reports == 0
    assert p.report_score == 0


def test_end_to_end_reporter_journey(fresh):
    p = _apply_many(fresh, [(P, V)] * 5)
    assert (p.report_score, p.total_valid_reports, p.report_level) == (5, 5, 0)

    p = _apply_many(p, [(P, V)] * 4)
    assert p.report_score == 9
    assert p.premium_until is None

    p = _apply_many(p, [(P, V)] * 10)
    assert p.report_score == 19
    assert p.report_level == 0
    assert p.premium_until is None

    p = apply_transition(p, P, V, NOW)
    assert p.report_score == 20
    assert p.report_level == 1
    assert p.premium_until == NOW + 7 * DAY


def _from_scratch(final_statuses: list[EventStatus]) -> tuple[int, int, int, int]:
    points = {P: 0, V: 1, S: -1, F: -1}
    score = sum(points[s] for s in final_statuses)
    valid = sum(1 for s in final_statuses if s is V)
    invalid = sum(1 for s in final_statuses if s in (S, F))
    return score, max(score, 0) // 20, valid, invalid


@pytest.mark.parametrize("path", list(product(list(EventStatus), repeat=3)))
def test_incremental_updates_match_recomputation(path):
    # Three reports each walk the same status path; score and counters must
    # equal a recomputation from the reports' final statuses.
    p = ReporterProfile(id="r")
    current = [P, P, P]
    for status in path:
        for i in range(3):
            p = apply_transition(p, current[i], status, NOW)
            current[i] = status
    score, level, valid, invalid = _from_scratch(current)
    assert (p.report_score, p.report_level, p.total_valid_reports, p.total_invalid_reports) == (
        score, level, valid, invalid,
    )
    assert p.report_ban_tier == invalid // 3


def test_profile_summary(fresh):
    p = replace(fresh, report_score=27, report_level=1, premium_until=NOW + DAY,
                report_ban_until=NOW - DAY)
    summary = profile_summary(p, NOW)
    assert summary["report_score"] == 27
    assert summary["premium_state"] == "active"
    assert summary["ban_active"] is False
    assert summary["points_to_next_level"] == 13
    assert summary["premium_until"] == (NOW + DAY).isoformat()
    assert premium_state(fresh, NOW) == "inactive"
