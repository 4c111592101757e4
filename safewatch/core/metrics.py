"""Reporter reputation: score, level, ban tier and premium window.

``apply_transition`` is a pure function of (profile, previous status, next
status, now). It is applied once per status change and works on deltas, so
replaying any sequence of transitions gives the same profile as summing the
final statuses of every report from scratch.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

from safewatch.core.models import EventStatus, ReporterProfile, ensure_utc

STATUS_POINTS: dict[EventStatus, int] = {
    EventStatus.PENDING: 0,
    EventStatus.VALID: 1,
    EventStatus.SPAM: -1,
    EventStatus.FALSE: -1,
}

INVALID_STATUSES = frozenset({EventStatus.SPAM, EventStatus.FALSE})

POINTS_PER_LEVEL = 20
INVALID_REPORTS_PER_BAN_TIER = 3

# Ban length in days for tier 1, 2, and 3+.
BAN_DURATIONS_DAYS = (1, 2, 7)

PREMIUM_DAYS_PER_LEVEL = 7


def level_for_score(score: int) -> int:
    return max(0, max(score, 0) // POINTS_PER_LEVEL)


def ban_tier_for_invalid(total_invalid: int) -> int:
    return max(0, total_invalid) // INVALID_REPORTS_PER_BAN_TIER


def ban_duration(tier: int) -> timedelta:
    index = min(tier, len(BAN_DURATIONS_DAYS)) - 1
    return timedelta(days=BAN_DURATIONS_DAYS[index])


def _later_of(now: datetime, current: datetime | None) -> datetime:
    if current is not None and ensure_utc(current) > now:
        return ensure_utc(current)
    return now


def next_ban(
    previous_tier: int,
    next_tier: int,
    current_ban_until: datetime | None,
    now: datetime,
) -> tuple[int, datetime | None]:
    """Return (tier, ban_until) after the invalid-report count changed.

    A fresh escalation stacks on top of any unexpired ban. Dropping back to
    tier 0 lifts the ban; an unchanged positive tier keeps the expiry as is.
    """
    if next_tier > previous_tier:
        return next_tier, _later_of(now, current_ban_until) + ban_duration(next_tier)
    if next_tier <= 0:
        return 0, None
    return next_tier, current_ban_until


def extend_premium(
    previous_level: int,
    next_level: int,
    current_premium_until: datetime | None,
    now: datetime,
) -> datetime | None:
    levels_gained = max(0, next_level - previous_level)
    if levels_gained == 0:
        return current_premium_until
    extension = timedelta(days=PREMIUM_DAYS_PER_LEVEL * levels_gained)
    return _later_of(now, current_premium_until) + extension


def _is_valid(status: EventStatus) -> int:
    return 1 if status is EventStatus.VALID else 0


def _is_invalid(status: EventStatus) -> int:
    return 1 if status in INVALID_STATUSES else 0


def apply_transition(
    profile: ReporterProfile,
    previous_status: EventStatus,
    next_status: EventStatus,
    now: datetime,
) -> ReporterProfile:
    """Apply one report status change to the reporter's profile."""
    if previous_status == next_status:
        return profile

    now = ensure_utc(now)
    score = profile.report_score + STATUS_POINTS[next_status] - STATUS_POINTS[previous_status]
    valid = max(0, profile.total_valid_reports + _is_valid(next_status) - _is_valid(previous_status))
    invalid = max(
        0, profile.total_invalid_reports + _is_invalid(next_status) - _is_invalid(previous_status),
    )
    level = level_for_score(score)

    tier, ban_until = next_ban(
        profile.report_ban_tier, ban_tier_for_invalid(invalid), profile.report_ban_until, now,
    )
    premium_until = extend_premium(profile.report_level, level, profile.premium_until, now)

    return replace(
        profile,
        report_score=score,
        report_level=level,
        total_valid_reports=valid,
        total_invalid_reports=invalid,
        report_ban_tier=tier,
        report_ban_until=ban_until,
        premium_until=premium_until,
    )


def is_ban_active(profile: ReporterProfile, now: datetime) -> bool:
    return profile.report_ban_until is not None and ensure_utc(profile.report_ban_until) > ensure_utc(now)


def premium_state(profile: ReporterProfile, now: datetime) -> str:
    """One of ``inactive`` (never granted), ``active`` or ``expired``."""
    if profile.premium_until is None:
        return "inactive"
    if ensure_utc(profile.premium_until) > ensure_utc(now):
        return "active"
    return "expired"


def profile_summary(profile: ReporterProfile, now: datetime) -> dict:
    """JSON-ready view of a profile with the derived access flags."""
    summary = profile.to_dict()
    summary["ban_active"] = is_ban_active(profile, now)
    summary["premium_state"] = premium_state(profile, now)
    summary["points_to_next_level"] = POINTS_PER_LEVEL - (max(profile.report_score, 0) % POINTS_PER_LEVEL)
    return summary
