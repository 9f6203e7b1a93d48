from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from mentorhub.errors import INVALID_STATUS, TOO_EARLY_TO_START, PolicyViolation
from mentorhub.scheduling import lifecycle
from mentorhub.scheduling.lifecycle import FixedClock, SessionStatus, SystemClock

START = datetime(2026, 3, 2, 3, 30, tzinfo=UTC)


def test_upcoming_normalizes_to_scheduled():
    assert lifecycle.normalize_status("upcoming") is SessionStatus.SCHEDULED
    assert lifecycle.normalize_status("in-progress") is SessionStatus.IN_PROGRESS
    with pytest.raises(ValueError):
        lifecycle.normalize_status("pending")


@pytest.mark.parametrize(
    "current,target,allowed",
    [
        ("scheduled", "in-progress", True),
        ("upcoming", "cancelled", True),
        ("scheduled", "completed", True),
        ("in-progress", "completed", True),
        ("in-progress", "cancelled", False),
        ("completed", "cancelled", False),
        ("cancelled", "scheduled", False),
        ("no-show", "completed", False),
    ],
)
def test_transition_table(current, target, allowed):
    assert lifecycle.transition_allowed(current, target) is allowed


def test_terminal_statuses_have_no_exits():
    for status in lifecycle.TERMINAL:
        assert not any(lifecycle.transition_allowed(status, target) for target in SessionStatus)


def test_auto_completion_point_includes_buffer():
    assert lifecycle.auto_complete_at(START, 60) == START + timedelta(minutes=70)
    assert not lifecycle.is_due_for_completion("scheduled", START, 60, START + timedelta(minutes=69))
    assert lifecycle.is_due_for_completion("scheduled", START, 60, START + timedelta(minutes=70))
    assert lifecycle.is_due_for_completion("in-progress", START, 60, START + timedelta(hours=5))


@pytest.mark.parametrize("status", ["completed", "cancelled", "no-show"])
def test_terminal_sessions_are_never_due(status):
    assert not lifecycle.is_due_for_completion(status, START, 60, START + timedelta(days=1))


def test_start_window_opens_ten_minutes_early():
    assert lifecycle.can_start("scheduled", START, START - timedelta(minutes=10))
    assert lifecycle.can_start("upcoming", START + timedelta(minutes=5), START)
    assert not lifecycle.can_start("scheduled", START, START - timedelta(minutes=11))


def test_ensure_can_start_errors():
    with pytest.raises(PolicyViolation) as early:
        lifecycle.ensure_can_start("scheduled", START, START - timedelta(hours=1))
    assert early.value.code == TOO_EARLY_TO_START

    with pytest.raises(PolicyViolation) as wrong:
        lifecycle.ensure_can_start("in-progress", START, START)
    assert wrong.value.code == INVALID_STATUS


def test_values_are_sorted_strings():
    assert lifecycle.values(lifecycle.STARTABLE) == ["scheduled", "upcoming"]


def test_fixed_clock_is_controllable():
    clock = FixedClock(START)
    assert clock.now() == START
    assert clock.advance(minutes=5) == START + timedelta(minutes=5)
    clock.set(START - timedelta(days=1))
    assert clock.now() == START - timedelta(days=1)
    with pytest.raises(ValueError):
        FixedClock(datetime(2026, 3, 2, 9, 0))


def test_system_clock_is_utc():
    assert SystemClock().now().tzinfo is UTC
