from __future__ import annotations

from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from mentorhub.errors import (
    CANCELLATION_WINDOW_CLOSED,
    INVALID_ROLE,
    INVALID_STATUS,
    PolicyViolation,
    ValidationError,
)
from mentorhub.scheduling import policy
from mentorhub.scheduling.lifecycle import SessionStatus

START = datetime(2026, 3, 2, 3, 30, tzinfo=UTC)
SECOND = timedelta(seconds=1)


@pytest.mark.parametrize(
    "now,allowed",
    [
        (START - timedelta(hours=25), True),
        (START - timedelta(hours=24) - SECOND, True),
        (START - timedelta(hours=24), False),
        (START - timedelta(hours=23, minutes=59), False),
        (START - timedelta(hours=1), False),
    ],
)
def test_student_needs_24_hours_notice(now, allowed):
    assert policy.can_cancel(START, now, "student", "scheduled") is allowed


@pytest.mark.parametrize(
    "now,allowed",
    [
        (START - timedelta(hours=1), True),
        (START - SECOND, True),
        (START, False),
        (START + SECOND, False),
        (START + timedelta(minutes=5), False),
    ],
)
def test_mentor_may_cancel_until_start(now, allowed):
    assert policy.can_cancel(START, now, "mentor", "scheduled") is allowed


def test_system_may_cancel_any_time_while_cancellable():
    assert policy.can_cancel(START, START + timedelta(hours=3), "system", "scheduled")
    assert policy.can_cancel(START, START, "system", SessionStatus.UPCOMING)


@pytest.mark.parametrize("status", ["in-progress", "completed", "cancelled", "no-show"])
def test_non_cancellable_statuses(status):
    decision = policy.evaluate_cancellation(START, START - timedelta(days=3), "system", status)
    assert decision.allowed is False
    assert decision.reason == policy.WRONG_STATUS


def test_upcoming_is_treated_like_scheduled():
    assert policy.can_cancel(START, START - timedelta(days=2), "student", "upcoming")


def test_decision_carries_deadline():
    decision = policy.evaluate_cancellation(START, START - timedelta(days=2), "student", "scheduled")
    assert decision.allowed is True
    assert decision.deadline == START - timedelta(hours=24)


def test_comparison_is_on_instants_not_wall_clock():
    ist_now = (START - timedelta(hours=24) - SECOND).astimezone(ZoneInfo("Asia/Kolkata"))
    assert policy.can_cancel(START, ist_now, "student", "scheduled")


def test_naive_datetimes_are_rejected():
    with pytest.raises(ValidationError):
        policy.evaluate_cancellation(START.replace(tzinfo=None), START, "student", "scheduled")


def test_ensure_can_cancel_raises_window_closed_with_details():
    with pytest.raises(PolicyViolation) as exc_info:
        policy.ensure_can_cancel(START, START - timedelta(hours=2), "student", "scheduled")
    exc = exc_info.value
    assert exc.code == CANCELLATION_WINDOW_CLOSED
    assert "24 hours" in exc.message
    assert exc.details["actor_role"] == "student"


def test_ensure_can_cancel_reports_status_and_role_problems():
    with pytest.raises(PolicyViolation) as status_exc:
        policy.ensure_can_cancel(START, START - timedelta(days=2), "student", SessionStatus.COMPLETED)
    assert status_exc.value.code == INVALID_STATUS
    assert "completed" in status_exc.value.message

    with pytest.raises(ValidationError) as role_exc:
        policy.ensure_can_cancel(START, START - timedelta(days=2), "guest", "scheduled")
    assert role_exc.value.code == INVALID_ROLE


def test_custom_notice_period():
    notice = timedelta(hours=48)
    assert not policy.can_cancel(START, START - timedelta(hours=30), "student", "scheduled", notice)
    assert policy.can_cancel(START, START - timedelta(hours=49), "student", "scheduled", notice)
