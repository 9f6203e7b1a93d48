# mentorhub/scheduling/policy.py
"""
Cancellation policy.

Mentors may cancel any time before the session starts; students must cancel
at least ``notice`` (24 hours) ahead; the system may cancel any session still
in a cancellable status. Every comparison is made on UTC instants.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Optional

from mentorhub.errors import (
    CANCELLATION_WINDOW_CLOSED,
    INVALID_ROLE,
    INVALID_START,
    INVALID_STATUS,
    PolicyViolation,
    ValidationError,
)
from mentorhub.scheduling.lifecycle import SessionStatus

STUDENT_CANCEL_NOTICE = timedelta(hours=24)

CANCELLABLE_STATUSES = frozenset({SessionStatus.SCHEDULED, SessionStatus.UPCOMING})

ROLE_STUDENT = "student"
ROLE_MENTOR = "mentor"
ROLE_SYSTEM = "system"
CANCELLER_ROLES = (ROLE_STUDENT, ROLE_MENTOR, ROLE_SYSTEM)

# Decision reasons
OK = "ok"
WRONG_STATUS = "invalid_status"
WINDOW_CLOSED = "window_closed"
UNKNOWN_ROLE = "unknown_role"


@dataclass(frozen=True)
class CancellationDecision:
    allowed: bool
    reason: str
    deadline: Optional[datetime] = None


def _utc(value: datetime, name: str) -> datetime:
    if value.tzinfo is None:
        raise ValidationError(f"{name} must be timezone-aware", code=INVALID_START)
    return value.astimezone(UTC)


def _is_cancellable(status) -> bool:
    try:
        return SessionStatus(status) in CANCELLABLE_STATUSES
    except ValueError:
        return False


def cancellation_deadline(
    scheduled_start: datetime,
    actor_role: str,
    notice: timedelta = STUDENT_CANCEL_NOTICE,
) -> Optional[datetime]:
    """Last instant (exclusive) at which ``actor_role`` may still cancel."""
    if actor_role == ROLE_MENTOR:
        return scheduled_start
    if actor_role == ROLE_STUDENT:
        return scheduled_start - notice
    return None


def evaluate_cancellation(
    scheduled_start: datetime,
    now: datetime,
    actor_role: str,
    current_status,
    notice: timedelta = STUDENT_CANCEL_NOTICE,
) -> CancellationDecision:
    if not _is_cancellable(current_status):
        return CancellationDecision(False, WRONG_STATUS)
    if actor_role not in CANCELLER_ROLES:
        return CancellationDecision(False, UNKNOWN_ROLE)

    start = _utc(scheduled_start, "scheduled_start")
    current = _utc(now, "now")
    if actor_role == ROLE_SYSTEM:
        return CancellationDecision(True, OK)

    deadline = cancellation_deadline(start, actor_role, notice)
    if current < deadline:
        return CancellationDecision(True, OK, deadline)
    return CancellationDecision(False, WINDOW_CLOSED, deadline)


def can_cancel(
    scheduled_start: datetime,
    now: datetime,
    actor_role: str,
    current_status,
    notice: timedelta = STUDENT_CANCEL_NOTICE,
) -> bool:
    return evaluate_cancellation(scheduled_start, now, actor_role, current_status, notice).allowed


def ensure_can_cancel(
    scheduled_start: datetime,
    now: datetime,
    actor_role: str,
    current_status,
    notice: timedelta = STUDENT_CANCEL_NOTICE,
) -> CancellationDecision:
    """Return the decision, or raise PolicyViolation naming the violated boundary."""
    decision = evaluate_cancellation(scheduled_start, now, actor_role, current_status, notice)
    if decision.allowed:
        return decision

    if decision.reason == WRONG_STATUS:
        status_value = str(getattr(current_status, "value", current_status))
        raise PolicyViolation(
            f"Cannot cancel a session with status '{status_value}'",
            code=INVALID_STATUS,
            details={"status": status_value},
        )
    if decision.reason == UNKNOWN_ROLE:
        raise ValidationError(
            f"Unknown cancelling role '{actor_role}'",
            code=INVALID_ROLE,
            details={"allowed": list(CANCELLER_ROLES)},
        )

    hours = int(notice.total_seconds() // 3600)
    if actor_role == ROLE_STUDENT:
        message = f"Students must cancel at least {hours} hours before the session starts"
    else:
        message = "Mentors can only cancel before the session starts"
    raise PolicyViolation(
        message,
        code=CANCELLATION_WINDOW_CLOSED,
        details={
            "actor_role": actor_role,
            "deadline": decision.deadline.isoformat() if decision.deadline else None,
        },
    )
