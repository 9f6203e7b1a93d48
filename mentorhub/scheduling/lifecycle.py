# mentorhub/scheduling/lifecycle.py
"""
Session status lifecycle.

    scheduled/upcoming --start--> in-progress --auto--> completed
    scheduled/upcoming ------------------------auto--> completed
    scheduled/upcoming --cancel-> cancelled
    scheduled/upcoming/in-progress --admin--> no-show

completed, cancelled and no-show are terminal for status changes.
"""

import enum
from datetime import UTC, datetime, timedelta
from typing import Optional, Protocol

from mentorhub.errors import INVALID_STATUS, TOO_EARLY_TO_START, PolicyViolation

AUTO_COMPLETE_BUFFER_MINUTES = 10
EARLY_START_WINDOW_MINUTES = 10


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    UPCOMING = "upcoming"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


STARTABLE = frozenset({SessionStatus.SCHEDULED, SessionStatus.UPCOMING})
AUTO_COMPLETABLE = frozenset(
    {SessionStatus.SCHEDULED, SessionStatus.UPCOMING, SessionStatus.IN_PROGRESS}
)
NO_SHOW_ELIGIBLE = AUTO_COMPLETABLE
TERMINAL = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
)

_TRANSITIONS = {
    SessionStatus.SCHEDULED: frozenset(
        {
            SessionStatus.IN_PROGRESS,
            SessionStatus.COMPLETED,
            SessionStatus.CANCELLED,
            SessionStatus.NO_SHOW,
        }
    ),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED, SessionStatus.NO_SHOW}),
}


def normalize_status(value) -> SessionStatus:
    """Coerce a stored status string; ``upcoming`` is an alias of ``scheduled``."""
    status = SessionStatus(value)
    if status is SessionStatus.UPCOMING:
        return SessionStatus.SCHEDULED
    return status


def values(statuses) -> list:
    """Plain string values of a status set, for use in SQL filters."""
    return sorted(status.value for status in statuses)


def transition_allowed(current, target) -> bool:
    return normalize_status(target) in _TRANSITIONS.get(normalize_status(current), frozenset())


def session_end(scheduled_start: datetime, duration_minutes: int) -> datetime:
    return scheduled_start + timedelta(minutes=duration_minutes)


def auto_complete_at(
    scheduled_start: datetime,
    duration_minutes: int,
    buffer_minutes: int = AUTO_COMPLETE_BUFFER_MINUTES,
) -> datetime:
    return session_end(scheduled_start, duration_minutes) + timedelta(minutes=buffer_minutes)


def is_due_for_completion(
    status,
    scheduled_start: datetime,
    duration_minutes: int,
    now: datetime,
    buffer_minutes: int = AUTO_COMPLETE_BUFFER_MINUTES,
) -> bool:
    if SessionStatus(status) not in AUTO_COMPLETABLE:
        return False
    return now >= auto_complete_at(scheduled_start, duration_minutes, buffer_minutes)


def start_window_opens_at(
    scheduled_start: datetime,
    early_window_minutes: int = EARLY_START_WINDOW_MINUTES,
) -> datetime:
    return scheduled_start - timedelta(minutes=early_window_minutes)


def ensure_can_start(
    status,
    scheduled_start: datetime,
    now: datetime,
    early_window_minutes: int = EARLY_START_WINDOW_MINUTES,
) -> None:
    if SessionStatus(status) not in STARTABLE:
        raise PolicyViolation(
            f"Only scheduled sessions can be started (current status: {SessionStatus(status).value})",
            code=INVALID_STATUS,
            details={"status": SessionStatus(status).value},
        )
    opens_at = start_window_opens_at(scheduled_start, early_window_minutes)
    if now < opens_at:
        raise PolicyViolation(
            f"Sessions can be started at most {early_window_minutes} minutes before the scheduled time",
            code=TOO_EARLY_TO_START,
            details={"opens_at": opens_at.isoformat()},
        )


def can_start(
    status,
    scheduled_start: datetime,
    now: datetime,
    early_window_minutes: int = EARLY_START_WINDOW_MINUTES,
) -> bool:
    try:
        ensure_can_start(status, scheduled_start, now, early_window_minutes)
    except PolicyViolation:
        return False
    return True


# ======================
# CLOCK
# ======================

class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, current: Optional[datetime] = None):
        current = current or datetime.now(UTC)
        if current.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware datetime")
        self.current = current.astimezone(UTC)

    def now(self) -> datetime:
        return self.current

    def set(self, current: datetime) -> None:
        self.current = current.astimezone(UTC)

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current
