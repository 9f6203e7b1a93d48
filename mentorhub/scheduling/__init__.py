# mentorhub/scheduling/__init__.py
# Pure scheduling rules: no database, no clock reads.

from .availability import (
    WEEKDAYS,
    DayAvailability,
    TimeSlot,
    WeeklyAvailability,
    validate,
)
from .lifecycle import Clock, FixedClock, SessionStatus, SystemClock
from .policy import can_cancel, evaluate_cancellation
from .resolver import resolve

__all__ = [
    "WEEKDAYS",
    "DayAvailability",
    "TimeSlot",
    "WeeklyAvailability",
    "validate",
    "Clock",
    "FixedClock",
    "SessionStatus",
    "SystemClock",
    "can_cancel",
    "evaluate_cancellation",
    "resolve",
]
