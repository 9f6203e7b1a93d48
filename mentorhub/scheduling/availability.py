# mentorhub/scheduling/availability.py
"""
Weekly availability value types, validation and wire codec.

A mentor's availability is a map from each of the seven weekdays to a
DayAvailability record: an availability flag plus the ordered list of
TimeSlots (wall-clock HH:MM ranges) the mentor accepts bookings in.
Everything here is pure; persistence lives in mentorhub.crud.availability.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, time
from typing import Any, Dict, List, Mapping, Tuple

from mentorhub.errors import INVALID_AVAILABILITY, ValidationError

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

# 24-hour clock; a single-digit hour ("9:30") is accepted.
TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")


def is_valid_hhmm(value: Any) -> bool:
    return isinstance(value, str) and bool(TIME_RE.match(value))


def parse_hhmm(value: str) -> time:
    """Parse an HH:MM string into a time; raises ValidationError on bad input."""
    if not is_valid_hhmm(value):
        raise ValidationError(
            f"Invalid time '{value}'. Use HH:MM format",
            code=INVALID_AVAILABILITY,
            details={"value": value},
        )
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def weekday_key(day: date) -> str:
    return WEEKDAYS[day.weekday()]


@dataclass(frozen=True)
class TimeSlot:
    id: str
    start: str
    end: str
    active: bool = True

    @property
    def start_time(self) -> time:
        return parse_hhmm(self.start)

    @property
    def end_time(self) -> time:
        return parse_hhmm(self.end)


@dataclass(frozen=True)
class DayAvailability:
    available: bool = False
    slots: Tuple[TimeSlot, ...] = ()

    def effective_slots(self) -> Tuple[TimeSlot, ...]:
        """Active slots in stored order; always empty for an unavailable day."""
        if not self.available:
            return ()
        return tuple(slot for slot in self.slots if slot.active)


@dataclass(frozen=True)
class WeeklyAvailability:
    days: Mapping[str, DayAvailability] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "WeeklyAvailability":
        return cls(days={day: DayAvailability() for day in WEEKDAYS})

    def day(self, weekday: str) -> DayAvailability:
        return self.days.get(weekday, DayAvailability())

    def for_date(self, day: date) -> DayAvailability:
        return self.day(weekday_key(day))


def _invalid(message: str, **details) -> ValidationError:
    return ValidationError(message, code=INVALID_AVAILABILITY, details=details)


def validate(weekly: WeeklyAvailability) -> None:
    """
    Check a WeeklyAvailability before it is persisted.

    Raises ValidationError on the first problem found; returns None when the
    availability is acceptable. Has no side effects.
    """
    for day in WEEKDAYS:
        if day not in weekly.days:
            raise _invalid(f"Missing availability for {day}", day=day)

        day_data = weekly.days[day]
        if day_data.available and not day_data.slots:
            raise _invalid(f"At least one time slot required for {day}", day=day)

        for slot in day_data.slots:
            if not is_valid_hhmm(slot.start) or not is_valid_hhmm(slot.end):
                raise _invalid(
                    f"Invalid time format for {day}. Use HH:MM format",
                    day=day,
                    slot_id=slot.id,
                )
            if parse_hhmm(slot.end) <= parse_hhmm(slot.start):
                raise _invalid(
                    f"End time must be after start time for {day}",
                    day=day,
                    slot_id=slot.id,
                )


def normalized(weekly: WeeklyAvailability) -> WeeklyAvailability:
    """Full seven-day map with slots cleared on days switched off."""
    days = {}
    for day in WEEKDAYS:
        day_data = weekly.day(day)
        days[day] = day_data if day_data.available else replace(day_data, slots=())
    return WeeklyAvailability(days=days)


# ======================
# WIRE FORMAT
# ======================

def _slot_from_wire(day: str, raw: Any) -> TimeSlot:
    if not isinstance(raw, Mapping):
        raise _invalid(f"Invalid time slot for {day}", day=day)
    start = raw.get("startTime")
    end = raw.get("endTime")
    if not start or not end:
        raise _invalid(f"Time slots must have startTime and endTime for {day}", day=day)
    if not isinstance(start, str) or not isinstance(end, str):
        raise _invalid(f"Time values must be strings for {day}", day=day)
    active = raw.get("isActive", True)
    if not isinstance(active, bool):
        raise _invalid(f"isActive must be boolean for {day}", day=day)
    slot_id = raw.get("id") or uuid.uuid4().hex
    return TimeSlot(id=str(slot_id), start=start, end=end, active=active)


def from_wire(payload: Any) -> WeeklyAvailability:
    """Build a WeeklyAvailability from its JSON shape; structural errors raise."""
    if not isinstance(payload, Mapping):
        raise _invalid("Invalid availability data")

    days: Dict[str, DayAvailability] = {}
    for day in WEEKDAYS:
        day_data = payload.get(day)
        if not isinstance(day_data, Mapping):
            raise _invalid(f"Invalid data for {day}", day=day)
        if not isinstance(day_data.get("isAvailable"), bool):
            raise _invalid(f"isAvailable must be boolean for {day}", day=day)
        raw_slots = day_data.get("timeSlots")
        if not isinstance(raw_slots, list):
            raise _invalid(f"timeSlots must be array for {day}", day=day)
        days[day] = DayAvailability(
            available=day_data["isAvailable"],
            slots=tuple(_slot_from_wire(day, raw) for raw in raw_slots),
        )
    return WeeklyAvailability(days=days)


def to_wire(weekly: WeeklyAvailability) -> Dict[str, Dict[str, Any]]:
    return {
        day: {
            "isAvailable": weekly.day(day).available,
            "timeSlots": [
                {
                    "id": slot.id,
                    "startTime": slot.start,
                    "endTime": slot.end,
                    "isActive": slot.active,
                }
                for slot in weekly.day(day).slots
            ],
        }
        for day in WEEKDAYS
    }


def to_public_wire(weekly: WeeklyAvailability) -> Dict[str, Dict[str, Any]]:
    """Student-facing view: active slots only, reduced to start/end."""
    public: Dict[str, Dict[str, Any]] = {}
    for day in WEEKDAYS:
        slots: List[Dict[str, str]] = [
            {"startTime": slot.start, "endTime": slot.end}
            for slot in weekly.day(day).effective_slots()
        ]
        public[day] = {"isAvailable": bool(slots), "timeSlots": slots}
    return public
