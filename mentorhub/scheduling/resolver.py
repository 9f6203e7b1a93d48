# mentorhub/scheduling/resolver.py
"""
Turn a mentor's weekly availability into bookable start instants for a date.

Each active slot of the date's weekday is stepped through at a fixed
granularity; a step is bookable only when the whole step fits before the
slot's end, so partial remainders are dropped (a 09:00-10:30 slot with
60-minute steps yields 09:00 only). Wall-clock times are interpreted in the
platform timezone and emitted as UTC instants, sorted and de-duplicated
across overlapping slots. Past instants are not filtered here.
"""

import heapq
from datetime import UTC, date, datetime, timedelta
from typing import Iterator, Optional
from zoneinfo import ZoneInfo

from mentorhub.scheduling.availability import TimeSlot, WeeklyAvailability

DEFAULT_GRANULARITY_MINUTES = 60


def _minutes(value) -> int:
    return value.hour * 60 + value.minute


class BookableSlots:
    """Lazy, finite, restartable sequence of bookable UTC instants."""

    def __init__(
        self,
        weekly: WeeklyAvailability,
        day: date,
        tz: ZoneInfo,
        granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
    ):
        if granularity_minutes <= 0:
            raise ValueError("granularity_minutes must be positive")
        self.weekly = weekly
        self.day = day
        self.tz = tz
        self.granularity_minutes = granularity_minutes

    def _to_instant(self, minute_of_day: int) -> datetime:
        local = datetime.combine(self.day, datetime.min.time(), tzinfo=self.tz)
        local = local.replace(hour=minute_of_day // 60, minute=minute_of_day % 60)
        return local.astimezone(UTC)

    def _slot_starts(self, slot: TimeSlot) -> Iterator[datetime]:
        step = _minutes(slot.start_time)
        end = _minutes(slot.end_time)
        while step + self.granularity_minutes <= end:
            yield self._to_instant(step)
            step += self.granularity_minutes

    def __iter__(self) -> Iterator[datetime]:
        slots = self.weekly.for_date(self.day).effective_slots()
        previous: Optional[datetime] = None
        for instant in heapq.merge(*(self._slot_starts(slot) for slot in slots)):
            if instant != previous:
                yield instant
            previous = instant

    def __contains__(self, instant: object) -> bool:
        if not isinstance(instant, datetime) or instant.tzinfo is None:
            return False
        target = instant.astimezone(UTC)
        for candidate in self:
            if candidate == target:
                return True
            if candidate > target:
                return False
        return False

    def __repr__(self) -> str:
        return (
            f"BookableSlots(day={self.day.isoformat()}, tz={self.tz.key}, "
            f"granularity={self.granularity_minutes})"
        )


def resolve(
    weekly: WeeklyAvailability,
    day: date,
    tz: ZoneInfo,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> BookableSlots:
    return BookableSlots(weekly, day, tz, granularity_minutes)


def is_bookable(
    weekly: WeeklyAvailability,
    instant: datetime,
    tz: ZoneInfo,
    granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES,
) -> bool:
    """True when ``instant`` is one of the resolved starts of its local date."""
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    local_day = instant.astimezone(tz).date()
    return instant in resolve(weekly, local_day, tz, granularity_minutes)


def day_bounds(day: date, tz: ZoneInfo) -> tuple:
    """UTC instants bounding the local calendar day [start, end)."""
    start = datetime.combine(day, datetime.min.time(), tzinfo=tz).astimezone(UTC)
    end = datetime.combine(day + timedelta(days=1), datetime.min.time(), tzinfo=tz).astimezone(UTC)
    return start, end
