"""Interval arithmetic for reservations.

Pure calculation module: no database, no async.
Intervals are half-open: [start, end). Touching endpoints do not overlap,
so a 10:00-11:00 booking and an 11:00-12:00 booking can coexist.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from playhub.core.errors import InvalidInterval, InvalidRequest


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    @property
    def minutes(self) -> int:
        return duration_minutes(self.start, self.end)

    def overlaps(self, other: "Interval") -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def shifted(self, delta: timedelta) -> "Interval":
        return Interval(self.start + delta, self.end + delta)


def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between start and end. The interval must not be empty."""
    if end <= start:
        raise InvalidInterval("End time must be after start time.")
    return int((end - start).total_seconds() // 60)


def expand_with_buffer(start: datetime, end: datetime, buffer_minutes: int) -> Interval:
    """Widen an interval by buffer_minutes on both sides. Conflict checks only."""
    buffer = timedelta(minutes=max(0, int(buffer_minutes or 0)))
    return Interval(start - buffer, end + buffer)


def is_aligned(instant: datetime, step_minutes: int) -> bool:
    """True if instant sits exactly on the step grid (e.g. 08:00, 08:30 for 30)."""
    return instant.second == 0 and instant.microsecond == 0 and instant.minute % step_minutes == 0


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def same_day(start: datetime, end: datetime) -> bool:
    return start.date() == end.date()


def month_key(instant: datetime) -> str:
    """Calendar month as stored on monthly passes, e.g. '2026-03'."""
    return f"{instant.year:04d}-{instant.month:02d}"


def parse_month(value: str) -> date:
    """First day of a 'YYYY-MM' month key."""
    try:
        year, month = value.split("-")
        if len(year) != 4 or len(month) != 2:
            raise ValueError(value)
        return date(int(year), int(month), 1)
    except ValueError as exc:
        raise InvalidRequest("Month must be given as YYYY-MM.") from exc


def next_month_start(first: date) -> date:
    return date(first.year + first.month // 12, first.month % 12 + 1, 1)


def weekday_occurrences(month: str, weekday: int, start: time, end: time) -> list[Interval]:
    """Every weekday/time window of a pass in its month, e.g. all Tuesdays 19:00-20:00."""
    day = parse_month(month)
    day += timedelta(days=(weekday - day.weekday()) % 7)
    last = next_month_start(parse_month(month))
    occurrences = []
    while day < last:
        occurrences.append(Interval(datetime.combine(day, start), datetime.combine(day, end)))
        day += timedelta(weeks=1)
    return occurrences
