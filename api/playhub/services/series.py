"""Weekly series generation."""

from datetime import datetime, timedelta

from playhub.services.intervals import Interval


def weekly_occurrences(start: datetime, end: datetime, repeat_weeks: int) -> list[Interval]:
    """The base interval plus repeat_weeks copies, one week apart."""
    base = Interval(start, end)
    return [base.shifted(timedelta(weeks=week)) for week in range(repeat_weeks + 1)]
