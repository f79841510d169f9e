"""Operating hours resolution for an establishment on a given day.

Resolution order for a date:
  1. A holiday override marked closed closes the day (its note is reported).
  2. Without a holiday override, a weekday outside open_weekdays is closed.
  3. Hours come from the open holiday's special hours, else the per-weekday
     override, else the establishment default.

The resolver itself is pure; get_holiday() is the only database access and
must run inside the same transaction as the write it guards.
"""

from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.errors import EstablishmentClosed, InvalidOperatingHours, OutsideOperatingHours
from playhub.models.organisation import ALL_WEEKDAYS, EstablishmentHoliday
from playhub.services.intervals import same_day


@dataclass(frozen=True)
class OperatingWindow:
    day: date
    opens_at: time
    closes_at: time
    holiday_note: str | None = None

    @property
    def open_dt(self) -> datetime:
        return datetime.combine(self.day, self.opens_at)

    @property
    def close_dt(self) -> datetime:
        return datetime.combine(self.day, self.closes_at)


def parse_hhmm(s: str) -> time:
    h, m = map(int, s.split(":"))
    return time(h, m)


def _weekday_override(overrides: list | None, weekday: int) -> time | None:
    if not overrides or weekday >= len(overrides):
        return None
    value = overrides[weekday]
    if not value:
        return None
    return value if isinstance(value, time) else parse_hhmm(value)


def resolve_operating_window(establishment, day: date, holiday=None) -> OperatingWindow:
    """Resolve the opening window for day, or raise if the establishment is closed.

    establishment needs open_weekdays, opening_time, closing_time and the two
    *_by_weekday override lists. holiday is the override row for day, if any.
    """
    weekday = day.weekday()

    if holiday is not None and not holiday.is_open:
        if holiday.note:
            raise EstablishmentClosed(f"Establishment closed on {day.isoformat()}: {holiday.note}")
        raise EstablishmentClosed(f"Establishment closed for the holiday on {day.isoformat()}.")

    open_weekdays = establishment.open_weekdays
    if open_weekdays is None:
        open_weekdays = ALL_WEEKDAYS
    if holiday is None and weekday not in open_weekdays:
        raise EstablishmentClosed(f"Establishment closed on {day.strftime('%A')}s.")

    opens_at = _weekday_override(establishment.opening_time_by_weekday, weekday) or establishment.opening_time
    closes_at = _weekday_override(establishment.closing_time_by_weekday, weekday) or establishment.closing_time

    if holiday is not None:
        opens_at = holiday.opening_time or opens_at
        closes_at = holiday.closing_time or closes_at

    if closes_at <= opens_at:
        raise InvalidOperatingHours(
            f"Invalid operating hours on {day.isoformat()}: "
            f"closes at {closes_at.strftime('%H:%M')}, opens at {opens_at.strftime('%H:%M')}."
        )

    return OperatingWindow(day=day, opens_at=opens_at, closes_at=closes_at, holiday_note=holiday.note if holiday else None)


def check_within_window(window: OperatingWindow, start: datetime, end: datetime) -> None:
    """The interval must lie on one calendar day, inside the resolved window."""
    if not same_day(start, end):
        raise OutsideOperatingHours("Bookings must start and end on the same day.")
    if start < window.open_dt or end > window.close_dt:
        raise OutsideOperatingHours(
            f"Outside operating hours: open {window.opens_at.strftime('%H:%M')}"
            f"-{window.closes_at.strftime('%H:%M')} on {window.day.isoformat()}."
        )


async def get_holiday(db: AsyncSession, establishment_id: int, day: date) -> EstablishmentHoliday | None:
    result = await db.execute(
        select(EstablishmentHoliday).where(
            EstablishmentHoliday.establishment_id == establishment_id,
            EstablishmentHoliday.date == day,
        )
    )
    return result.scalar_one_or_none()


async def assert_operating_hours(db: AsyncSession, establishment, start: datetime, end: datetime) -> OperatingWindow:
    """Resolve the window for start's day and check the interval against it."""
    holiday = await get_holiday(db, establishment.id, start.date())
    window = resolve_operating_window(establishment, start.date(), holiday)
    check_within_window(window, start, end)
    return window
