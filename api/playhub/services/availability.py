"""Court availability for a day.

Read-only and unlocked: the result is advisory, the reservation transaction
re-checks everything under the court lock.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.errors import BookingViolation
from playhub.models.booking import Booking, BookingStatus, CourtBlock, MonthlyPass, MonthlyPassStatus
from playhub.models.organisation import Court
from playhub.services.intervals import Interval, expand_with_buffer
from playhub.services.operating_hours import OperatingWindow, get_holiday, resolve_operating_window


@dataclass
class DayAvailability:
    day: date
    is_open: bool
    opens_at: time | None = None
    closes_at: time | None = None
    closed_reason: str | None = None
    slots: list[dict] = field(default_factory=list)


def generate_slots(
    window: OperatingWindow,
    busy: list[Interval],
    now: datetime,
    step_minutes: int = 30,
) -> list[dict]:
    """Generate the step-minute slots of an operating window.

    Returns dicts with keys: start_time, end_time, is_available. Past slots and
    slots overlapping a busy interval are unavailable (half-open overlap).
    """
    step = timedelta(minutes=step_minutes)
    slots: list[dict] = []
    current = window.open_dt

    while current + step <= window.close_dt:
        slot = Interval(current, current + step)
        is_past = current <= now
        has_conflict = any(slot.overlaps(b) for b in busy)
        slots.append(
            {
                "start_time": slot.start.strftime("%H:%M"),
                "end_time": slot.end.strftime("%H:%M"),
                "is_available": not is_past and not has_conflict,
            }
        )
        current += step

    return slots


async def _busy_intervals(
    db: AsyncSession, court: Court, day_start: datetime, day_end: datetime, customer_id: int | None
) -> list[Interval]:
    buffer_minutes = court.establishment.booking_buffer_minutes
    busy: list[Interval] = []

    bookings = await db.execute(
        select(Booking.start_time, Booking.end_time).where(
            Booking.court_id == court.id,
            Booking.status != BookingStatus.CANCELLED,
            Booking.start_time < day_end,
            Booking.end_time > day_start,
        )
    )
    blocks = await db.execute(
        select(CourtBlock.start_time, CourtBlock.end_time).where(
            CourtBlock.court_id == court.id,
            CourtBlock.start_time < day_end,
            CourtBlock.end_time > day_start,
        )
    )
    # Existing occupancy widened by the buffer, so every slot that would fail the check shows as taken
    for start, end in [*bookings.all(), *blocks.all()]:
        busy.append(expand_with_buffer(start, end, buffer_minutes))

    passes = await db.execute(
        select(MonthlyPass).where(
            MonthlyPass.court_id == court.id,
            MonthlyPass.status == MonthlyPassStatus.ACTIVE,
            MonthlyPass.month == day_start.strftime("%Y-%m"),
            MonthlyPass.weekday == day_start.weekday(),
        )
    )
    for monthly_pass in passes.scalars():
        if customer_id is not None and monthly_pass.customer_id == customer_id:
            continue
        busy.append(
            Interval(
                datetime.combine(day_start.date(), monthly_pass.start_time),
                datetime.combine(day_start.date(), monthly_pass.end_time),
            )
        )
    return busy


async def day_availability(
    db: AsyncSession,
    court: Court,
    day: date,
    now: datetime,
    step_minutes: int = 30,
    customer_id: int | None = None,
) -> DayAvailability:
    """Resolve the day's window and list its slots. A closed day has no slots.

    court must have its establishment loaded.
    """
    holiday = await get_holiday(db, court.establishment_id, day)
    try:
        window = resolve_operating_window(court.establishment, day, holiday)
    except BookingViolation as exc:
        return DayAvailability(day=day, is_open=False, closed_reason=exc.message)

    day_start = datetime.combine(day, time.min)
    busy = await _busy_intervals(db, court, day_start, day_start + timedelta(days=1), customer_id)
    return DayAvailability(
        day=day,
        is_open=True,
        opens_at=window.opens_at,
        closes_at=window.closes_at,
        slots=generate_slots(window, busy, now, step_minutes),
    )
