"""Conflict checks for a proposed interval on a court.

Must run with the court row locked (see services.transaction.lock_court),
otherwise two concurrent requests can both observe a free slot.

Reservations and blocks are compared against the buffered interval. Monthly
passes are compared against the raw interval.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.errors import SlotBlocked, SlotReserved, SlotReservedByPass
from playhub.models.booking import Booking, BookingStatus, CourtBlock, MonthlyPass, MonthlyPassStatus
from playhub.services.intervals import expand_with_buffer, month_key


def _fmt(start: datetime, end: datetime) -> str:
    return f"{start.strftime('%d/%m %H:%M')}-{end.strftime('%H:%M')}"


async def check_reservation_overlap(
    db: AsyncSession,
    court_id: int,
    start: datetime,
    end: datetime,
    buffer_minutes: int = 0,
    exclude_booking_id: int | None = None,
) -> None:
    """No non-cancelled booking on the court may overlap the buffered interval."""
    window = expand_with_buffer(start, end, buffer_minutes)
    query = select(Booking).where(
        Booking.court_id == court_id,
        Booking.status != BookingStatus.CANCELLED,
        Booking.start_time < window.end,
        Booking.end_time > window.start,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    conflict = (await db.execute(query.limit(1))).scalar_one_or_none()

    if conflict:
        raise SlotReserved(f"Court already booked {_fmt(conflict.start_time, conflict.end_time)}.")


async def check_block_overlap(
    db: AsyncSession, court_id: int, start: datetime, end: datetime, buffer_minutes: int = 0
) -> None:
    window = expand_with_buffer(start, end, buffer_minutes)
    result = await db.execute(
        select(CourtBlock)
        .where(
            CourtBlock.court_id == court_id,
            CourtBlock.start_time < window.end,
            CourtBlock.end_time > window.start,
        )
        .limit(1)
    )
    block = result.scalar_one_or_none()

    if block:
        note = f" ({block.note})" if block.note else ""
        raise SlotBlocked(f"Court blocked {_fmt(block.start_time, block.end_time)}{note}.")


async def check_pass_overlap(
    db: AsyncSession, court_id: int, customer_id: int | None, start: datetime, end: datetime
) -> None:
    """An ACTIVE monthly pass holds its slot against everyone but its holder."""
    result = await db.execute(
        select(MonthlyPass).where(
            MonthlyPass.court_id == court_id,
            MonthlyPass.status == MonthlyPassStatus.ACTIVE,
            MonthlyPass.month == month_key(start),
            MonthlyPass.weekday == start.weekday(),
            MonthlyPass.start_time < end.time(),
            MonthlyPass.end_time > start.time(),
        )
    )
    for monthly_pass in result.scalars():
        if customer_id is None or monthly_pass.customer_id != customer_id:
            raise SlotReservedByPass(
                f"Slot held by a monthly pass on {start.strftime('%A')}s "
                f"{monthly_pass.start_time.strftime('%H:%M')}-{monthly_pass.end_time.strftime('%H:%M')}."
            )


async def check_slot_free(
    db: AsyncSession,
    court_id: int,
    customer_id: int | None,
    start: datetime,
    end: datetime,
    buffer_minutes: int = 0,
    exclude_booking_id: int | None = None,
) -> None:
    """Run the reservation, block and pass checks in order. Raises on the first hit."""
    await check_reservation_overlap(db, court_id, start, end, buffer_minutes, exclude_booking_id)
    await check_block_overlap(db, court_id, start, end, buffer_minutes)
    await check_pass_overlap(db, court_id, customer_id, start, end)
