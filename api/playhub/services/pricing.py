"""Pricing and cancellation fee calculation.

Price is hourly rate x duration, with the court's discount applied to long
bookings. An active monthly pass held by the customer makes the slot free.
All amounts are integer cents; rounding is half-up, never banker's rounding.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.models.booking import MonthlyPass, MonthlyPassStatus
from playhub.models.organisation import Court
from playhub.services.intervals import duration_minutes, month_key


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_price(court: Court, minutes: int, long_booking_minutes: int = 90) -> int:
    """Price in cents for minutes on court.

    10000/h for 60 min -> 10000; for 90 min with a 10% discount -> 13500.
    """
    base = round_half_up(Decimal(court.price_per_hour_cents) * minutes / 60)
    discount = court.discount_percent_over_90min or 0
    if minutes >= long_booking_minutes and discount > 0:
        return round_half_up(Decimal(base) * (100 - discount) / 100)
    return base


def calculate_cancellation_fee(
    price_cents: int,
    hours_to_start: float,
    min_hours: int,
    fee_percent: int,
    fee_fixed_cents: int,
) -> int:
    """Fee charged for cancelling hours_to_start before the booking.

    Outside the minimum-notice window the fee is always 0. Inside it the fee is
    the larger of the fixed fee and the percentage of the price.
    """
    if not min_hours or hours_to_start >= min_hours:
        return 0
    percent_fee = round_half_up(Decimal(price_cents) * (fee_percent or 0) / 100)
    return max(fee_fixed_cents or 0, percent_fee)


async def find_holder_pass(
    db: AsyncSession, court_id: int, customer_id: int, start: datetime, end: datetime
) -> MonthlyPass | None:
    """The customer's own ACTIVE pass whose slot overlaps [start, end), if any."""
    result = await db.execute(
        select(MonthlyPass).where(
            MonthlyPass.court_id == court_id,
            MonthlyPass.customer_id == customer_id,
            MonthlyPass.status == MonthlyPassStatus.ACTIVE,
            MonthlyPass.month == month_key(start),
            MonthlyPass.weekday == start.weekday(),
            MonthlyPass.start_time < end.time(),
            MonthlyPass.end_time > start.time(),
        )
    )
    return result.scalars().first()


async def price_for_occurrence(
    db: AsyncSession,
    court: Court,
    customer_id: int | None,
    start: datetime,
    end: datetime,
    long_booking_minutes: int = 90,
) -> int:
    minutes = duration_minutes(start, end)
    if customer_id is not None:
        holder_pass = await find_holder_pass(db, court.id, customer_id, start, end)
        if holder_pass is not None:
            return 0
    return calculate_price(court, minutes, long_booking_minutes)
