"""Booking rules enforcement.

Validation that is not about the court's own occupancy lives here, separate
from the transaction code. Each check raises a BookingViolation subclass or
returns None when the rule passes.
"""

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.errors import (
    CancellationNotAllowed,
    DoubleBooking,
    InvalidInterval,
    InvalidRequest,
    RateLimited,
)
from playhub.models.booking import Booking, BookingStatus
from playhub.models.organisation import Establishment
from playhub.services.pricing import calculate_cancellation_fee


def check_not_in_past(start: datetime, now: datetime) -> None:
    """Cannot book a slot that has already started."""
    if start <= now:
        raise InvalidInterval("Cannot book a slot in the past.")


def check_repeat_weeks(repeat_weeks: int, max_repeat_weeks: int) -> None:
    if repeat_weeks < 0:
        raise InvalidRequest("Repeat weeks cannot be negative.")
    if repeat_weeks > max_repeat_weeks:
        raise InvalidRequest(f"Cannot repeat for more than {max_repeat_weeks} weeks.")


async def check_rate_limit(
    db: AsyncSession,
    customer_id: int,
    now: datetime,
    requested: int,
    window_minutes: int,
    max_requests: int,
) -> None:
    """A customer may create at most max_requests bookings per rolling window."""
    since = now - timedelta(minutes=window_minutes)
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.customer_id == customer_id,
            Booking.created_at >= since,
        )
    )
    count = result.scalar_one()

    if count + requested > max_requests:
        raise RateLimited(
            f"Too many booking requests. Try again in a few minutes "
            f"(limit {max_requests} per {window_minutes} minutes)."
        )


async def check_double_booking(
    db: AsyncSession,
    customer_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: int | None = None,
) -> None:
    """A customer cannot hold two overlapping bookings, on any court."""
    query = select(Booking).where(
        Booking.customer_id == customer_id,
        Booking.status != BookingStatus.CANCELLED,
        Booking.start_time < end,
        Booking.end_time > start,
    )
    if exclude_booking_id is not None:
        query = query.where(Booking.id != exclude_booking_id)
    conflict = (await db.execute(query.limit(1))).scalar_one_or_none()

    if conflict:
        raise DoubleBooking(
            f"You already have a booking from {conflict.start_time.strftime('%H:%M')} "
            f"to {conflict.end_time.strftime('%H:%M')} on {conflict.start_time.strftime('%d/%m')}."
        )


def validate_cancellation(booking: Booking, establishment: Establishment, now: datetime) -> int:
    """Check a customer cancellation and return the fee in cents (0 if none).

    A fee applies inside the establishment's minimum-notice window. If a fee
    would apply but works out to zero, the policy forbids late cancellation.
    """
    if booking.status == BookingStatus.CANCELLED:
        raise CancellationNotAllowed("Booking is already cancelled.")
    if booking.start_time <= now:
        raise CancellationNotAllowed("Cannot cancel a booking that has already started.")

    hours_to_start = (booking.start_time - now).total_seconds() / 3600
    min_hours = establishment.cancel_min_hours or 0
    if not min_hours or hours_to_start >= min_hours:
        return 0

    fee = calculate_cancellation_fee(
        booking.total_price_cents,
        hours_to_start,
        min_hours,
        establishment.cancel_fee_percent,
        establishment.cancel_fee_fixed_cents,
    )
    if fee <= 0:
        raise CancellationNotAllowed(
            f"Cancellations must be made at least {min_hours} hours before the booking."
        )
    return fee
