"""Automatic cancellation of competing pending bookings.

When an owner confirms a booking, every other PENDING booking on the same
court whose raw interval overlaps it is cancelled. None is promoted: the
arrival order (created_at, then id) is only shown to owners and customers.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.models.booking import Booking, BookingStatus
from playhub.models.organisation import Court
from playhub.models.outbox import NotificationType
from playhub.services import email_templates
from playhub.services.context import ReservationPolicy
from playhub.services.intents import IntentBuffer
from playhub.services.payments import refund_open_payments

logger = logging.getLogger(__name__)

AUTO_CANCEL_REASON = "Automatically cancelled: another booking was confirmed for this time."


def _overlapping_pending(booking: Booking):
    return select(Booking).where(
        Booking.court_id == booking.court_id,
        Booking.id != booking.id,
        Booking.status == BookingStatus.PENDING,
        Booking.start_time < booking.end_time,
        Booking.end_time > booking.start_time,
    )


async def cancel_competing_bookings(
    db: AsyncSession,
    confirmed: Booking,
    court: Court,
    intents: IntentBuffer,
    policy: ReservationPolicy,
    actor_id: int | None = None,
) -> list[Booking]:
    """Cancel every pending booking competing with confirmed. Returns them in arrival order."""
    result = await db.execute(_overlapping_pending(confirmed).order_by(Booking.created_at, Booking.id))
    competitors = list(result.scalars())

    for booking in competitors:
        booking.transition_to(BookingStatus.CANCELLED)
        booking.cancel_reason = AUTO_CANCEL_REASON
        await refund_open_payments(db, booking, intents)

        intents.notify(
            booking.customer_id,
            NotificationType.BOOKING_AUTO_CANCELLED,
            "Booking cancelled",
            f"Your request for {court.name} on {booking.start_time.strftime('%d/%m %H:%M')} was cancelled: "
            f"another booking was confirmed for this time.",
            booking.id,
        )
        recipient = booking.customer_email
        if recipient and policy.can_send_email("cancellation"):
            content = email_templates.booking_cancelled(booking, court, policy.app_url)
            intents.email(
                recipient,
                content.subject,
                content.text,
                content.html,
                f"booking:auto-cancel:{booking.id}:{recipient}",
            )
        intents.audit(actor_id, "booking.auto_cancel", "booking", booking.id, confirmed_booking_id=confirmed.id)

    if competitors:
        await db.flush()
        intents.notify(
            court.establishment.owner_id,
            NotificationType.BOOKING_AUTO_CANCELLED,
            "Competing requests cancelled",
            f"{len(competitors)} pending request(s) overlapping booking #{confirmed.id} were cancelled automatically.",
            confirmed.id,
        )
        logger.info("Booking %s confirmed; auto-cancelled %d competitors", confirmed.id, len(competitors))

    return competitors


async def arrival_position(db: AsyncSession, booking: Booking) -> int:
    """1-based position of a pending booking among the overlapping pending requests."""
    result = await db.execute(
        select(func.count(Booking.id)).where(
            Booking.court_id == booking.court_id,
            Booking.id != booking.id,
            Booking.status == BookingStatus.PENDING,
            Booking.start_time < booking.end_time,
            Booking.end_time > booking.start_time,
            (Booking.created_at < booking.created_at)
            | ((Booking.created_at == booking.created_at) & (Booking.id < booking.id)),
        )
    )
    return result.scalar_one() + 1
