"""Payment state tracked by the reservation core.

Provider adapters report events (authorized, failed) through
apply_payment_event(); the reservation operations use the helpers here to
refund or settle the payment attached to a booking.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from playhub.core.errors import InvalidRequest, NotFound
from playhub.models.booking import Booking, BookingStatus
from playhub.models.outbox import NotificationType
from playhub.models.payment import REFUNDABLE_STATUSES, Payment, PaymentStatus
from playhub.services.intents import IntentBuffer
from playhub.services.transaction import lock_court, reservation_transaction

logger = logging.getLogger(__name__)

PAYMENT_FAILED_REASON = "Payment failed."


async def get_booking_payment(db: AsyncSession, booking_id: int) -> Payment | None:
    """The most recent payment for a booking, if any."""
    result = await db.execute(
        select(Payment).where(Payment.booking_id == booking_id).order_by(Payment.id.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def refund_open_payments(db: AsyncSession, booking: Booking, intents: IntentBuffer) -> list[Payment]:
    """Mark authorized or paid payments of booking refunded."""
    result = await db.execute(
        select(Payment).where(Payment.booking_id == booking.id, Payment.status.in_(REFUNDABLE_STATUSES))
    )
    refunded = list(result.scalars())
    for payment in refunded:
        payment.status = PaymentStatus.REFUNDED
        intents.payment("mark_refunded", booking.id, payment_id=payment.id)
    return refunded


async def apply_payment_event(ctx, payment_id: int, event: str) -> Payment:
    """Apply a provider-reported event to a payment.

    "authorized": PENDING -> AUTHORIZED; the owner may now confirm the booking.
    "failed": the payment is FAILED and its booking, if still pending, cancelled.
    Repeated events are no-ops.
    """
    if event not in ("authorized", "failed"):
        raise InvalidRequest(f"Unknown payment event: {event}")

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court_id = (
            await db.execute(
                select(Booking.court_id).join(Payment, Payment.booking_id == Booking.id).where(Payment.id == payment_id)
            )
        ).scalar_one_or_none()
        if court_id is None:
            raise NotFound("Payment not found.")

        await lock_court(db, court_id, ctx.policy.lock_timeout_ms)
        result = await db.execute(
            select(Payment).options(selectinload(Payment.booking)).where(Payment.id == payment_id)
        )
        payment = result.scalar_one()
        booking = payment.booking

        if event == "authorized":
            if payment.status == PaymentStatus.PENDING:
                payment.status = PaymentStatus.AUTHORIZED
                uow.intents.payment("mark_authorized", booking.id, payment_id=payment.id)
                uow.intents.audit(None, "payment.authorized", "payment", payment.id, booking_id=booking.id)
        elif payment.status in (PaymentStatus.PENDING, PaymentStatus.AUTHORIZED):
            payment.status = PaymentStatus.FAILED
            if booking.status == BookingStatus.PENDING:
                booking.transition_to(BookingStatus.CANCELLED)
                booking.cancel_reason = PAYMENT_FAILED_REASON
                uow.intents.notify(
                    booking.customer_id,
                    NotificationType.BOOKING_CANCELLED,
                    "Booking cancelled",
                    f"The payment for your booking on {booking.start_time.strftime('%d/%m %H:%M')} failed.",
                    booking.id,
                )
            uow.intents.audit(None, "payment.failed", "payment", payment.id, booking_id=booking.id)

    logger.info("Payment %s: %s -> %s", payment_id, event, payment.status.value)
    return payment
