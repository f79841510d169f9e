"""Reservation operations: create, confirm, cancel, reschedule.

Each operation is one unit of work that starts by locking the court row, so
all conflict-sensitive writes on a court are serialized. Every check runs
inside that transaction; any failure rolls the whole operation back,
including every occurrence of a weekly series. Notifications, emails, payment
calls and audit records are buffered and only dispatched after commit.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.errors import (
    AlreadyRescheduled,
    CancellationNotAllowed,
    InvalidInterval,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PaymentNotReady,
    PermissionDenied,
    SlotReserved,
)
from playhub.models.booking import Booking, BookingSource, BookingStatus
from playhub.models.organisation import Court, Establishment
from playhub.models.outbox import NotificationType
from playhub.models.payment import Payment, PaymentStatus
from playhub.services import email_templates
from playhub.services.booking_rules import (
    check_double_booking,
    check_not_in_past,
    check_rate_limit,
    check_repeat_weeks,
    validate_cancellation,
)
from playhub.services.cascade import cancel_competing_bookings
from playhub.services.collaborators import PaymentSession
from playhub.services.conflicts import check_slot_free
from playhub.services.context import Actor, BookingContext, ReservationPolicy
from playhub.services.intents import IntentBuffer
from playhub.services.intervals import duration_minutes, is_aligned
from playhub.services.operating_hours import assert_operating_hours
from playhub.services.payments import get_booking_payment, refund_open_payments
from playhub.services.pricing import price_for_occurrence
from playhub.services.series import weekly_occurrences
from playhub.services.transaction import ensure_bookable, lock_court, lock_customer, reservation_transaction

logger = logging.getLogger(__name__)

OWNER_CANCEL_REASON = "Cancelled by the establishment."
CUSTOMER_CANCEL_REASON = "Cancelled by the customer."
RESCHEDULE_REASON = "Rescheduled by the customer."


class PaymentMode(enum.StrEnum):
    ON_SITE = "on_site"
    ONLINE = "online"


@dataclass
class ReservationResult:
    bookings: list[Booking]
    payment_sessions: list[PaymentSession] = field(default_factory=list)


def _fmt_when(booking: Booking) -> str:
    return f"{booking.start_time.strftime('%d/%m %H:%M')}-{booking.end_time.strftime('%H:%M')}"


def _fmt_cents(cents: int) -> str:
    return f"R$ {cents // 100},{cents % 100:02d}"


def _uses_online_payment(policy: ReservationPolicy, establishment: Establishment, mode: PaymentMode) -> bool:
    return (
        mode == PaymentMode.ONLINE
        and policy.payments_enabled
        and establishment.online_payments_enabled
    )


def _validate_contact(name: str, email: str, phone: str) -> None:
    if not name or not name.strip():
        raise InvalidRequest("Customer name is required.")
    if not email or "@" not in email:
        raise InvalidRequest("A valid customer email is required.")
    if len(re.sub(r"\D", "", phone or "")) < 10:
        raise InvalidRequest("Customer phone must have at least 10 digits.")


async def _lock_for_booking(db: AsyncSession, booking_id: int, lock_timeout_ms: int) -> tuple[Court, Booking]:
    """Lock the court of a booking, then read the booking as of the lock."""
    court_id = (await db.execute(select(Booking.court_id).where(Booking.id == booking_id))).scalar_one_or_none()
    if court_id is None:
        raise NotFound("Booking not found.")

    court = await lock_court(db, court_id, lock_timeout_ms)
    booking = (await db.execute(select(Booking).where(Booking.id == booking_id))).scalar_one()
    return court, booking


async def _check_occurrence(
    db: AsyncSession,
    court: Court,
    customer_id: int | None,
    start: datetime,
    end: datetime,
    exclude_booking_id: int | None = None,
) -> None:
    establishment = court.establishment
    await assert_operating_hours(db, establishment, start, end)
    await check_slot_free(
        db, court.id, customer_id, start, end, establishment.booking_buffer_minutes, exclude_booking_id
    )
    if customer_id is not None:
        await check_double_booking(db, customer_id, start, end, exclude_booking_id)


def _queue_customer_created(intents: IntentBuffer, policy: ReservationPolicy, booking: Booking, court: Court) -> None:
    owner = court.establishment.owner
    if booking.status == BookingStatus.PENDING:
        intents.notify(
            owner.id,
            NotificationType.BOOKING_PENDING,
            "New booking request",
            f"{booking.customer_name} requested {court.name} on {_fmt_when(booking)}.",
            booking.id,
        )
        if policy.can_send_email("pending"):
            content = email_templates.booking_pending_for_owner(booking, court, booking.customer_name, policy.app_url)
            intents.email(
                owner.email, content.subject, content.text, content.html,
                f"booking:pending:{booking.id}:{owner.email}",
            )
        return

    intents.notify(
        owner.id,
        NotificationType.BOOKING_CONFIRMED,
        "New booking",
        f"{booking.customer_name} booked {court.name} on {_fmt_when(booking)}.",
        booking.id,
    )
    _queue_customer_confirmed(intents, policy, booking, court)


def _queue_customer_confirmed(intents: IntentBuffer, policy: ReservationPolicy, booking: Booking, court: Court) -> None:
    intents.notify(
        booking.customer_id,
        NotificationType.BOOKING_CONFIRMED,
        "Booking confirmed",
        f"Your booking of {court.name} on {_fmt_when(booking)} is confirmed.",
        booking.id,
    )
    if booking.customer_email and policy.can_send_email("confirmation"):
        content = email_templates.booking_confirmed(booking, court, policy.app_url)
        intents.email(
            booking.customer_email, content.subject, content.text, content.html,
            f"booking:confirmed:{booking.id}:{booking.customer_email}",
        )


def _queue_cancelled_email(intents: IntentBuffer, policy: ReservationPolicy, booking: Booking, court: Court) -> None:
    if booking.customer_email and policy.can_send_email("cancellation"):
        content = email_templates.booking_cancelled(booking, court, policy.app_url)
        intents.email(
            booking.customer_email, content.subject, content.text, content.html,
            f"booking:cancelled:{booking.id}:{booking.customer_email}",
        )


def _queue_owner_cancelled_email(
    intents: IntentBuffer, policy: ReservationPolicy, booking: Booking, court: Court
) -> None:
    owner = court.establishment.owner
    if policy.can_send_email("cancellation"):
        content = email_templates.booking_cancelled_for_owner(booking, court, policy.app_url)
        intents.email(
            owner.email, content.subject, content.text, content.html,
            f"booking:owner-cancelled:{booking.id}:{owner.email}",
        )


async def create_reservation(
    ctx: BookingContext,
    actor: Actor,
    court_id: int,
    start: datetime,
    end: datetime,
    repeat_weeks: int = 0,
    payment_mode: PaymentMode = PaymentMode.ON_SITE,
) -> ReservationResult:
    """Create a customer booking, or a weekly series of repeat_weeks + 1 bookings.

    The series is all-or-nothing. Bookings are PENDING when the establishment
    confirms bookings manually or the customer pays online, else CONFIRMED.
    """
    policy = ctx.policy
    if not actor.is_customer:
        raise PermissionDenied("Only customers can book courts.")

    duration_minutes(start, end)
    now = ctx.now()
    check_not_in_past(start, now)
    check_repeat_weeks(repeat_weeks, policy.customer_max_repeat_weeks)
    occurrences = weekly_occurrences(start, end, repeat_weeks)

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court = await lock_court(db, court_id, policy.lock_timeout_ms, require_active=True)
        establishment = court.establishment

        online = _uses_online_payment(policy, establishment, payment_mode)
        if online and repeat_weeks > 0:
            raise InvalidRequest("Online payment is not available for repeated bookings.")

        customer = await lock_customer(db, actor.id)

        await check_rate_limit(
            db, customer.id, now, len(occurrences), policy.rate_limit_window_minutes, policy.rate_limit_max_requests
        )

        requires_confirmation = establishment.requires_booking_confirmation or online
        status = BookingStatus.PENDING if requires_confirmation else BookingStatus.CONFIRMED
        provider = establishment.payment_provider or policy.payment_provider

        bookings: list[Booking] = []
        for occurrence in occurrences:
            await _check_occurrence(db, court, customer.id, occurrence.start, occurrence.end)
            price = await price_for_occurrence(
                db, court, customer.id, occurrence.start, occurrence.end, policy.long_booking_minutes
            )

            booking = Booking(
                court_id=court.id,
                customer_id=customer.id,
                customer_name=customer.name,
                customer_email=customer.email,
                customer_phone=customer.phone,
                start_time=occurrence.start,
                end_time=occurrence.end,
                status=status,
                source=BookingSource.CUSTOMER,
                total_price_cents=price,
                created_at=now,
            )
            db.add(booking)
            await db.flush()
            bookings.append(booking)

            if online and price > 0:
                payment = Payment(booking_id=booking.id, provider=provider, amount_cents=price)
                db.add(payment)
                await db.flush()
                uow.intents.payment("start", booking.id, payment_id=payment.id, provider=provider)

            _queue_customer_created(uow.intents, policy, booking, court)

        uow.intents.audit(
            actor.id,
            "booking.create.customer",
            "booking",
            bookings[0].id,
            booking_ids=[b.id for b in bookings],
            court_id=court.id,
            repeat_weeks=repeat_weeks,
            status=status.value,
        )

    logger.info(
        "Customer %s created %d booking(s) on court %s: %s",
        actor.id, len(bookings), court_id, [b.id for b in bookings],
    )
    return ReservationResult(bookings=bookings, payment_sessions=uow.payment_sessions)


async def create_owner_reservation(
    ctx: BookingContext,
    actor: Actor,
    court_id: int,
    start: datetime,
    end: datetime,
    customer_name: str,
    customer_email: str,
    customer_phone: str,
    repeat_weeks: int = 0,
) -> ReservationResult:
    """Owner-entered booking for a walk-in or phone customer without an account.

    Always CONFIRMED. The customer gets an invite email instead of a pending notice.
    """
    policy = ctx.policy
    duration_minutes(start, end)
    now = ctx.now()
    check_not_in_past(start, now)
    check_repeat_weeks(repeat_weeks, policy.owner_max_repeat_weeks)
    _validate_contact(customer_name, customer_email, customer_phone)
    customer_name = customer_name.strip()
    customer_email = customer_email.strip().lower()
    occurrences = weekly_occurrences(start, end, repeat_weeks)

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court = await lock_court(db, court_id, policy.lock_timeout_ms, require_active=True)
        if court.establishment.owner_id != actor.id:
            raise PermissionDenied("Only the establishment owner can add bookings here.")

        bookings: list[Booking] = []
        for occurrence in occurrences:
            await _check_occurrence(db, court, None, occurrence.start, occurrence.end)
            price = await price_for_occurrence(
                db, court, None, occurrence.start, occurrence.end, policy.long_booking_minutes
            )
            booking = Booking(
                court_id=court.id,
                customer_id=None,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=customer_phone,
                start_time=occurrence.start,
                end_time=occurrence.end,
                status=BookingStatus.CONFIRMED,
                source=BookingSource.OWNER,
                total_price_cents=price,
                created_at=now,
            )
            db.add(booking)
            await db.flush()
            bookings.append(booking)

        first = bookings[0]
        if policy.can_send_email("invite"):
            content = email_templates.owner_booking_invite(first, court, customer_name, policy.app_url)
            uow.intents.email(
                customer_email, content.subject, content.text, content.html,
                f"booking:invite:{first.id}:{customer_email}",
            )
        uow.intents.audit(
            actor.id,
            "booking.create.owner",
            "booking",
            first.id,
            booking_ids=[b.id for b in bookings],
            court_id=court.id,
            repeat_weeks=repeat_weeks,
        )

    logger.info("Owner %s created %d booking(s) on court %s", actor.id, len(bookings), court_id)
    return ReservationResult(bookings=bookings, payment_sessions=uow.payment_sessions)


async def confirm_reservation(ctx: BookingContext, actor: Actor, booking_id: int) -> Booking:
    """Confirm a pending booking and cancel every pending booking competing with it."""
    policy = ctx.policy

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court, booking = await _lock_for_booking(db, booking_id, policy.lock_timeout_ms)

        if court.establishment.owner_id != actor.id:
            raise PermissionDenied("Only the establishment owner can confirm bookings.")
        if not booking.can_transition_to(BookingStatus.CONFIRMED):
            raise InvalidTransition(f"Only pending bookings can be confirmed (booking is {booking.status.value}).")

        payment = await get_booking_payment(db, booking.id)
        if payment is not None and payment.status == PaymentStatus.PENDING:
            raise PaymentNotReady("The online payment for this booking has not been authorized yet.")

        clash = (
            await db.execute(
                select(Booking)
                .where(
                    Booking.court_id == booking.court_id,
                    Booking.id != booking.id,
                    Booking.status == BookingStatus.CONFIRMED,
                    Booking.start_time < booking.end_time,
                    Booking.end_time > booking.start_time,
                )
                .limit(1)
            )
        ).scalar_one_or_none()
        if clash:
            raise SlotReserved(f"Another booking is already confirmed for {_fmt_when(clash)}.")

        booking.transition_to(BookingStatus.CONFIRMED)
        if payment is not None and payment.status == PaymentStatus.AUTHORIZED:
            payment.status = PaymentStatus.PAID
            uow.intents.payment("mark_paid", booking.id, payment_id=payment.id)

        _queue_customer_confirmed(uow.intents, policy, booking, court)
        cancelled = await cancel_competing_bookings(db, booking, court, uow.intents, policy, actor.id)
        uow.intents.audit(
            actor.id, "booking.confirm", "booking", booking.id, auto_cancelled=[b.id for b in cancelled]
        )

    logger.info("Booking %s confirmed by owner %s", booking_id, actor.id)
    return booking


async def cancel_reservation(
    ctx: BookingContext, actor: Actor, booking_id: int, reason: str | None = None
) -> Booking:
    """Cancel a booking as the establishment owner or as its customer.

    Owners may only cancel pending bookings. Customers may cancel their own
    future bookings, paying the establishment's late-cancellation fee.
    """
    policy = ctx.policy
    now = ctx.now()

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court, booking = await _lock_for_booking(db, booking_id, policy.lock_timeout_ms)
        establishment = court.establishment

        if establishment.owner_id == actor.id:
            by_owner = True
            if booking.status != BookingStatus.PENDING:
                raise CancellationNotAllowed("The establishment can only cancel pending bookings.")
            fee = 0
            booking.cancel_reason = reason or OWNER_CANCEL_REASON
        elif actor.is_customer:
            by_owner = False
            if booking.customer_id != actor.id:
                raise NotFound("Booking not found.")
            fee = validate_cancellation(booking, establishment, now)
            booking.cancel_reason = reason or CUSTOMER_CANCEL_REASON
            if fee:
                booking.cancel_reason += f" Cancellation fee: {_fmt_cents(fee)}."
        else:
            raise PermissionDenied("You cannot cancel this booking.")

        booking.transition_to(BookingStatus.CANCELLED)
        booking.cancel_fee_cents = fee
        await refund_open_payments(db, booking, uow.intents)

        if by_owner:
            uow.intents.notify(
                booking.customer_id,
                NotificationType.BOOKING_CANCELLED,
                "Booking cancelled",
                f"Your booking of {court.name} on {_fmt_when(booking)} was cancelled by the establishment.",
                booking.id,
            )
        else:
            uow.intents.notify(
                establishment.owner_id,
                NotificationType.BOOKING_CANCELLED,
                "Booking cancelled",
                f"{booking.customer_name} cancelled {court.name} on {_fmt_when(booking)}.",
                booking.id,
            )
        _queue_cancelled_email(uow.intents, policy, booking, court)
        if not by_owner:
            _queue_owner_cancelled_email(uow.intents, policy, booking, court)
        uow.intents.audit(
            actor.id,
            "booking.cancel.owner" if by_owner else "booking.cancel.customer",
            "booking",
            booking.id,
            reason=booking.cancel_reason,
            fee_cents=fee,
        )

    logger.info("Booking %s cancelled by %s (fee %d)", booking_id, actor.id, fee)
    return booking


async def reschedule_reservation(
    ctx: BookingContext, actor: Actor, booking_id: int, new_start: datetime, new_end: datetime
) -> Booking:
    """Move a customer's booking to a new interval on the same court.

    Creates a new PENDING booking pointing back at the original and cancels
    the original, in one transaction. A booking can be rescheduled once.
    """
    policy = ctx.policy
    if not actor.is_customer:
        raise PermissionDenied("Only customers can reschedule bookings.")

    duration_minutes(new_start, new_end)
    step = policy.slot_step_minutes
    if not is_aligned(new_start, step) or not is_aligned(new_end, step):
        raise InvalidInterval(f"New times must be on a {step}-minute grid.")
    now = ctx.now()
    check_not_in_past(new_start, now)

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court, original = await _lock_for_booking(db, booking_id, policy.lock_timeout_ms)

        if original.customer_id != actor.id:
            raise NotFound("Booking not found.")

        derivative = (
            await db.execute(select(Booking.id).where(Booking.rescheduled_from_id == original.id))
        ).scalar_one_or_none()
        if derivative is not None:
            raise AlreadyRescheduled("This booking has already been rescheduled.")
        if not original.can_transition_to(BookingStatus.CANCELLED):
            raise InvalidTransition("Cancelled bookings cannot be rescheduled.")
        if original.start_time <= now:
            raise InvalidInterval("Cannot reschedule a booking that has already started.")
        ensure_bookable(court)
        await lock_customer(db, actor.id)

        await _check_occurrence(db, court, actor.id, new_start, new_end, exclude_booking_id=original.id)
        price = await price_for_occurrence(db, court, actor.id, new_start, new_end, policy.long_booking_minutes)

        new_booking = Booking(
            court_id=court.id,
            customer_id=original.customer_id,
            customer_name=original.customer_name,
            customer_email=original.customer_email,
            customer_phone=original.customer_phone,
            start_time=new_start,
            end_time=new_end,
            status=BookingStatus.PENDING,
            source=BookingSource.CUSTOMER,
            total_price_cents=price,
            rescheduled_from_id=original.id,
            created_at=now,
        )
        db.add(new_booking)
        await db.flush()

        original.transition_to(BookingStatus.CANCELLED)
        original.cancel_reason = RESCHEDULE_REASON
        await refund_open_payments(db, original, uow.intents)
        await db.flush()

        uow.intents.notify(
            court.establishment.owner_id,
            NotificationType.BOOKING_RESCHEDULED,
            "Booking rescheduled",
            f"{original.customer_name} moved {court.name} from {_fmt_when(original)} to {_fmt_when(new_booking)}.",
            new_booking.id,
        )
        if original.customer_email and policy.can_send_email("reschedule"):
            content = email_templates.booking_rescheduled(original, new_booking, court, policy.app_url)
            uow.intents.email(
                original.customer_email, content.subject, content.text, content.html,
                f"booking:rescheduled:{new_booking.id}:{original.customer_email}",
            )
        uow.intents.audit(
            actor.id, "booking.reschedule.customer", "booking", new_booking.id, rescheduled_from=original.id
        )

    logger.info("Booking %s rescheduled to %s by customer %s", booking_id, new_booking.id, actor.id)
    return new_booking
