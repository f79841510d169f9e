"""Monthly passes: request, owner confirmation, owner cancellation.

A pass claims one weekday/time window of a court for a calendar month. It is
requested PENDING by a customer and only holds its slot once the owner
confirms it. Confirmation runs under the court lock and re-checks every
occurrence of the month, so a pass never goes ACTIVE over a booking, a block
or another active pass.
"""

import logging
from datetime import datetime, time, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhub.core.errors import (
    InvalidInterval,
    InvalidRequest,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    SlotReservedByPass,
)
from playhub.models.booking import MonthlyPass, MonthlyPassStatus
from playhub.models.member import User
from playhub.models.organisation import Court
from playhub.models.outbox import NotificationType
from playhub.services import email_templates
from playhub.services.conflicts import check_block_overlap, check_reservation_overlap
from playhub.services.context import Actor, BookingContext
from playhub.services.intervals import month_key, next_month_start, parse_month, weekday_occurrences
from playhub.services.operating_hours import assert_operating_hours
from playhub.services.transaction import lock_court, reservation_transaction

logger = logging.getLogger(__name__)

# Next-month requests open two weeks before the month, first for holders renewing the same slot
RENEWAL_OPENS_BEFORE = timedelta(days=14)
REQUESTS_OPEN_BEFORE = timedelta(days=7)


def _fmt_window(monthly_pass: MonthlyPass) -> str:
    return f"{monthly_pass.start_time.strftime('%H:%M')}-{monthly_pass.end_time.strftime('%H:%M')}"


async def _check_pass_slots(db: AsyncSession, court: Court, monthly_pass: MonthlyPass) -> None:
    """Every occurrence of the pass must be open, free of bookings and blocks, and not held by another pass."""
    for occurrence in weekday_occurrences(
        monthly_pass.month, monthly_pass.weekday, monthly_pass.start_time, monthly_pass.end_time
    ):
        await assert_operating_hours(db, court.establishment, occurrence.start, occurrence.end)
        await check_reservation_overlap(db, court.id, occurrence.start, occurrence.end)
        await check_block_overlap(db, court.id, occurrence.start, occurrence.end)

    query = select(MonthlyPass).where(
        MonthlyPass.court_id == court.id,
        MonthlyPass.month == monthly_pass.month,
        MonthlyPass.weekday == monthly_pass.weekday,
        MonthlyPass.status == MonthlyPassStatus.ACTIVE,
        MonthlyPass.start_time < monthly_pass.end_time,
        MonthlyPass.end_time > monthly_pass.start_time,
    )
    if monthly_pass.id is not None:
        query = query.where(MonthlyPass.id != monthly_pass.id)
    holder = (await db.execute(query.limit(1))).scalar_one_or_none()
    if holder:
        raise SlotReservedByPass(f"Slot already held by a monthly pass ({_fmt_window(holder)}).")


async def _check_request_window(db: AsyncSession, monthly_pass: MonthlyPass, now: datetime) -> None:
    current = month_key(now)
    next_start = next_month_start(parse_month(current))

    if monthly_pass.month == current:
        first = weekday_occurrences(
            monthly_pass.month, monthly_pass.weekday, monthly_pass.start_time, monthly_pass.end_time
        )[0]
        if now >= first.start:
            raise InvalidRequest("Monthly passes must be requested before their first occurrence.")
        return

    if monthly_pass.month != month_key(next_start):
        raise InvalidRequest("Monthly passes can only be requested for this month or the next.")

    opens = datetime.combine(next_start, time()) - RENEWAL_OPENS_BEFORE
    if now < opens:
        raise InvalidRequest("Requests for next month open two weeks before it starts.")
    if now >= opens + (RENEWAL_OPENS_BEFORE - REQUESTS_OPEN_BEFORE):
        return

    renewal = (
        await db.execute(
            select(MonthlyPass.id).where(
                MonthlyPass.court_id == monthly_pass.court_id,
                MonthlyPass.customer_id == monthly_pass.customer_id,
                MonthlyPass.month == current,
                MonthlyPass.status == MonthlyPassStatus.ACTIVE,
                MonthlyPass.weekday == monthly_pass.weekday,
                MonthlyPass.start_time == monthly_pass.start_time,
                MonthlyPass.end_time == monthly_pass.end_time,
            )
        )
    ).scalar_one_or_none()
    if renewal is None:
        raise InvalidRequest("Until the last week before the month, only current holders can renew their slot.")


async def _lock_for_pass(db: AsyncSession, pass_id: int, lock_timeout_ms: int, require_active: bool = False):
    court_id = (
        await db.execute(select(MonthlyPass.court_id).where(MonthlyPass.id == pass_id))
    ).scalar_one_or_none()
    if court_id is None:
        raise NotFound("Monthly pass not found.")

    court = await lock_court(db, court_id, lock_timeout_ms, require_active=require_active)
    monthly_pass = (await db.execute(select(MonthlyPass).where(MonthlyPass.id == pass_id))).scalar_one()
    return court, monthly_pass


async def request_monthly_pass(
    ctx: BookingContext,
    actor: Actor,
    court_id: int,
    month: str,
    weekday: int,
    start_time: time,
    end_time: time,
) -> MonthlyPass:
    """Ask for a court's weekday window for a whole month. Created PENDING for the owner to confirm.

    Asking again while a request is pending returns that request.
    """
    policy = ctx.policy
    if not actor.is_customer:
        raise PermissionDenied("Only customers can request monthly passes.")
    parse_month(month)
    if not 0 <= weekday <= 6:
        raise InvalidRequest("Weekday must be between 0 (Monday) and 6 (Sunday).")
    if end_time <= start_time:
        raise InvalidInterval("End time must be after start time.")
    now = ctx.now()

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court = await lock_court(db, court_id, policy.lock_timeout_ms, require_active=True)
        if not court.monthly_price_cents or court.monthly_price_cents <= 0:
            raise InvalidRequest("This court does not offer monthly passes.")

        existing = (
            await db.execute(
                select(MonthlyPass).where(
                    MonthlyPass.court_id == court.id,
                    MonthlyPass.customer_id == actor.id,
                    MonthlyPass.month == month,
                    MonthlyPass.status != MonthlyPassStatus.CANCELLED,
                )
            )
        ).scalars().first()
        if existing is not None and existing.status == MonthlyPassStatus.ACTIVE:
            raise InvalidRequest("You already have an active monthly pass on this court for that month.")
        if existing is not None:
            return existing

        monthly_pass = MonthlyPass(
            court_id=court.id,
            customer_id=actor.id,
            month=month,
            weekday=weekday,
            start_time=start_time,
            end_time=end_time,
            price_cents=court.monthly_price_cents,
            status=MonthlyPassStatus.PENDING,
        )
        await _check_request_window(db, monthly_pass, now)
        await _check_pass_slots(db, court, monthly_pass)
        db.add(monthly_pass)
        await db.flush()

        owner = court.establishment.owner
        uow.intents.notify(
            owner.id,
            NotificationType.MONTHLY_PASS_PENDING,
            "Monthly pass request",
            f"New monthly pass request for {court.name} ({month}, {_fmt_window(monthly_pass)}).",
        )
        if policy.can_send_email("pending"):
            content = email_templates.monthly_pass_pending_for_owner(monthly_pass, court, policy.app_url)
            uow.intents.email(
                owner.email, content.subject, content.text, content.html,
                f"monthly-pass:pending:{monthly_pass.id}:{owner.email}",
            )
        uow.intents.audit(
            actor.id, "monthly_pass.request", "monthly_pass", monthly_pass.id,
            court_id=court.id, month=month, weekday=weekday,
        )

    logger.info("Customer %s requested monthly pass %s on court %s", actor.id, monthly_pass.id, court_id)
    return monthly_pass


async def confirm_monthly_pass(ctx: BookingContext, actor: Actor, pass_id: int) -> MonthlyPass:
    """Activate a pending pass once every occurrence of its month is still free."""
    policy = ctx.policy

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court, monthly_pass = await _lock_for_pass(db, pass_id, policy.lock_timeout_ms, require_active=True)
        if court.establishment.owner_id != actor.id:
            raise PermissionDenied("Only the establishment owner can confirm monthly passes.")
        if not monthly_pass.can_transition_to(MonthlyPassStatus.ACTIVE):
            raise InvalidTransition(
                f"Only pending monthly passes can be confirmed (pass is {monthly_pass.status.value})."
            )

        await _check_pass_slots(db, court, monthly_pass)
        monthly_pass.transition_to(MonthlyPassStatus.ACTIVE)

        customer = await db.get(User, monthly_pass.customer_id)
        uow.intents.notify(
            monthly_pass.customer_id,
            NotificationType.MONTHLY_PASS_CONFIRMED,
            "Monthly pass confirmed",
            f"Your monthly pass for {court.name} ({monthly_pass.month}, {_fmt_window(monthly_pass)}) is active.",
        )
        if customer is not None and policy.can_send_email("confirmation"):
            content = email_templates.monthly_pass_confirmed(monthly_pass, court, policy.app_url)
            uow.intents.email(
                customer.email, content.subject, content.text, content.html,
                f"monthly-pass:confirmed:{monthly_pass.id}:{customer.email}",
            )
        uow.intents.audit(actor.id, "monthly_pass.confirm", "monthly_pass", monthly_pass.id, court_id=court.id)

    logger.info("Monthly pass %s confirmed by owner %s", pass_id, actor.id)
    return monthly_pass


async def cancel_monthly_pass(ctx: BookingContext, actor: Actor, pass_id: int) -> MonthlyPass:
    """Turn down a pending pass request."""
    policy = ctx.policy

    async with reservation_transaction(ctx) as uow:
        db = uow.session
        court, monthly_pass = await _lock_for_pass(db, pass_id, policy.lock_timeout_ms)
        if court.establishment.owner_id != actor.id:
            raise PermissionDenied("Only the establishment owner can cancel monthly passes.")
        monthly_pass.transition_to(MonthlyPassStatus.CANCELLED)

        customer = await db.get(User, monthly_pass.customer_id)
        uow.intents.notify(
            monthly_pass.customer_id,
            NotificationType.MONTHLY_PASS_CANCELLED,
            "Monthly pass cancelled",
            f"Your monthly pass request for {court.name} ({monthly_pass.month}) was cancelled.",
        )
        if customer is not None and policy.can_send_email("cancellation"):
            content = email_templates.monthly_pass_cancelled(monthly_pass, court, policy.app_url)
            uow.intents.email(
                customer.email, content.subject, content.text, content.html,
                f"monthly-pass:cancelled:{monthly_pass.id}:{customer.email}",
            )
        uow.intents.audit(actor.id, "monthly_pass.cancel", "monthly_pass", monthly_pass.id, court_id=court.id)

    logger.info("Monthly pass %s cancelled by owner %s", pass_id, actor.id)
    return monthly_pass
