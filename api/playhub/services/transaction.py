"""Unit of work for reservation writes.

Every reservation-mutating operation runs inside reservation_transaction():
one session, one database transaction, started by locking the target court
row. Side effects are buffered on the unit of work and dispatched only after
the commit succeeds.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from playhub.core.database import get_dialect_name
from playhub.core.errors import AlreadyRescheduled, Conflict, NotFound
from playhub.models.member import User
from playhub.models.organisation import Court, Establishment
from playhub.services.collaborators import PaymentSession
from playhub.services.context import BookingContext
from playhub.services.intents import IntentBuffer, dispatch_intents

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
CONTENTION_PGCODES = {"55P03", "40P01", "40001"}


@dataclass
class UnitOfWork:
    session: AsyncSession
    intents: IntentBuffer
    payment_sessions: list[PaymentSession] = field(default_factory=list)


def _is_contention(exc: OperationalError) -> bool:
    pgcode = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if pgcode in CONTENTION_PGCODES:
        return True
    message = str(exc.orig).lower()
    return "locked" in message or "deadlock" in message or "timeout" in message


@asynccontextmanager
async def reservation_transaction(ctx: BookingContext) -> AsyncIterator[UnitOfWork]:
    """Run a block as one all-or-nothing transaction.

    Any exception rolls everything back. Lock timeouts and deadlocks surface as
    Conflict (retryable); a duplicate reschedule surfaces as AlreadyRescheduled.
    """
    intents = IntentBuffer()
    uow: UnitOfWork | None = None
    try:
        async with ctx.session_factory() as session:
            async with session.begin():
                uow = UnitOfWork(session=session, intents=intents)
                yield uow
    except IntegrityError as exc:
        if "rescheduled_from" in str(exc.orig):
            raise AlreadyRescheduled("This booking has already been rescheduled.") from exc
        logger.warning("Integrity error in reservation transaction: %s", exc.orig)
        raise Conflict("The booking changed while saving. Please try again.") from exc
    except OperationalError as exc:
        if not _is_contention(exc):
            raise
        logger.warning("Reservation transaction contention: %s", exc.orig)
        raise Conflict("The court is busy with another request. Please try again.") from exc

    uow.payment_sessions = await dispatch_intents(intents, ctx)


async def lock_court(
    session: AsyncSession, court_id: int, lock_timeout_ms: int = 5000, require_active: bool = False
) -> Court:
    """SELECT ... FOR UPDATE on the court row, with its establishment and owner loaded.

    Concurrent writers on the same court queue here until this transaction ends.
    Pass require_active when the caller is about to occupy new time on the court;
    existing bookings on a deactivated court can still be confirmed or cancelled.
    """
    if get_dialect_name(session) == "postgresql":
        await session.execute(text(f"SET LOCAL lock_timeout = '{int(lock_timeout_ms)}ms'"))

    result = await session.execute(
        select(Court)
        .options(selectinload(Court.establishment).selectinload(Establishment.owner))
        .where(Court.id == court_id)
        .with_for_update(of=Court)
    )
    court = result.scalar_one_or_none()

    if court is None:
        raise NotFound("Court not found.")
    if require_active:
        ensure_bookable(court)
    return court


def ensure_bookable(court: Court) -> None:
    if not court.is_active or not court.establishment.is_active:
        raise NotFound("Court not found.")


async def lock_customer(session: AsyncSession, customer_id: int) -> User:
    """SELECT ... FOR UPDATE on the customer row.

    Serializes a customer's own writes across courts, so the double-booking
    check sees every booking the customer is making concurrently.
    """
    result = await session.execute(select(User).where(User.id == customer_id).with_for_update())
    customer = result.scalar_one_or_none()
    if customer is None or not customer.is_active:
        raise NotFound("Customer not found.")
    return customer
