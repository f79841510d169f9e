"""Reservation routes: create, confirm, cancel, reschedule, availability.

Thin wrappers over services.reservations. Rule violations raised by the core
are rendered by the BookingViolation handler in main.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from playhub.core.database import get_db
from playhub.core.dependencies import get_booking_context, get_current_actor
from playhub.core.errors import NotFound
from playhub.models.organisation import Court
from playhub.schemas import (
    AvailabilityOut,
    BookingCancel,
    BookingCreate,
    BookingOut,
    BookingReschedule,
    OwnerBookingCreate,
    PaymentSessionOut,
    ReservationOut,
)
from playhub.services.availability import day_availability
from playhub.services.context import Actor, BookingContext
from playhub.services.reservations import (
    ReservationResult,
    cancel_reservation,
    confirm_reservation,
    create_owner_reservation,
    create_reservation,
    reschedule_reservation,
)

router = APIRouter(tags=["bookings"])


def _reservation_out(result: ReservationResult) -> ReservationOut:
    return ReservationOut(
        bookings=[BookingOut.model_validate(b) for b in result.bookings],
        payment_sessions=[PaymentSessionOut.model_validate(s) for s in result.payment_sessions],
    )


@router.post("/bookings", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    body: BookingCreate,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    result = await create_reservation(
        ctx,
        actor,
        court_id=body.court_id,
        start=body.start_time,
        end=body.end_time,
        repeat_weeks=body.repeat_weeks,
        payment_mode=body.payment_mode,
    )
    return _reservation_out(result)


@router.post("/bookings/owner", response_model=ReservationOut, status_code=status.HTTP_201_CREATED)
async def create_owner_booking(
    body: OwnerBookingCreate,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    result = await create_owner_reservation(
        ctx,
        actor,
        court_id=body.court_id,
        start=body.start_time,
        end=body.end_time,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        customer_phone=body.customer_phone,
        repeat_weeks=body.repeat_weeks,
    )
    return _reservation_out(result)


@router.post("/bookings/{booking_id}/confirm", response_model=BookingOut)
async def confirm_booking(
    booking_id: int,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    return await confirm_reservation(ctx, actor, booking_id)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingOut)
async def cancel_booking(
    booking_id: int,
    body: BookingCancel | None = None,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    reason = body.reason if body else None
    return await cancel_reservation(ctx, actor, booking_id, reason)


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def reschedule_booking(
    booking_id: int,
    body: BookingReschedule,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    return await reschedule_reservation(ctx, actor, booking_id, body.start_time, body.end_time)


@router.get("/courts/{court_id}/availability", response_model=AvailabilityOut)
async def get_availability(
    court_id: int,
    day: date = Query(..., alias="date"),
    ctx: BookingContext = Depends(get_booking_context),
    db: AsyncSession = Depends(get_db),
):
    """Slots for one court on one day. Public, unlocked, advisory only."""
    result = await db.execute(
        select(Court).options(selectinload(Court.establishment)).where(Court.id == court_id, Court.is_active.is_(True))
    )
    court = result.scalar_one_or_none()
    if court is None:
        raise NotFound("Court not found.")

    availability = await day_availability(db, court, day, ctx.now(), ctx.policy.slot_step_minutes)
    return AvailabilityOut(
        court_id=court.id,
        court_name=court.name,
        date=day,
        is_open=availability.is_open,
        opens_at=availability.opens_at,
        closes_at=availability.closes_at,
        closed_reason=availability.closed_reason,
        slots=availability.slots,
    )
