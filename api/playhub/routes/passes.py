"""Monthly pass routes: request, confirm, cancel."""

from fastapi import APIRouter, Depends, status

from playhub.core.dependencies import get_booking_context, get_current_actor
from playhub.schemas import MonthlyPassCreate, MonthlyPassOut
from playhub.services.context import Actor, BookingContext
from playhub.services.passes import cancel_monthly_pass, confirm_monthly_pass, request_monthly_pass

router = APIRouter(tags=["monthly passes"])


@router.post("/courts/{court_id}/monthly-passes", response_model=MonthlyPassOut, status_code=status.HTTP_201_CREATED)
async def request_pass(
    court_id: int,
    body: MonthlyPassCreate,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    return await request_monthly_pass(
        ctx, actor, court_id, body.month, body.weekday, body.start_time, body.end_time
    )


@router.post("/monthly-passes/{pass_id}/confirm", response_model=MonthlyPassOut)
async def confirm_pass(
    pass_id: int,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    return await confirm_monthly_pass(ctx, actor, pass_id)


@router.post("/monthly-passes/{pass_id}/cancel", response_model=MonthlyPassOut)
async def cancel_pass(
    pass_id: int,
    actor: Actor = Depends(get_current_actor),
    ctx: BookingContext = Depends(get_booking_context),
):
    return await cancel_monthly_pass(ctx, actor, pass_id)
