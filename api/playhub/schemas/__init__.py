"""Pydantic schemas for API serialisation."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from playhub.core.config import settings
from playhub.services.reservations import PaymentMode

# --- Booking ---


def to_local_wall_clock(value: datetime) -> datetime:
    """Offset-carrying timestamps become naive local time; naive ones are already local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(settings.timezone)).replace(tzinfo=None)


class LocalInterval(BaseModel):
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def local_wall_clock(cls, value: datetime) -> datetime:
        return to_local_wall_clock(value)


class BookingCreate(LocalInterval):
    court_id: int
    repeat_weeks: int = Field(default=0, ge=0)
    payment_mode: PaymentMode = PaymentMode.ON_SITE


class OwnerBookingCreate(LocalInterval):
    court_id: int
    customer_name: str
    customer_email: EmailStr
    customer_phone: str
    repeat_weeks: int = Field(default=0, ge=0)


class BookingCancel(BaseModel):
    reason: str | None = None


class BookingReschedule(LocalInterval):
    pass


class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    customer_id: int | None
    customer_name: str | None
    start_time: datetime
    end_time: datetime
    status: str
    source: str
    total_price_cents: int
    cancel_reason: str | None
    cancel_fee_cents: int | None
    rescheduled_from_id: int | None
    created_at: datetime


class PaymentSessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_id: int
    payment_id: str | None
    checkout_url: str | None


class ReservationOut(BaseModel):
    bookings: list[BookingOut]
    payment_sessions: list[PaymentSessionOut] = []


# --- Availability ---


class SlotOut(BaseModel):
    start_time: str  # "HH:MM"
    end_time: str  # "HH:MM"
    is_available: bool


class AvailabilityOut(BaseModel):
    court_id: int
    court_name: str
    date: date
    is_open: bool
    opens_at: time | None = None
    closes_at: time | None = None
    closed_reason: str | None = None
    slots: list[SlotOut]


# --- Monthly passes ---


class MonthlyPassCreate(BaseModel):
    month: str = Field(pattern=r"^\d{4}-\d{2}$")
    weekday: int = Field(ge=0, le=6)  # Monday = 0
    start_time: time
    end_time: time


class MonthlyPassOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_id: int
    customer_id: int
    month: str
    weekday: int
    start_time: time
    end_time: time
    price_cents: int
    status: str
