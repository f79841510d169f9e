"""Establishment and court models.

Establishment = a sports venue run by one owner, with its operating calendar.
EstablishmentHoliday = a sparse per-date override of that calendar.
Court = an individual bookable resource at an establishment.
"""

from datetime import date, time
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playhub.models.base import Base, JSONType, TimestampMixin

if TYPE_CHECKING:
    from playhub.models.member import User

ALL_WEEKDAYS = [0, 1, 2, 3, 4, 5, 6]  # Monday = 0, as date.weekday()


class Establishment(TimestampMixin, Base):
    __tablename__ = "establishments"

    id: Mapped[int] = mapped_column(primary_key=True)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Operating calendar
    open_weekdays: Mapped[list[int]] = mapped_column(JSONType, default=lambda: list(ALL_WEEKDAYS), nullable=False)
    opening_time: Mapped[time] = mapped_column(Time, default=time(8, 0), nullable=False)
    closing_time: Mapped[time] = mapped_column(Time, default=time(22, 0), nullable=False)
    # Seven "HH:MM" strings (or nulls) indexed by weekday
    opening_time_by_weekday: Mapped[list[str | None] | None] = mapped_column(JSONType)
    closing_time_by_weekday: Mapped[list[str | None] | None] = mapped_column(JSONType)

    # Booking policy
    booking_buffer_minutes: Mapped[int] = mapped_column(default=0, nullable=False)
    requires_booking_confirmation: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    online_payments_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    payment_provider: Mapped[str | None] = mapped_column(String(30))

    # Cancellation policy
    cancel_min_hours: Mapped[int] = mapped_column(default=0, nullable=False)
    cancel_fee_percent: Mapped[int] = mapped_column(default=0, nullable=False)
    cancel_fee_fixed_cents: Mapped[int] = mapped_column(default=0, nullable=False)

    # Relationships
    owner: Mapped["User"] = relationship()
    courts: Mapped[list["Court"]] = relationship(back_populates="establishment", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Establishment {self.name}>"


class EstablishmentHoliday(TimestampMixin, Base):
    __tablename__ = "establishment_holidays"

    id: Mapped[int] = mapped_column(primary_key=True)
    establishment_id: Mapped[int] = mapped_column(ForeignKey("establishments.id"), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    is_open: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    opening_time: Mapped[time | None] = mapped_column(Time)
    closing_time: Mapped[time | None] = mapped_column(Time)
    note: Mapped[str | None] = mapped_column(Text)

    __table_args__ = (Index("ix_holidays_establishment_date", "establishment_id", "date", unique=True),)

    def __repr__(self) -> str:
        return f"<EstablishmentHoliday {self.date} open={self.is_open}>"


class Court(TimestampMixin, Base):
    """A bookable court. Deactivated with a reason, never deleted while reservations exist."""

    __tablename__ = "courts"

    id: Mapped[int] = mapped_column(primary_key=True)
    establishment_id: Mapped[int] = mapped_column(ForeignKey("establishments.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    inactive_reason: Mapped[str | None] = mapped_column(Text)

    # Pricing
    price_per_hour_cents: Mapped[int] = mapped_column(nullable=False)
    discount_percent_over_90min: Mapped[int] = mapped_column(default=0, nullable=False)
    monthly_price_cents: Mapped[int | None] = mapped_column()  # None = no monthly passes on this court

    # Relationships
    establishment: Mapped["Establishment"] = relationship(back_populates="courts")

    def __repr__(self) -> str:
        return f"<Court {self.name} @ establishment {self.establishment_id}>"
