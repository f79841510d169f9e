"""Booking, court block and monthly pass models.

A booking occupies one interval on one court. This is the core transactional
entity in the system; its status only moves along ALLOWED_TRANSITIONS.
"""

import enum
from datetime import datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playhub.core.errors import InvalidTransition
from playhub.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from playhub.models.member import User
    from playhub.models.organisation import Court


class BookingStatus(enum.StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
}


class BookingSource(enum.StrEnum):
    CUSTOMER = "customer"  # Self-service booking
    OWNER = "owner"  # Entered by the establishment owner


class MonthlyPassStatus(enum.StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    CANCELLED = "cancelled"


# Owners confirm or turn down a request; an active pass runs to the end of its month
MONTHLY_PASS_TRANSITIONS: dict[MonthlyPassStatus, frozenset[MonthlyPassStatus]] = {
    MonthlyPassStatus.PENDING: frozenset({MonthlyPassStatus.ACTIVE, MonthlyPassStatus.CANCELLED}),
    MonthlyPassStatus.ACTIVE: frozenset(),
    MonthlyPassStatus.CANCELLED: frozenset(),
}


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    # Raw contact details for owner-entered bookings without an account
    customer_name: Mapped[str | None] = mapped_column(String(200))
    customer_email: Mapped[str | None] = mapped_column(String(254))
    customer_phone: Mapped[str | None] = mapped_column(String(50))

    # When
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # Status
    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus, name="booking_status", values_callable=lambda e: [x.value for x in e]),
        default=BookingStatus.PENDING,
        nullable=False,
    )
    source: Mapped[BookingSource] = mapped_column(
        Enum(BookingSource, name="booking_source", values_callable=lambda e: [x.value for x in e]),
        default=BookingSource.CUSTOMER,
        nullable=False,
    )
    cancel_reason: Mapped[str | None] = mapped_column(Text)
    cancel_fee_cents: Mapped[int | None] = mapped_column()

    total_price_cents: Mapped[int] = mapped_column(default=0, nullable=False)

    # At most one reschedule per original: the unique constraint is the final race guard
    rescheduled_from_id: Mapped[int | None] = mapped_column(ForeignKey("bookings.id"), unique=True)

    # Relationships
    court: Mapped["Court"] = relationship()
    customer: Mapped["User"] = relationship()

    __table_args__ = (
        # Overlap lookups per court (conflict checker, cascade)
        Index("ix_bookings_court_start", "court_id", "start_time"),
        # Double-booking lookups per customer and the rate limit window
        Index("ix_bookings_customer_start", "customer_id", "start_time"),
        Index("ix_bookings_customer_created", "customer_id", "created_at"),
    )

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to new_status or raise InvalidTransition. The only place status is written."""
        if not self.can_transition_to(new_status):
            raise InvalidTransition(f"Booking #{self.id} cannot go from {self.status.value} to {new_status.value}.")
        self.status = new_status

    def __repr__(self) -> str:
        return f"<Booking {self.start_time}-{self.end_time} court={self.court_id} {self.status}>"


class CourtBlock(TimestampMixin, Base):
    """An owner-declared unavailable interval. Checked like a booking but never one."""

    __tablename__ = "court_blocks"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    note: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))

    __table_args__ = (Index("ix_court_blocks_court_start", "court_id", "start_time"),)

    def __repr__(self) -> str:
        return f"<CourtBlock {self.start_time}-{self.end_time} court={self.court_id}>"


class MonthlyPass(TimestampMixin, Base):
    """A month-long standing claim on one weekday/time window of a court."""

    __tablename__ = "monthly_passes"

    id: Mapped[int] = mapped_column(primary_key=True)
    court_id: Mapped[int] = mapped_column(ForeignKey("courts.id"), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    weekday: Mapped[int] = mapped_column(nullable=False)  # Monday = 0
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    price_cents: Mapped[int] = mapped_column(default=0, nullable=False)
    status: Mapped[MonthlyPassStatus] = mapped_column(
        Enum(MonthlyPassStatus, name="monthly_pass_status", values_callable=lambda e: [x.value for x in e]),
        default=MonthlyPassStatus.PENDING,
        nullable=False,
    )

    __table_args__ = (Index("ix_monthly_passes_court_month", "court_id", "month", "weekday"),)

    def can_transition_to(self, new_status: MonthlyPassStatus) -> bool:
        return new_status in MONTHLY_PASS_TRANSITIONS[self.status]

    def transition_to(self, new_status: MonthlyPassStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Monthly pass #{self.id} cannot go from {self.status.value} to {new_status.value}."
            )
        self.status = new_status

    def __repr__(self) -> str:
        return f"<MonthlyPass {self.month} wd={self.weekday} {self.start_time}-{self.end_time} court={self.court_id}>"
