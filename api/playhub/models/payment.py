"""Payment model: the core's view of an online payment for a booking.

Checkout creation and webhooks belong to the provider adapters; this table
only records the state transitions the reservation core depends on.
"""

import enum
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playhub.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from playhub.models.booking import Booking


class PaymentStatus(enum.StrEnum):
    PENDING = "pending"  # Checkout started, not yet authorized
    AUTHORIZED = "authorized"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


REFUNDABLE_STATUSES = (PaymentStatus.AUTHORIZED, PaymentStatus.PAID)
OPEN_STATUSES = (PaymentStatus.PENDING, PaymentStatus.AUTHORIZED, PaymentStatus.PAID)


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    booking_id: Mapped[int] = mapped_column(ForeignKey("bookings.id"), nullable=False)
    provider: Mapped[str] = mapped_column(String(30), nullable=False)
    amount_cents: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name="payment_status", values_callable=lambda e: [x.value for x in e]),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    provider_payment_id: Mapped[str | None] = mapped_column(String(100))

    booking: Mapped["Booking"] = relationship()

    __table_args__ = (Index("ix_payments_booking", "booking_id"),)

    def __repr__(self) -> str:
        return f"<Payment {self.provider} {self.status} booking={self.booking_id}>"
