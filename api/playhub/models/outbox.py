"""Storage for the default side-effect adapters.

Notification = an in-app message to a user.
OutboundEmail = a queued email, idempotent on dedupe_key, delivered by the worker.
AuditLog = who did what to which entity.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from playhub.models.base import Base, JSONType, TimestampMixin


class NotificationType(enum.StrEnum):
    BOOKING_PENDING = "booking_pending"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_AUTO_CANCELLED = "booking_auto_cancelled"
    BOOKING_RESCHEDULED = "booking_rescheduled"
    MONTHLY_PASS_PENDING = "monthly_pass_pending"
    MONTHLY_PASS_CONFIRMED = "monthly_pass_confirmed"
    MONTHLY_PASS_CANCELLED = "monthly_pass_cancelled"


class OutboundEmailStatus(enum.StrEnum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class Notification(TimestampMixin, Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    booking_id: Mapped[int | None] = mapped_column(ForeignKey("bookings.id"))
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (Index("ix_notifications_user", "user_id", "created_at"),)


class OutboundEmail(TimestampMixin, Base):
    __tablename__ = "outbound_emails"

    id: Mapped[int] = mapped_column(primary_key=True)
    to: Mapped[str] = mapped_column(String(254), nullable=False)
    subject: Mapped[str] = mapped_column(String(300), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    html: Mapped[str | None] = mapped_column(Text)
    dedupe_key: Mapped[str | None] = mapped_column(String(300), unique=True)

    status: Mapped[OutboundEmailStatus] = mapped_column(
        Enum(OutboundEmailStatus, name="outbound_email_status", values_callable=lambda e: [x.value for x in e]),
        default=OutboundEmailStatus.PENDING,
        nullable=False,
    )
    attempts: Mapped[int] = mapped_column(default=0, nullable=False)
    max_attempts: Mapped[int] = mapped_column(default=5, nullable=False)
    next_attempt_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime)

    __table_args__ = (Index("ix_outbound_emails_due", "status", "next_attempt_at"),)

    def __repr__(self) -> str:
        return f"<OutboundEmail {self.to} {self.status}>"


class AuditLog(TimestampMixin, Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    actor_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[int | None] = mapped_column()
    # "metadata" is reserved on declarative classes
    details: Mapped[dict | None] = mapped_column("metadata", JSONType, default=dict)

    __table_args__ = (Index("ix_audit_logs_entity", "entity_type", "entity_id"),)
