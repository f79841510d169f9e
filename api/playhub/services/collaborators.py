"""Collaborator contracts consumed by the reservation core, plus default adapters.

The defaults persist to the notifications, outbound_emails and audit_logs
tables, each through its own short session after the reservation commit.
Payment providers plug in behind PaymentGateway; the default only logs.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from playhub.models.outbox import AuditLog, Notification, NotificationType, OutboundEmail

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentSession:
    booking_id: int
    payment_id: str | None
    checkout_url: str | None


class NotificationSink(Protocol):
    async def notify(
        self, user_id: int, kind: NotificationType, title: str, body: str, booking_id: int | None = None
    ) -> None: ...


class EmailQueue(Protocol):
    async def enqueue_email(self, to: str, subject: str, text: str, html: str | None, dedupe_key: str) -> int | None: ...


class PaymentGateway(Protocol):
    async def start_payment(self, booking_id: int, provider: str | None) -> PaymentSession: ...

    async def mark_paid(self, payment_id: int) -> None: ...

    async def mark_authorized(self, payment_id: int) -> None: ...

    async def mark_refunded(self, payment_id: int) -> None: ...


class AuditSink(Protocol):
    async def record_audit(
        self, actor_id: int | None, action: str, entity_type: str, entity_id: int | None, metadata: dict
    ) -> None: ...


class DatabaseNotificationSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def notify(self, user_id, kind, title, body, booking_id=None) -> None:
        async with self.session_factory() as db:
            db.add(Notification(user_id=user_id, type=kind, title=title, body=body, booking_id=booking_id))
            await db.commit()


class OutboxEmailQueue:
    """Queue emails in outbound_emails. Enqueueing the same dedupe_key twice is a no-op."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _existing_id(self, db: AsyncSession, dedupe_key: str) -> int | None:
        result = await db.execute(select(OutboundEmail.id).where(OutboundEmail.dedupe_key == dedupe_key))
        return result.scalar_one_or_none()

    async def enqueue_email(self, to, subject, text, html, dedupe_key) -> int | None:
        async with self.session_factory() as db:
            existing = await self._existing_id(db, dedupe_key)
            if existing is not None:
                return existing

            email = OutboundEmail(to=to, subject=subject, text=text, html=html, dedupe_key=dedupe_key)
            db.add(email)
            try:
                await db.commit()
            except IntegrityError:
                # Lost an insert race for the same key
                await db.rollback()
                logger.info("Email %s already queued", dedupe_key)
                return await self._existing_id(db, dedupe_key)
            return email.id


class DatabaseAuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record_audit(self, actor_id, action, entity_type, entity_id, metadata) -> None:
        async with self.session_factory() as db:
            db.add(
                AuditLog(
                    actor_id=actor_id,
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    details=metadata or {},
                )
            )
            await db.commit()


class LoggingPaymentGateway:
    """Stand-in gateway used when no provider adapter is configured."""

    async def start_payment(self, booking_id: int, provider: str | None) -> PaymentSession:
        logger.info("No payment provider configured; booking %s has no checkout (%s)", booking_id, provider)
        return PaymentSession(booking_id=booking_id, payment_id=None, checkout_url=None)

    async def mark_paid(self, payment_id: int) -> None:
        logger.info("Payment %s marked paid", payment_id)

    async def mark_authorized(self, payment_id: int) -> None:
        logger.info("Payment %s marked authorized", payment_id)

    async def mark_refunded(self, payment_id: int) -> None:
        logger.info("Payment %s marked refunded", payment_id)
