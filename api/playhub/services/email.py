"""Email sending via SMTP and delivery of the outbound email queue."""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from email.message import EmailMessage

import aiosmtplib
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from playhub.core.config import settings
from playhub.models.outbox import OutboundEmail, OutboundEmailStatus

logger = logging.getLogger(__name__)

BASE_BACKOFF_SECONDS = 5
MAX_BACKOFF_SECONDS = 30 * 60


async def send_email(to: str, subject: str, text: str, html: str | None = None) -> None:
    """Send an email via SMTP, with an HTML alternative when given."""
    message = EmailMessage()
    message["From"] = settings.smtp_from
    message["To"] = to
    message["Subject"] = subject
    message.set_content(text)
    if html:
        message.add_alternative(html, subtype="html")

    await aiosmtplib.send(message, hostname=settings.smtp_host, port=settings.smtp_port)


def backoff_delay(attempts: int) -> timedelta:
    """5s after the first failure, doubling, capped at 30 minutes."""
    seconds = BASE_BACKOFF_SECONDS * 2 ** max(attempts - 1, 0)
    return timedelta(seconds=min(seconds, MAX_BACKOFF_SECONDS))


async def _claim_due(db: AsyncSession, now: datetime, limit: int) -> list[OutboundEmail]:
    result = await db.execute(
        select(OutboundEmail)
        .where(
            OutboundEmail.status == OutboundEmailStatus.PENDING,
            OutboundEmail.next_attempt_at <= now,
        )
        .order_by(OutboundEmail.next_attempt_at, OutboundEmail.id)
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    emails = list(result.scalars())
    for email in emails:
        email.status = OutboundEmailStatus.SENDING
        email.attempts += 1
    await db.commit()
    return emails


async def process_email_batch(
    session_factory: async_sessionmaker[AsyncSession],
    limit: int = 20,
    now: datetime | None = None,
    sender: Callable[..., Awaitable[None]] = send_email,
) -> dict[str, int]:
    """Send up to limit due emails. Returns counts of sent, retried and failed."""
    now = now or datetime.now()
    counts = {"sent": 0, "retry": 0, "failed": 0}

    async with session_factory() as db:
        emails = await _claim_due(db, now, limit)

        for email in emails:
            try:
                await sender(email.to, email.subject, email.text, email.html)
            except Exception as exc:
                email.last_error = str(exc)[:1000]
                if email.attempts >= email.max_attempts:
                    email.status = OutboundEmailStatus.FAILED
                    counts["failed"] += 1
                    logger.error("Giving up on email %s to %s after %d attempts", email.id, email.to, email.attempts)
                else:
                    email.status = OutboundEmailStatus.PENDING
                    email.next_attempt_at = now + backoff_delay(email.attempts)
                    counts["retry"] += 1
                    logger.warning("Email %s to %s failed (attempt %d): %s", email.id, email.to, email.attempts, exc)
            else:
                email.status = OutboundEmailStatus.SENT
                email.sent_at = now
                email.last_error = None
                counts["sent"] += 1
                logger.info("Email %s sent to %s", email.id, email.to)
            await db.commit()

    return counts
