"""Side-effect intents.

Notifications, emails, payment calls and audit records are collected during a
unit of work and handed to the collaborators only after the commit succeeds.
A rolled-back transaction therefore never triggers an external call, and a
failing collaborator never undoes committed reservation state.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from playhub.models.outbox import NotificationType
from playhub.services.collaborators import PaymentSession

if TYPE_CHECKING:
    from playhub.services.context import BookingContext

logger = logging.getLogger(__name__)

PaymentAction = Literal["start", "mark_paid", "mark_authorized", "mark_refunded"]


@dataclass(frozen=True)
class NotificationIntent:
    user_id: int
    kind: NotificationType
    title: str
    body: str
    booking_id: int | None = None


@dataclass(frozen=True)
class EmailIntent:
    to: str
    subject: str
    text: str
    html: str | None
    dedupe_key: str


@dataclass(frozen=True)
class PaymentIntent:
    action: PaymentAction
    booking_id: int
    payment_id: int | None = None
    provider: str | None = None


@dataclass(frozen=True)
class AuditIntent:
    actor_id: int | None
    action: str
    entity_type: str
    entity_id: int | None
    metadata: dict = field(default_factory=dict)


Intent = NotificationIntent | EmailIntent | PaymentIntent | AuditIntent


@dataclass
class IntentBuffer:
    items: list[Intent] = field(default_factory=list)

    def add(self, intent: Intent) -> None:
        self.items.append(intent)

    def notify(self, user_id: int | None, kind: NotificationType, title: str, body: str, booking_id: int | None = None):
        if user_id is None:
            return
        self.add(NotificationIntent(user_id, kind, title, body, booking_id))

    def email(self, to: str | None, subject: str, text: str, html: str | None, dedupe_key: str):
        if not to:
            return
        self.add(EmailIntent(to, subject, text, html, dedupe_key))

    def payment(self, action: PaymentAction, booking_id: int, payment_id: int | None = None, provider: str | None = None):
        self.add(PaymentIntent(action, booking_id, payment_id, provider))

    def audit(self, actor_id: int | None, action: str, entity_type: str, entity_id: int | None, **metadata):
        self.add(AuditIntent(actor_id, action, entity_type, entity_id, metadata))

    def of_type(self, cls) -> list:
        return [i for i in self.items if isinstance(i, cls)]

    def __len__(self) -> int:
        return len(self.items)


async def _dispatch_one(intent: Intent, ctx: "BookingContext") -> PaymentSession | None:
    if isinstance(intent, NotificationIntent):
        await ctx.notifier.notify(intent.user_id, intent.kind, intent.title, intent.body, intent.booking_id)
    elif isinstance(intent, EmailIntent):
        await ctx.emails.enqueue_email(intent.to, intent.subject, intent.text, intent.html, intent.dedupe_key)
    elif isinstance(intent, AuditIntent):
        await ctx.audit.record_audit(intent.actor_id, intent.action, intent.entity_type, intent.entity_id, intent.metadata)
    elif intent.action == "start":
        return await ctx.gateway.start_payment(intent.booking_id, intent.provider)
    elif intent.action == "mark_paid":
        await ctx.gateway.mark_paid(intent.payment_id)
    elif intent.action == "mark_authorized":
        await ctx.gateway.mark_authorized(intent.payment_id)
    elif intent.action == "mark_refunded":
        await ctx.gateway.mark_refunded(intent.payment_id)
    return None


async def dispatch_intents(buffer: IntentBuffer, ctx: "BookingContext") -> list[PaymentSession]:
    """Hand every buffered intent to its collaborator. Call only after commit.

    Each failure is logged and skipped. Returns the payment sessions started.
    """
    sessions: list[PaymentSession] = []
    for intent in buffer.items:
        try:
            result = await _dispatch_one(intent, ctx)
        except Exception:
            logger.exception("Failed to dispatch %s", type(intent).__name__)
            continue
        if result is not None:
            sessions.append(result)
    return sessions
