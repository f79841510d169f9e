"""Per-operation context for the reservation core.

Services never read the settings module global. Each call receives a
BookingContext carrying the policy values, the collaborators that receive
post-commit side effects, the session factory and the clock.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from playhub.core.config import Settings
from playhub.models.member import UserRole
from playhub.services.collaborators import (
    AuditSink,
    DatabaseAuditSink,
    DatabaseNotificationSink,
    EmailQueue,
    LoggingPaymentGateway,
    NotificationSink,
    OutboxEmailQueue,
    PaymentGateway,
)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as resolved by the identity layer."""

    id: int
    role: UserRole

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER


@dataclass(frozen=True)
class ReservationPolicy:
    slot_step_minutes: int = 30
    customer_max_repeat_weeks: int = 3
    owner_max_repeat_weeks: int = 52
    rate_limit_window_minutes: int = 10
    rate_limit_max_requests: int = 30
    long_booking_minutes: int = 90
    lock_timeout_ms: int = 5000
    email_enabled: bool = True
    email_booking_confirmation_enabled: bool = True
    email_booking_cancellation_enabled: bool = True
    payments_enabled: bool = False
    payment_provider: str = "none"
    app_url: str = "http://localhost:3000"

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReservationPolicy":
        return cls(
            slot_step_minutes=settings.slot_step_minutes,
            customer_max_repeat_weeks=settings.customer_max_repeat_weeks,
            owner_max_repeat_weeks=settings.owner_max_repeat_weeks,
            rate_limit_window_minutes=settings.rate_limit_window_minutes,
            rate_limit_max_requests=settings.rate_limit_max_requests,
            long_booking_minutes=settings.long_booking_minutes,
            lock_timeout_ms=settings.lock_timeout_ms,
            email_enabled=settings.email_enabled,
            email_booking_confirmation_enabled=settings.email_booking_confirmation_enabled,
            email_booking_cancellation_enabled=settings.email_booking_cancellation_enabled,
            payments_enabled=settings.payments_enabled,
            payment_provider=settings.payment_provider,
            app_url=settings.app_url,
        )

    def can_send_email(self, kind: str) -> bool:
        """Whether an email of kind ("confirmation", "cancellation", ...) may be queued."""
        if not self.email_enabled:
            return False
        if kind == "confirmation":
            return self.email_booking_confirmation_enabled
        if kind == "cancellation":
            return self.email_booking_cancellation_enabled
        return True


def local_clock(timezone: str) -> Callable[[], datetime]:
    """Naive wall-clock now() in the establishments' time frame."""
    tz = ZoneInfo(timezone)

    def now() -> datetime:
        return datetime.now(tz).replace(tzinfo=None)

    return now


@dataclass
class BookingContext:
    session_factory: async_sessionmaker[AsyncSession]
    policy: ReservationPolicy = field(default_factory=ReservationPolicy)
    notifier: NotificationSink | None = None
    emails: EmailQueue | None = None
    gateway: PaymentGateway | None = None
    audit: AuditSink | None = None
    clock: Callable[[], datetime] = datetime.now

    def __post_init__(self):
        # Default adapters write through their own sessions after commit
        if self.notifier is None:
            self.notifier = DatabaseNotificationSink(self.session_factory)
        if self.emails is None:
            self.emails = OutboxEmailQueue(self.session_factory)
        if self.gateway is None:
            self.gateway = LoggingPaymentGateway()
        if self.audit is None:
            self.audit = DatabaseAuditSink(self.session_factory)

    def now(self) -> datetime:
        return self.clock()

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: async_sessionmaker[AsyncSession]) -> "BookingContext":
        return cls(
            session_factory=session_factory,
            policy=ReservationPolicy.from_settings(settings),
            clock=local_clock(settings.timezone),
        )
