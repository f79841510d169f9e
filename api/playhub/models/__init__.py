"""All models imported here for Alembic autogenerate discovery."""

from playhub.models.base import Base
from playhub.models.booking import (
    ALLOWED_TRANSITIONS,
    Booking,
    BookingSource,
    BookingStatus,
    CourtBlock,
    MONTHLY_PASS_TRANSITIONS,
    MonthlyPass,
    MonthlyPassStatus,
)
from playhub.models.member import User, UserRole
from playhub.models.organisation import Court, Establishment, EstablishmentHoliday
from playhub.models.outbox import AuditLog, Notification, NotificationType, OutboundEmail, OutboundEmailStatus
from playhub.models.payment import Payment, PaymentStatus

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Establishment",
    "EstablishmentHoliday",
    "Court",
    "Booking",
    "BookingStatus",
    "BookingSource",
    "ALLOWED_TRANSITIONS",
    "CourtBlock",
    "MonthlyPass",
    "MonthlyPassStatus",
    "MONTHLY_PASS_TRANSITIONS",
    "Payment",
    "PaymentStatus",
    "Notification",
    "NotificationType",
    "OutboundEmail",
    "OutboundEmailStatus",
    "AuditLog",
]
