"""Reservation error taxonomy.

Every failure the reservation core reports is a BookingViolation carrying a
stable rule code and a human-readable message. All of them are raised inside
the unit of work, so the transaction is rolled back before the caller sees
them. Only Conflict is safe to retry blindly.
"""

from fastapi import status


class BookingViolation(Exception):
    """Raised when a booking rule is violated."""

    rule = "booking_violation"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str, rule: str | None = None):
        self.message = message
        if rule:
            self.rule = rule
        super().__init__(message)

    def to_detail(self) -> dict:
        return {"rule": self.rule, "message": self.message}


class InvalidInterval(BookingViolation):
    rule = "invalid_interval"


class InvalidRequest(BookingViolation):
    rule = "invalid_request"


class InvalidTransition(BookingViolation):
    rule = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT


class EstablishmentClosed(BookingViolation):
    rule = "establishment_closed"


class InvalidOperatingHours(BookingViolation):
    rule = "invalid_operating_hours"


class OutsideOperatingHours(BookingViolation):
    rule = "outside_operating_hours"


class SlotReserved(BookingViolation):
    rule = "slot_reserved"
    status_code = status.HTTP_409_CONFLICT


class SlotBlocked(BookingViolation):
    rule = "slot_blocked"
    status_code = status.HTTP_409_CONFLICT


class SlotReservedByPass(BookingViolation):
    rule = "slot_reserved_by_pass"
    status_code = status.HTTP_409_CONFLICT


class DoubleBooking(BookingViolation):
    rule = "double_booking"
    status_code = status.HTTP_409_CONFLICT


class PermissionDenied(BookingViolation):
    rule = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class PaymentNotReady(BookingViolation):
    rule = "payment_not_ready"
    status_code = status.HTTP_409_CONFLICT


class CancellationNotAllowed(BookingViolation):
    rule = "cancellation_not_allowed"


class AlreadyRescheduled(BookingViolation):
    rule = "already_rescheduled"
    status_code = status.HTTP_409_CONFLICT


class RateLimited(BookingViolation):
    rule = "rate_limited"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class Conflict(BookingViolation):
    """Transaction contention. Nothing was committed; the caller may resubmit."""

    rule = "conflict"
    status_code = status.HTTP_409_CONFLICT


class NotFound(BookingViolation):
    rule = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
