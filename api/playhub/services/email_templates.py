"""Email content for reservation events.

Each builder returns an EmailContent with a plain-text body and a minimal
HTML body. Contact data is escaped before going into the HTML.
"""

import calendar
from dataclasses import dataclass
from html import escape

from playhub.models.booking import Booking, MonthlyPass
from playhub.models.organisation import Court


@dataclass(frozen=True)
class EmailContent:
    subject: str
    text: str
    html: str


def _when(booking: Booking) -> str:
    return f"{booking.start_time.strftime('%d/%m/%Y %H:%M')}-{booking.end_time.strftime('%H:%M')}"


def _price(cents: int) -> str:
    return f"{cents // 100},{cents % 100:02d}"


def _render(subject: str, lines: list[str]) -> EmailContent:
    text = "\n\n".join(lines) + "\n\nPlayHub"
    html = "".join(f"<p>{escape(line)}</p>" for line in lines) + "<p>PlayHub</p>"
    return EmailContent(subject=subject, text=text, html=html)


def booking_pending_for_owner(booking: Booking, court: Court, customer_name: str, app_url: str) -> EmailContent:
    return _render(
        f"New booking request: {court.name}",
        [
            f"{customer_name} requested {court.name} at {court.establishment.name} for {_when(booking)}.",
            f"Total: R$ {_price(booking.total_price_cents)}.",
            f"Confirm or decline it in your dashboard: {app_url}/dashboard/bookings/{booking.id}",
        ],
    )


def booking_confirmed(booking: Booking, court: Court, app_url: str) -> EmailContent:
    return _render(
        f"Booking confirmed: {court.name}",
        [
            f"Your booking of {court.name} at {court.establishment.name} for {_when(booking)} is confirmed.",
            f"Total: R$ {_price(booking.total_price_cents)}.",
            f"See your bookings: {app_url}/bookings",
        ],
    )


def booking_cancelled(booking: Booking, court: Court, app_url: str) -> EmailContent:
    lines = [f"Your booking of {court.name} at {court.establishment.name} for {_when(booking)} was cancelled."]
    if booking.cancel_reason:
        lines.append(f"Reason: {booking.cancel_reason}")
    if booking.cancel_fee_cents:
        lines.append(f"Cancellation fee: R$ {_price(booking.cancel_fee_cents)}.")
    lines.append(f"Book another time: {app_url}/establishments/{court.establishment_id}")
    return _render(f"Booking cancelled: {court.name}", lines)


def booking_cancelled_for_owner(booking: Booking, court: Court, app_url: str) -> EmailContent:
    lines = [f"{booking.customer_name} cancelled {court.name} for {_when(booking)}."]
    if booking.cancel_fee_cents:
        lines.append(f"Cancellation fee: R$ {_price(booking.cancel_fee_cents)}.")
    lines.append(f"The slot is free again: {app_url}/dashboard/bookings/{booking.id}")
    return _render(f"Booking cancelled by the customer: {court.name}", lines)


def booking_rescheduled(original: Booking, new_booking: Booking, court: Court, app_url: str) -> EmailContent:
    return _render(
        f"Booking rescheduled: {court.name}",
        [
            f"Your booking for {_when(original)} was moved to {_when(new_booking)} on {court.name}.",
            "The new time is waiting for confirmation by the establishment.",
            f"See your bookings: {app_url}/bookings",
        ],
    )


def owner_booking_invite(booking: Booking, court: Court, name: str, app_url: str) -> EmailContent:
    return _render(
        f"You have a booking at {court.establishment.name}",
        [
            f"Hi {name},",
            f"{court.establishment.name} booked {court.name} for you on {_when(booking)}.",
            f"Create your PlayHub account to manage your bookings: {app_url}/signup",
        ],
    )


def _pass_slot(monthly_pass: MonthlyPass) -> str:
    day = calendar.day_name[monthly_pass.weekday]
    return f"{day}s {monthly_pass.start_time.strftime('%H:%M')}-{monthly_pass.end_time.strftime('%H:%M')}"


def monthly_pass_pending_for_owner(monthly_pass: MonthlyPass, court: Court, app_url: str) -> EmailContent:
    return _render(
        f"New monthly pass request: {court.name}",
        [
            f"A customer asked for {court.name} on {_pass_slot(monthly_pass)} during {monthly_pass.month}.",
            f"Price: R$ {_price(monthly_pass.price_cents)}.",
            f"Confirm or decline it in your dashboard: {app_url}/dashboard/monthly-passes/{monthly_pass.id}",
        ],
    )


def monthly_pass_confirmed(monthly_pass: MonthlyPass, court: Court, app_url: str) -> EmailContent:
    return _render(
        f"Monthly pass confirmed: {court.name}",
        [
            f"Your monthly pass for {court.name} on {_pass_slot(monthly_pass)} during {monthly_pass.month} is active.",
            f"See your bookings: {app_url}/bookings",
        ],
    )


def monthly_pass_cancelled(monthly_pass: MonthlyPass, court: Court, app_url: str) -> EmailContent:
    return _render(
        f"Monthly pass cancelled: {court.name}",
        [
            f"Your monthly pass request for {court.name} during {monthly_pass.month} was cancelled by the establishment.",
            f"Book another time: {app_url}/establishments/{court.establishment_id}",
        ],
    )
