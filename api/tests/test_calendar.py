"""Pure tests: interval arithmetic, operating hours, pricing, fees, series, slots."""

from datetime import date, datetime, time, timedelta
from types import SimpleNamespace

import pytest

from playhub.core.errors import (
    EstablishmentClosed,
    InvalidInterval,
    InvalidOperatingHours,
    InvalidTransition,
    OutsideOperatingHours,
)
from playhub.models.booking import ALLOWED_TRANSITIONS, Booking, BookingStatus
from playhub.services.availability import generate_slots
from playhub.services.context import ReservationPolicy
from playhub.services.intervals import Interval, duration_minutes, expand_with_buffer, is_aligned, overlaps
from playhub.services.operating_hours import OperatingWindow, check_within_window, resolve_operating_window
from playhub.services.pricing import calculate_cancellation_fee, calculate_price
from playhub.services.series import weekly_occurrences

TUESDAY = date(2026, 3, 3)
SUNDAY = date(2026, 3, 8)


def _dt(hour: int, minute: int = 0, day: date = TUESDAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


def _establishment(**overrides):
    defaults = dict(
        open_weekdays=[0, 1, 2, 3, 4, 5],
        opening_time=time(8, 0),
        closing_time=time(22, 0),
        opening_time_by_weekday=None,
        closing_time_by_weekday=None,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _holiday(is_open=False, opening_time=None, closing_time=None, note=None):
    return SimpleNamespace(is_open=is_open, opening_time=opening_time, closing_time=closing_time, note=note)


def _court(rate=10000, discount=10):
    return SimpleNamespace(price_per_hour_cents=rate, discount_percent_over_90min=discount)


class TestIntervals:
    def test_duration(self):
        assert duration_minutes(_dt(10), _dt(11, 30)) == 90

    def test_empty_interval_rejected(self):
        with pytest.raises(InvalidInterval):
            duration_minutes(_dt(10), _dt(10))

    def test_reversed_interval_rejected(self):
        with pytest.raises(InvalidInterval):
            duration_minutes(_dt(11), _dt(10))

    def test_touching_intervals_do_not_overlap(self):
        assert not overlaps(_dt(10), _dt(11), _dt(11), _dt(12))

    def test_partial_overlap(self):
        assert overlaps(_dt(10), _dt(11), _dt(10, 30), _dt(11, 30))

    def test_containment_overlaps(self):
        assert Interval(_dt(9), _dt(12)).overlaps(Interval(_dt(10), _dt(11)))

    def test_buffer_widens_both_sides(self):
        widened = expand_with_buffer(_dt(10), _dt(11), 15)
        assert widened == Interval(_dt(9, 45), _dt(11, 15))

    def test_negative_buffer_clamped(self):
        assert expand_with_buffer(_dt(10), _dt(11), -30) == Interval(_dt(10), _dt(11))

    def test_buffered_touching_intervals_overlap(self):
        assert expand_with_buffer(_dt(11), _dt(12), 15).overlaps(Interval(_dt(10), _dt(11)))

    def test_alignment(self):
        assert is_aligned(_dt(10, 30), 30)
        assert not is_aligned(_dt(10, 15), 30)
        assert not is_aligned(_dt(10, 30).replace(second=1), 30)


class TestOperatingWindow:
    def test_default_hours(self):
        window = resolve_operating_window(_establishment(), TUESDAY)
        assert (window.opens_at, window.closes_at) == (time(8, 0), time(22, 0))

    def test_closed_weekday(self):
        with pytest.raises(EstablishmentClosed):
            resolve_operating_window(_establishment(), SUNDAY)

    def test_closed_holiday_carries_note(self):
        with pytest.raises(EstablishmentClosed, match="Carnaval"):
            resolve_operating_window(_establishment(), TUESDAY, _holiday(note="Carnaval"))

    def test_open_holiday_overrides_closed_weekday(self):
        holiday = _holiday(is_open=True, opening_time=time(10, 0), closing_time=time(14, 0))
        window = resolve_operating_window(_establishment(), SUNDAY, holiday)
        assert (window.opens_at, window.closes_at) == (time(10, 0), time(14, 0))

    def test_open_holiday_without_hours_uses_regular_hours(self):
        window = resolve_operating_window(_establishment(), TUESDAY, _holiday(is_open=True))
        assert (window.opens_at, window.closes_at) == (time(8, 0), time(22, 0))

    def test_weekday_override(self):
        establishment = _establishment(
            opening_time_by_weekday=[None, "10:00", None, None, None, None, None],
            closing_time_by_weekday=[None, "18:30", None, None, None, None, None],
        )
        window = resolve_operating_window(establishment, TUESDAY)
        assert (window.opens_at, window.closes_at) == (time(10, 0), time(18, 30))
        monday = resolve_operating_window(establishment, TUESDAY - timedelta(days=1))
        assert monday.opens_at == time(8, 0)

    def test_holiday_hours_beat_weekday_override(self):
        establishment = _establishment(opening_time_by_weekday=[None, "10:00", None, None, None, None, None])
        holiday = _holiday(is_open=True, opening_time=time(12, 0))
        window = resolve_operating_window(establishment, TUESDAY, holiday)
        assert window.opens_at == time(12, 0)

    def test_invalid_hours(self):
        with pytest.raises(InvalidOperatingHours):
            resolve_operating_window(_establishment(opening_time=time(22, 0), closing_time=time(22, 0)), TUESDAY)

    def test_start_at_opening_is_inside(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(22, 0))
        check_within_window(window, _dt(8), _dt(9))

    def test_one_minute_before_opening_is_outside(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(22, 0))
        with pytest.raises(OutsideOperatingHours):
            check_within_window(window, _dt(7, 59), _dt(8, 59))

    def test_end_after_closing_is_outside(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(22, 0))
        with pytest.raises(OutsideOperatingHours):
            check_within_window(window, _dt(21, 30), _dt(22, 30))

    def test_crossing_midnight_is_outside(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(23, 30))
        with pytest.raises(OutsideOperatingHours):
            check_within_window(window, _dt(23), _dt(0, 30, day=TUESDAY + timedelta(days=1)))


class TestPricing:
    def test_one_hour(self):
        assert calculate_price(_court(), 60) == 10000

    def test_half_hour(self):
        assert calculate_price(_court(), 30) == 5000

    def test_discount_at_threshold(self):
        assert calculate_price(_court(), 90) == 13500

    def test_no_discount_below_threshold(self):
        assert calculate_price(_court(), 89) == 14833

    def test_rounds_half_up(self):
        assert calculate_price(_court(rate=9999, discount=0), 30) == 5000

    def test_no_discount_configured(self):
        assert calculate_price(_court(discount=0), 120) == 20000


class TestCancellationFee:
    def test_inside_notice_window(self):
        assert calculate_cancellation_fee(10000, 1, 2, 50, 0) == 5000

    def test_outside_notice_window(self):
        assert calculate_cancellation_fee(10000, 3, 2, 50, 0) == 0

    def test_fixed_fee_wins_when_larger(self):
        assert calculate_cancellation_fee(10000, 1, 2, 10, 3000) == 3000

    def test_no_policy(self):
        assert calculate_cancellation_fee(10000, 0.5, 0, 50, 3000) == 0


class TestSeries:
    def test_weekly_occurrences(self):
        occurrences = weekly_occurrences(_dt(10), _dt(11), 2)
        assert [o.start for o in occurrences] == [_dt(10), _dt(10) + timedelta(weeks=1), _dt(10) + timedelta(weeks=2)]
        assert all(o.minutes == 60 for o in occurrences)

    def test_no_repeat(self):
        assert weekly_occurrences(_dt(10), _dt(11), 0) == [Interval(_dt(10), _dt(11))]


class TestStatusMachine:
    def test_cancelled_is_terminal(self):
        assert ALLOWED_TRANSITIONS[BookingStatus.CANCELLED] == frozenset()

    def test_confirmed_cannot_go_back_to_pending(self):
        booking = Booking(status=BookingStatus.CONFIRMED)
        with pytest.raises(InvalidTransition):
            booking.transition_to(BookingStatus.PENDING)

    def test_pending_to_confirmed(self):
        booking = Booking(status=BookingStatus.PENDING)
        booking.transition_to(BookingStatus.CONFIRMED)
        assert booking.status == BookingStatus.CONFIRMED


class TestGenerateSlots:
    def test_slot_count(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(10, 0))
        slots = generate_slots(window, [], _dt(0))
        assert [s["start_time"] for s in slots] == ["08:00", "08:30", "09:00", "09:30"]
        assert all(s["is_available"] for s in slots)

    def test_busy_interval_blocks_slots(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(10, 0))
        slots = generate_slots(window, [Interval(_dt(8, 30), _dt(9, 30))], _dt(0))
        assert [s["is_available"] for s in slots] == [True, False, False, True]

    def test_past_slots_unavailable(self):
        window = OperatingWindow(TUESDAY, time(8, 0), time(10, 0))
        slots = generate_slots(window, [], _dt(9))
        assert [s["is_available"] for s in slots] == [False, False, False, True]


class TestPolicy:
    def test_emails_disabled_globally(self):
        policy = ReservationPolicy(email_enabled=False)
        assert not policy.can_send_email("pending")

    def test_confirmation_flag(self):
        policy = ReservationPolicy(email_booking_confirmation_enabled=False)
        assert not policy.can_send_email("confirmation")
        assert policy.can_send_email("cancellation")
