"""
Expiry Evaluator tests.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from backend.app.domain.booking.expiry import (
    is_request_expired,
    is_car_inactive,
    compute_request_expiry,
    inactivity_threshold,
    day_window,
    as_naive_utc,
)
from backend.app.models.booking_enums import BookingStatus
from backend.tests.factories import T0


def _request(status=BookingStatus.PENDING, expires_at=T0):
    return SimpleNamespace(status=status, expires_at=expires_at)


def _car(is_active=True, last_active_at=T0):
    return SimpleNamespace(is_active=is_active, last_active_at=last_active_at)


def test_pending_request_past_expiry_is_expired():
    assert is_request_expired(_request(), now=T0 + timedelta(seconds=1))


def test_request_exactly_at_expiry_is_not_expired():
    assert not is_request_expired(_request(), now=T0)


def test_terminal_request_is_never_expired():
    for status in (BookingStatus.ACCEPTED, BookingStatus.REJECTED, BookingStatus.EXPIRED, BookingStatus.CANCELLED):
        assert not is_request_expired(_request(status=status), now=T0 + timedelta(days=30))


def test_aware_timestamps_are_compared_in_utc():
    ist = timezone(timedelta(hours=5, minutes=30))
    expires_at = datetime(2026, 3, 10, 17, 30, tzinfo=ist)  # 12:00 UTC
    assert as_naive_utc(expires_at) == T0
    assert is_request_expired(_request(expires_at=expires_at), now=T0 + timedelta(minutes=1))
    assert not is_request_expired(_request(expires_at=expires_at), now=T0 - timedelta(minutes=1))


def test_car_inactive_after_inactivity_window():
    car = _car(last_active_at=T0)
    assert not is_car_inactive(car, now=T0 + timedelta(days=7), inactivity_days=7)
    assert is_car_inactive(car, now=T0 + timedelta(days=7, seconds=1), inactivity_days=7)


def test_deactivated_car_is_not_reported_inactive():
    assert not is_car_inactive(_car(is_active=False), now=T0 + timedelta(days=90), inactivity_days=7)


def test_compute_request_expiry_adds_ttl():
    assert compute_request_expiry(T0, expiry_days=3) == T0 + timedelta(days=3)


def test_inactivity_threshold():
    assert inactivity_threshold(T0, days=7) == T0 - timedelta(days=7)


def test_day_window_is_utc_calendar_day():
    start, end = day_window(datetime(2026, 3, 10, 23, 59, 59))
    assert start == datetime(2026, 3, 10)
    assert end == datetime(2026, 3, 11)
