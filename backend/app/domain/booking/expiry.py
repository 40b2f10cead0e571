"""
Expiry Evaluator.

Pure time predicates shared by every read path, the availability gate and the
periodic sweep, so lazy and scheduled expiry can never disagree.

All timestamps are handled as naive UTC. Aware datetimes (as returned by
PostgreSQL for timestamptz columns) are converted before comparison.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from backend.app.core.config import settings
from backend.app.models.booking_enums import BookingStatus


def utcnow() -> datetime:
    return datetime.utcnow()


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Drop tzinfo after converting to UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_request_expired(request, now: Optional[datetime] = None) -> bool:
    """
    Check whether a booking request has outlived its TTL.

    Args:
        request: Anything with ``status`` and ``expires_at`` attributes
        now: Reference time (defaults to current UTC time)

    Returns:
        True only for PENDING requests whose expires_at is in the past
    """
    if request.status != BookingStatus.PENDING or request.expires_at is None:
        return False
    now = as_naive_utc(now) or utcnow()
    return now > as_naive_utc(request.expires_at)


def is_car_inactive(car, now: Optional[datetime] = None, inactivity_days: Optional[int] = None) -> bool:
    """
    Check whether an active car has gone stale.

    A car that is already deactivated is never reported as inactive: there is
    nothing left to deactivate.
    """
    if not car.is_active:
        return False
    if car.last_active_at is None:
        return True
    return as_naive_utc(car.last_active_at) < inactivity_threshold(now, inactivity_days)


def compute_request_expiry(created_at: datetime, expiry_days: Optional[int] = None) -> datetime:
    """expires_at for a request created at ``created_at``."""
    if expiry_days is None:
        expiry_days = settings.booking_request_expiry_days
    return as_naive_utc(created_at) + timedelta(days=expiry_days)


def inactivity_threshold(now: Optional[datetime] = None, days: Optional[int] = None) -> datetime:
    """Oldest last_active_at that still counts as active."""
    if days is None:
        days = settings.car_inactivity_days
    now = as_naive_utc(now) or utcnow()
    return now - timedelta(days=days)


def day_window(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """UTC calendar day containing ``now`` as a half-open [start, end) range."""
    now = as_naive_utc(now) or utcnow()
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)
