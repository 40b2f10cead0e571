"""
Booking request enumerations.
"""

import enum


class BookingStatus(str, enum.Enum):
    """
    Booking request status.

    PENDING: Waiting for the receiver to decide
    ACCEPTED: Receiver accepted; contact details are shared
    REJECTED: Receiver declined (optionally with a reason)
    EXPIRED: TTL passed, or the car became unavailable
    CANCELLED: Initiator withdrew the request while it was pending
    """
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
    BookingStatus.ACCEPTED,
    BookingStatus.REJECTED,
    BookingStatus.EXPIRED,
    BookingStatus.CANCELLED,
})


class InitiatedBy(str, enum.Enum):
    """Which party created the request: a driver request or an operator invitation."""
    DRIVER = "DRIVER"
    OPERATOR = "OPERATOR"


class RequestDirection(str, enum.Enum):
    """Listing perspective: requests the actor initiated vs. ones addressed to them."""
    SENT = "sent"
    RECEIVED = "received"
