"""
Notification Database Model.

In-app history of every notification dispatched to a user.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
import enum


class NotificationEvent(str, enum.Enum):
    # Booking lifecycle
    BOOKING_REQUEST_CREATED = "BOOKING_REQUEST_CREATED"
    BOOKING_INVITATION_CREATED = "BOOKING_INVITATION_CREATED"
    BOOKING_REQUEST_ACCEPTED = "BOOKING_REQUEST_ACCEPTED"
    BOOKING_REQUEST_ACCEPTANCE_CONFIRMED = "BOOKING_REQUEST_ACCEPTANCE_CONFIRMED"
    BOOKING_INVITATION_ACCEPTED = "BOOKING_INVITATION_ACCEPTED"
    BOOKING_INVITATION_ACCEPTANCE_CONFIRMED = "BOOKING_INVITATION_ACCEPTANCE_CONFIRMED"
    BOOKING_REQUEST_REJECTED = "BOOKING_REQUEST_REJECTED"
    BOOKING_INVITATION_REJECTED = "BOOKING_INVITATION_REJECTED"
    BOOKING_REQUEST_CANCELLED = "BOOKING_REQUEST_CANCELLED"
    BOOKING_INVITATION_CANCELLED = "BOOKING_INVITATION_CANCELLED"
    BOOKING_REQUEST_EXPIRED = "BOOKING_REQUEST_EXPIRED"
    BOOKING_INVITATION_EXPIRED = "BOOKING_INVITATION_EXPIRED"
    REQUEST_EXPIRED_CAR_UNAVAILABLE = "REQUEST_EXPIRED_CAR_UNAVAILABLE"

    # Car availability
    CAR_AUTO_DEACTIVATED = "CAR_AUTO_DEACTIVATED"

    # Limits
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"


class Notification(Base):
    """
    In-App Notification.
    Stores messages for users; push delivery status is tracked alongside.
    """
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Content
    event = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_payload = Column(JSON, nullable=True)

    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    push_sent = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, event='{self.event}')>"
