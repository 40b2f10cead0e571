"""
Booking Request database model.

A driver request for a car, or an operator invitation to a driver.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.booking_enums import BookingStatus, InitiatedBy


class BookingRequest(Base):
    """
    Booking Request model.

    operator_id is always the car's owner, whichever side initiated. The
    receiver (the party that did not initiate) may accept or reject; the
    initiator may cancel while the request is PENDING.
    """
    __tablename__ = "booking_requests"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    car_id = Column(Integer, ForeignKey('cars.id', ondelete="CASCADE"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    operator_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    initiated_by = Column(Enum(InitiatedBy), nullable=False, index=True)

    # State
    status = Column(Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False, index=True)
    message = Column(Text, nullable=True)
    reject_reason = Column(String(500), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Only one PENDING request per (car, driver, direction)
    __table_args__ = (
        Index(
            'uq_booking_requests_pending_direction',
            'car_id', 'driver_id', 'initiated_by',
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    def __repr__(self):
        return (
            f"<BookingRequest(id={self.id}, car_id={self.car_id}, driver_id={self.driver_id}, "
            f"initiated_by='{self.initiated_by.value}', status='{self.status.value}')>"
        )
