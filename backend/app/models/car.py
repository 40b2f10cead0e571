"""
Car database model.

Operators list cars; drivers browse and request them.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, Numeric, Text, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.car_enums import CarCategory, Transmission, FuelType, RateType


class Car(Base):
    """
    Car listing owned by exactly one Operator.

    A car is bookable while is_active is set and last_active_at falls inside
    the inactivity window. Every owner write refreshes last_active_at.
    """
    __tablename__ = "cars"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - Car belongs to Operator
    operator_id = Column(Integer, ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)

    # Identification (normalized: upper-case, no spaces)
    registration_number = Column(String(20), unique=True, nullable=False, index=True)
    car_name = Column(String(100), nullable=False)

    # Location
    city = Column(String(100), nullable=False, index=True)
    area = Column(String(100), nullable=True)

    # Listing details
    category = Column(Enum(CarCategory), nullable=False, index=True)
    transmission = Column(Enum(Transmission), nullable=False)
    fuel_type = Column(Enum(FuelType), nullable=False)
    rate_type = Column(Enum(RateType), nullable=False)
    rate_amount = Column(Numeric(10, 2), nullable=False)
    deposit_amount = Column(Numeric(10, 2), nullable=True)
    purposes = Column(JSON, nullable=True)
    instructions = Column(Text, nullable=True)
    image_urls = Column(JSON, nullable=True)  # Opaque storage URLs

    # Availability
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_active_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Car(id={self.id}, number='{self.registration_number}', operator_id={self.operator_id})>"
