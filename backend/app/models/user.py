"""
User database model.

Mirror of the identity provider's user record: only the fields the
marketplace needs for ownership, KYC gating and contact sharing.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Text
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole, KycStatus


class User(Base):
    """
    Marketplace user (driver, operator or admin).

    Phone-based identity: the phone number is the unique login handle and is
    shared with the counterpart once a booking request is accepted.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    phone_number = Column(String(15), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=True)
    agency_name = Column(String(150), nullable=True)  # Operators only

    role = Column(Enum(UserRole), nullable=False, index=True)
    kyc_status = Column(Enum(KycStatus), default=KycStatus.NOT_SUBMITTED, nullable=False, index=True)

    # Device token for push delivery
    push_token = Column(Text, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def display_name(self) -> str:
        if self.role == UserRole.OPERATOR and self.agency_name:
            return self.agency_name
        return self.full_name or self.phone_number

    def __repr__(self):
        return f"<User(id={self.id}, phone='{self.phone_number}', role='{self.role.value}')>"
