"""
Booking Request Pydantic schemas.

Defines request and response models for booking requests and invitations.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List
from backend.app.models.booking_enums import BookingStatus, InitiatedBy


class BookingRequestCreate(BaseModel):
    """Driver asks an operator for a car."""
    car_id: int = Field(..., gt=0, description="Car to request")
    message: Optional[str] = Field(None, max_length=500, description="Optional note to the operator")


class BookingInvitationCreate(BaseModel):
    """Operator invites a driver to one of their cars."""
    car_id: int = Field(..., gt=0, description="Operator's car")
    driver_id: int = Field(..., gt=0, description="Driver to invite")
    message: Optional[str] = Field(None, max_length=500, description="Optional note to the driver")


class BookingStatusUpdate(BaseModel):
    """Receiver's decision on a pending request."""
    status: BookingStatus = Field(..., description="ACCEPTED or REJECTED")
    reject_reason: Optional[str] = Field(None, max_length=500, description="Optional reason (REJECTED only)")

    @model_validator(mode="after")
    def check_decision(self):
        if self.status not in (BookingStatus.ACCEPTED, BookingStatus.REJECTED):
            raise ValueError("status must be ACCEPTED or REJECTED")
        if self.status == BookingStatus.ACCEPTED:
            self.reject_reason = None
        return self


class BookingRequestResponse(BaseModel):
    """Schema for booking request response."""
    id: int
    car_id: int
    driver_id: int
    operator_id: int
    initiated_by: InitiatedBy
    status: BookingStatus
    message: Optional[str]
    reject_reason: Optional[str]
    expires_at: datetime
    decided_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BookingRequestListResponse(BaseModel):
    """Schema for paginated booking request list."""
    requests: List[BookingRequestResponse]
    total: int
    page: int
    page_size: int


class BookingRequestCounts(BaseModel):
    """Dashboard counters for the current actor."""
    pending_sent: int
    pending_received: int
    total_sent: int
    total_received: int


class RateLimitStatus(BaseModel):
    """Daily initiation allowance for an actor."""
    allowed: bool
    limit: int
    used: int
    remaining: int
    resets_at: datetime
