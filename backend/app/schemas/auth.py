"""
Identity schemas.

The marketplace does not issue credentials; it only reads the claims that the
identity provider signs into each access token.
"""

from pydantic import BaseModel, Field
from typing import Optional
from backend.app.models.enums import UserRole, KycStatus


class CurrentActor(BaseModel):
    """
    Authenticated caller, built from verified token claims.

    Claims are trusted for the lifetime of the token, so a role or KYC change
    is only picked up once the client refreshes its token.
    """
    user_id: int = Field(..., description="User ID")
    role: UserRole = Field(..., description="User role")
    kyc_status: KycStatus = Field(default=KycStatus.NOT_SUBMITTED, description="KYC verification status")
    sub: Optional[str] = Field(default=None, description="Token subject (phone number)")

    @property
    def is_kyc_approved(self) -> bool:
        return self.kyc_status == KycStatus.APPROVED
