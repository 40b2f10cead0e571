"""
Security guards for role-based access control.

Ownership of individual cars and requests is enforced by the services, which
know the resource; these guards only look at the caller.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from backend.app.core.dependencies import get_current_actor
from backend.app.core.exceptions import kyc_not_approved
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CurrentActor


def require_role(allowed_roles: List[UserRole], require_kyc: bool = True):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/booking-requests")
        async def create(actor: CurrentActor = Depends(require_role([UserRole.DRIVER]))):
            ...

    Args:
        allowed_roles: Roles admitted to the endpoint
        require_kyc: Also demand kyc_status == APPROVED

    Returns:
        FastAPI dependency resolving to the CurrentActor

    Raises:
        HTTPException 403 if the role is not allowed
        PolicyViolationError (KYC_NOT_APPROVED) if KYC is required and missing
    """
    async def role_checker(actor: CurrentActor = Depends(get_current_actor)) -> CurrentActor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        if require_kyc and not actor.is_kyc_approved:
            raise kyc_not_approved()

        return actor

    return role_checker


require_participant = require_role([UserRole.DRIVER, UserRole.OPERATOR])
require_driver = require_role([UserRole.DRIVER])
require_operator = require_role([UserRole.OPERATOR])
