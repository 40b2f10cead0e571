"""
Authentication dependencies for FastAPI.

Claims in a valid token are trusted until the token expires; there is no
per-request user lookup. A role or KYC change therefore takes effect when the
client next refreshes its token.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError
from backend.app.core.jwt import decode_access_token
from backend.app.schemas.auth import CurrentActor

# HTTP Bearer security scheme
security = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """
    Validate the bearer token and return its claims.

    Raises:
        HTTPException: 401 if the token is invalid, expired or has no user_id
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    if not payload.get("user_id"):
        raise _unauthorized("Invalid token payload")

    return payload


async def get_current_actor(current_user: dict = Depends(get_current_user)) -> CurrentActor:
    """Typed view of the token claims."""
    try:
        return CurrentActor(
            user_id=current_user["user_id"],
            role=current_user.get("role"),
            kyc_status=current_user.get("kyc_status") or "NOT_SUBMITTED",
            sub=current_user.get("sub"),
        )
    except ValidationError:
        raise _unauthorized("Invalid role or KYC status in token")
