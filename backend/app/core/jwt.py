"""
JWT token utilities.

Access tokens are minted by the identity provider after phone verification;
this service only verifies them. create_identity_token mirrors the provider's
claim layout and is used by tooling and tests.
"""

from datetime import datetime, timedelta
from typing import Optional, Dict, Any, Union
from jose import JWTError, jwt
from backend.app.core.config import settings
from backend.app.models.enums import UserRole, KycStatus


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Encode a signed access token.

    Args:
        data: Claims to sign (sub, user_id, role, kyc_status)
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT token string
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_identity_token(
    user_id: int,
    role: Union[UserRole, str],
    kyc_status: Union[KycStatus, str] = KycStatus.APPROVED,
    phone_number: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Token with the claim set the marketplace reads.

    Example payload:
        {
            "sub": "+919800000001",
            "user_id": 12,
            "role": "DRIVER",
            "kyc_status": "APPROVED",
            "exp": 1234567890
        }
    """
    claims = {
        "sub": phone_number or str(user_id),
        "user_id": user_id,
        "role": getattr(role, "value", role),
        "kyc_status": getattr(kyc_status, "value", kyc_status),
    }
    return create_access_token(claims, expires_delta)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify signature and expiry. Returns the claims, or None if the token is invalid."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
