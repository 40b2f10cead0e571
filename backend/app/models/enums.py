"""
User roles and KYC status enumerations.

Defines who can take part in the car marketplace.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform administrator (excluded from booking flows)
        OPERATOR: Owns cars and invites drivers
        DRIVER: Rents cars by sending booking requests
    """
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
    DRIVER = "DRIVER"


class KycStatus(str, enum.Enum):
    """
    Identity-document verification status.

    Only APPROVED users may create, receive or act on booking requests.
    """
    NOT_SUBMITTED = "NOT_SUBMITTED"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
