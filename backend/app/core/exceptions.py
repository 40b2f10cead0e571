"""
Custom exceptions and error handlers for consistent error responses.

Every booking-domain failure carries a stable machine-readable kind and code
plus a message that is safe to show to end users.
"""

import enum
import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    """Error taxonomy exposed to API clients."""
    NOT_FOUND = "NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    RATE_LIMITED = "RATE_LIMITED"
    EXPIRED = "EXPIRED"


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class BookingError(AppException):
    """Base class for expected, user-facing booking failures."""

    kind: ErrorKind
    default_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=self.default_status,
            details=details
        )


class NotFoundError(BookingError):
    """Car, booking request or user does not exist (or is hidden from the caller)."""
    kind = ErrorKind.NOT_FOUND
    default_status = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(BookingError):
    """Caller is not the party allowed to perform the action."""
    kind = ErrorKind.PERMISSION_DENIED
    default_status = status.HTTP_403_FORBIDDEN


class InvalidStateError(BookingError):
    """Request is no longer PENDING."""
    kind = ErrorKind.INVALID_STATE
    default_status = status.HTTP_409_CONFLICT


class ConflictError(BookingError):
    """Duplicate pending request or duplicate car registration."""
    kind = ErrorKind.CONFLICT
    default_status = status.HTTP_409_CONFLICT


class PolicyViolationError(BookingError):
    """Self-booking, self-invitation, KYC not approved, car not bookable."""
    kind = ErrorKind.POLICY_VIOLATION
    default_status = status.HTTP_400_BAD_REQUEST


class RateLimitedError(BookingError):
    """Daily initiation cap reached."""
    kind = ErrorKind.RATE_LIMITED
    default_status = status.HTTP_429_TOO_MANY_REQUESTS


class RequestExpiredError(BookingError):
    """Request passed its expiry before the action arrived."""
    kind = ErrorKind.EXPIRED
    default_status = status.HTTP_410_GONE


# Pre-defined errors for common scenarios

def car_not_found(car_id: Any = None) -> NotFoundError:
    return NotFoundError("CAR_NOT_FOUND", "The requested car was not found.", {"car_id": car_id})


def booking_not_found(request_id: Any = None) -> NotFoundError:
    return NotFoundError("BOOKING_NOT_FOUND", "The requested booking request was not found.", {"request_id": request_id})


def user_not_found(user_id: Any = None) -> NotFoundError:
    return NotFoundError("USER_NOT_FOUND", "The requested user was not found.", {"user_id": user_id})


def booking_permission_denied() -> PermissionDeniedError:
    return PermissionDeniedError("BOOKING_PERMISSION_DENIED", "You don't have permission to act on this request.")


def car_permission_denied() -> PermissionDeniedError:
    return PermissionDeniedError("CAR_PERMISSION_DENIED", "You don't have permission to manage this car.")


def request_already_processed(current_status: Any = None) -> InvalidStateError:
    return InvalidStateError(
        "REQUEST_ALREADY_PROCESSED",
        "This request has already been processed.",
        {"status": getattr(current_status, "value", current_status)}
    )


def request_expired(request_id: Any = None) -> RequestExpiredError:
    return RequestExpiredError("REQUEST_EXPIRED", "This request has expired.", {"request_id": request_id})


def request_already_exists() -> ConflictError:
    return ConflictError("REQUEST_ALREADY_EXISTS", "You already have a pending request for this.")


def car_already_registered() -> ConflictError:
    return ConflictError("CAR_ALREADY_REGISTERED", "A car with this registration number is already registered.")


def cannot_book_own_car() -> PolicyViolationError:
    return PolicyViolationError("CANNOT_BOOK_OWN_CAR", "You cannot book your own car.")


def cannot_invite_self() -> PolicyViolationError:
    return PolicyViolationError("CANNOT_INVITE_SELF", "You cannot send an invitation to yourself.")


def car_not_available(car_id: Any = None) -> PolicyViolationError:
    return PolicyViolationError("CAR_NOT_AVAILABLE", "This car is currently not available.", {"car_id": car_id})


def kyc_not_approved() -> PolicyViolationError:
    return PolicyViolationError(
        "KYC_NOT_APPROVED",
        "Your KYC verification is pending. Please complete KYC to continue."
    )


def invalid_booking_role(message: str = "Only drivers and operators can take part in bookings.") -> PolicyViolationError:
    return PolicyViolationError("INVALID_BOOKING_ROLE", message)


def driver_kyc_not_approved(driver_id: Any = None) -> PolicyViolationError:
    return PolicyViolationError(
        "DRIVER_KYC_NOT_APPROVED",
        "This driver has not completed KYC verification yet.",
        {"driver_id": driver_id}
    )


def invalid_decision(requested: Any = None) -> PolicyViolationError:
    return PolicyViolationError(
        "INVALID_DECISION",
        "A request can only be accepted or rejected.",
        {"status": getattr(requested, "value", requested)}
    )


def daily_limit_reached(limit: int) -> RateLimitedError:
    return RateLimitedError(
        "DAILY_LIMIT_REACHED",
        "You've reached your daily limit. Please try again tomorrow.",
        {"limit": limit}
    )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    kind = getattr(exc, "kind", None)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "kind": kind.value if kind else None,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "kind": None,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "kind": None,
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions (storage or infrastructure failures)."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "kind": None,
            "message": "An internal server error occurred",
            "details": {}
        }
    )
