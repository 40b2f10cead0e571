"""
Booking Request API Endpoints.

Drivers request cars, operators invite drivers; the receiving side accepts or
rejects and the initiating side may cancel while the request is pending.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.db.session import get_db
from backend.app.core.guards import require_participant, require_driver, require_operator
from backend.app.domain.booking.booking_service import BookingRequestEngine
from backend.app.models.booking_enums import BookingStatus, RequestDirection
from backend.app.schemas.auth import CurrentActor
from backend.app.schemas.booking_request import (
    BookingRequestCreate,
    BookingInvitationCreate,
    BookingStatusUpdate,
    BookingRequestResponse,
    BookingRequestListResponse,
    BookingRequestCounts,
    RateLimitStatus,
)
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher

router = APIRouter(prefix="/booking-requests", tags=["Booking Requests"])


def get_booking_engine(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> BookingRequestEngine:
    return BookingRequestEngine(db, notifier)


@router.post("", response_model=BookingRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_request(
    data: BookingRequestCreate,
    actor: CurrentActor = Depends(require_driver),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    """Send a booking request for a car (Driver only)."""
    return await engine.create_request(actor, data.car_id, data.message)


@router.post("/invite", response_model=BookingRequestResponse, status_code=status.HTTP_201_CREATED)
async def invite_driver(
    data: BookingInvitationCreate,
    actor: CurrentActor = Depends(require_operator),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    """Invite a driver to one of your cars (Operator only)."""
    return await engine.invite_driver(actor, data.car_id, data.driver_id, data.message)


async def _list(engine, actor, direction, status_filter, car_id, page, page_size) -> BookingRequestListResponse:
    requests, total = await engine.list_requests(
        actor, direction, status=status_filter, car_id=car_id, page=page, page_size=page_size
    )
    return BookingRequestListResponse(
        requests=[BookingRequestResponse.model_validate(r) for r in requests],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/sent", response_model=BookingRequestListResponse)
async def list_sent_requests(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    car_id: Optional[int] = Query(None, gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    """Requests (drivers) or invitations (operators) you sent, newest first."""
    return await _list(engine, actor, RequestDirection.SENT, status_filter, car_id, page, page_size)


@router.get("/received", response_model=BookingRequestListResponse)
async def list_received_requests(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    car_id: Optional[int] = Query(None, gt=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    """Requests addressed to you, newest first."""
    return await _list(engine, actor, RequestDirection.RECEIVED, status_filter, car_id, page, page_size)


@router.get("/counts", response_model=BookingRequestCounts)
async def get_request_counts(
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    return await engine.counts(actor)


@router.get("/daily-limits", response_model=RateLimitStatus)
async def get_daily_limits(
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    return await engine.daily_limits(actor)


@router.get("/{request_id}", response_model=BookingRequestResponse)
async def get_booking_request(
    request_id: int = Path(..., description="Booking Request ID"),
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    return await engine.get_request(actor, request_id)


@router.put("/{request_id}/status", response_model=BookingRequestResponse)
async def update_booking_status(
    data: BookingStatusUpdate,
    request_id: int = Path(..., description="Booking Request ID"),
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    """
    Accept or reject a pending request (receiver only).

    Accepting shares both parties' phone numbers through notifications.
    A request past its expiry is marked EXPIRED and answered with 410.
    """
    return await engine.update_status(actor, request_id, data.status, data.reject_reason)


@router.delete("/{request_id}", response_model=BookingRequestResponse)
async def cancel_booking_request(
    request_id: int = Path(..., description="Booking Request ID"),
    actor: CurrentActor = Depends(require_participant),
    engine: BookingRequestEngine = Depends(get_booking_engine),
):
    """Cancel a pending request you initiated. The request is kept as CANCELLED."""
    return await engine.cancel(actor, request_id)
