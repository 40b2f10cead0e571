"""
Booking Request Engine.

State machine for driver requests and operator invitations:

    PENDING -> ACCEPTED | REJECTED   (receiver decides)
    PENDING -> CANCELLED             (initiator withdraws)
    PENDING -> EXPIRED               (TTL passed, or the car went away)

Terminal requests are immutable. Every transition is a conditional
UPDATE ... WHERE status = 'PENDING', so of two concurrent decisions only one
can win. Notifications are dispatched after the commit and never affect the
outcome of the transition.
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from sqlalchemy import select, update, func, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings, settings as default_settings
from backend.app.core.exceptions import (
    car_not_found,
    booking_not_found,
    user_not_found,
    booking_permission_denied,
    car_permission_denied,
    request_already_processed,
    request_expired,
    request_already_exists,
    cannot_book_own_car,
    cannot_invite_self,
    car_not_available,
    kyc_not_approved,
    invalid_booking_role,
    driver_kyc_not_approved,
    invalid_decision,
    daily_limit_reached,
)
from backend.app.models.booking_request import BookingRequest
from backend.app.models.booking_enums import BookingStatus, InitiatedBy, RequestDirection, TERMINAL_STATUSES
from backend.app.models.car import Car
from backend.app.models.enums import UserRole, KycStatus
from backend.app.models.notification import Notification, NotificationEvent
from backend.app.models.user import User
from backend.app.schemas.auth import CurrentActor
from backend.app.schemas.booking_request import BookingRequestCounts, RateLimitStatus
from backend.app.services import notification_templates as templates
from backend.app.domain.booking.expiry import utcnow, is_request_expired, compute_request_expiry
from backend.app.domain.booking.rate_limiter import DailyRateLimiter
from backend.app.domain.booking.car_availability import CarAvailabilityGate

logger = logging.getLogger(__name__)

BOOKING_ROLES = (UserRole.DRIVER, UserRole.OPERATOR)


def initiator_id(request: BookingRequest) -> int:
    if request.initiated_by == InitiatedBy.DRIVER:
        return request.driver_id
    return request.operator_id


def receiver_id(request: BookingRequest) -> int:
    if request.initiated_by == InitiatedBy.DRIVER:
        return request.operator_id
    return request.driver_id


def receiver_role(request: BookingRequest) -> UserRole:
    if request.initiated_by == InitiatedBy.DRIVER:
        return UserRole.OPERATOR
    return UserRole.DRIVER


def initiator_role(request: BookingRequest) -> UserRole:
    return UserRole(request.initiated_by.value)


def _display_name(user: Optional[User], fallback: str) -> str:
    return user.display_name if user is not None else fallback


class BookingRequestEngine:
    """
    Creates, lists, transitions, cancels and expires booking requests.

    Every public operation takes an already-authenticated CurrentActor. Role
    and KYC are re-checked here even though the API layer guards them too.

    Args:
        db: Session for this unit of work
        notifier: Object exposing ``async dispatch(user_id, template)``
        config: Limits and TTLs (defaults to global settings)
        clock: Returns the current naive-UTC time
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.config = config
        self.clock = clock
        self.rate_limiter = DailyRateLimiter(db, config, clock)
        self.gate = CarAvailabilityGate(db, notifier, expirer=self, config=config, clock=clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_request(self, actor: CurrentActor, car_id: int, message: Optional[str] = None) -> BookingRequest:
        """Driver asks the car's operator for the car."""
        self._require_participant(actor)
        car = await self._load_car(car_id)

        # Checked before role/KYC/availability: self-booking is never allowed
        if car.operator_id == actor.user_id:
            raise cannot_book_own_car()

        self._require_role(actor, UserRole.DRIVER, "Only drivers can send booking requests.")
        self._require_kyc(actor)
        await self._ensure_bookable(car)
        await self._enforce_daily_limit(actor)
        await self._ensure_no_pending(car.id, actor.user_id, InitiatedBy.DRIVER)

        request = await self._insert(car, actor.user_id, InitiatedBy.DRIVER, message)
        logger.info(
            "Booking request created",
            extra={"request_id": request.id, "car_id": car.id, "driver_id": actor.user_id},
        )

        driver = await self.db.get(User, actor.user_id)
        await self.notifier.dispatch(
            car.operator_id,
            templates.booking_request_created(
                _display_name(driver, "A driver"), car.car_name, request.id, car.id
            ),
        )
        return request

    async def invite_driver(
        self,
        actor: CurrentActor,
        car_id: int,
        driver_id: int,
        message: Optional[str] = None,
    ) -> BookingRequest:
        """Operator invites a driver to one of the operator's cars."""
        self._require_participant(actor)
        self._require_role(actor, UserRole.OPERATOR, "Only operators can send invitations.")
        self._require_kyc(actor)

        if driver_id == actor.user_id:
            raise cannot_invite_self()

        car = await self._load_car(car_id)
        if car.operator_id != actor.user_id:
            raise car_permission_denied()

        driver = await self.db.get(User, driver_id)
        if driver is None or driver.role != UserRole.DRIVER or not driver.is_active:
            raise user_not_found(driver_id)
        if driver.kyc_status != KycStatus.APPROVED:
            raise driver_kyc_not_approved(driver_id)

        await self._ensure_bookable(car)
        await self._enforce_daily_limit(actor)
        await self._ensure_no_pending(car.id, driver_id, InitiatedBy.OPERATOR)

        request = await self._insert(car, driver_id, InitiatedBy.OPERATOR, message)
        logger.info(
            "Booking invitation created",
            extra={"request_id": request.id, "car_id": car.id, "operator_id": actor.user_id, "driver_id": driver_id},
        )

        operator = await self.db.get(User, actor.user_id)
        await self.notifier.dispatch(
            driver_id,
            templates.booking_invitation_created(
                _display_name(operator, "An operator"), car.car_name, request.id, car.id
            ),
        )
        return request

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        actor: CurrentActor,
        request_id: int,
        status: BookingStatus,
        reject_reason: Optional[str] = None,
    ) -> BookingRequest:
        """
        Accept or reject a pending request (receiver only).

        Raises:
            NotFoundError: request does not exist
            PermissionDeniedError: caller is not the receiver
            InvalidStateError: request is no longer PENDING
            RequestExpiredError: request passed its TTL; it is marked EXPIRED
            PolicyViolationError: the car went stale; its pending requests are expired
        """
        if status not in (BookingStatus.ACCEPTED, BookingStatus.REJECTED):
            raise invalid_decision(status)

        self._require_participant(actor)
        self._require_kyc(actor)
        request = await self._load_request(request_id)

        if actor.role != receiver_role(request) or actor.user_id != receiver_id(request):
            raise booking_permission_denied()

        await self._reject_if_not_pending(request)
        await self._ensure_request_car_bookable(request)

        now = self.clock()
        values = {"status": status, "decided_at": now, "updated_at": now}
        if status == BookingStatus.REJECTED:
            values["reject_reason"] = reject_reason

        await self._apply_transition(request, values)
        logger.info(
            "Booking request decided",
            extra={"request_id": request.id, "status": status.value, "actor_id": actor.user_id},
        )

        await self._notify_decision(request)
        return request

    async def cancel(self, actor: CurrentActor, request_id: int) -> BookingRequest:
        """Withdraw a pending request (initiator only). The row is kept as CANCELLED."""
        self._require_participant(actor)
        self._require_kyc(actor)
        request = await self._load_request(request_id)

        if actor.role != initiator_role(request) or actor.user_id != initiator_id(request):
            raise booking_permission_denied()

        await self._reject_if_not_pending(request)

        now = self.clock()
        await self._apply_transition(
            request, {"status": BookingStatus.CANCELLED, "decided_at": now, "updated_at": now}
        )
        logger.info("Booking request cancelled", extra={"request_id": request.id, "actor_id": actor.user_id})

        car = await self.db.get(Car, request.car_id)
        car_name = car.car_name if car is not None else "the car"
        initiator = await self.db.get(User, actor.user_id)

        if request.initiated_by == InitiatedBy.DRIVER:
            template = templates.booking_request_cancelled(
                _display_name(initiator, "A driver"), car_name, request.id, request.car_id
            )
        else:
            template = templates.booking_invitation_cancelled(
                _display_name(initiator, "An operator"), car_name, request.id, request.car_id
            )
        await self.notifier.dispatch(receiver_id(request), template)
        return request

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    async def expire_requests_for_car(self, car_id: int, car_name: str) -> int:
        """
        Expire every PENDING request for a car that is no longer available.

        Safe to call repeatedly: a second call finds nothing pending and
        returns 0 without notifying anyone.
        """
        result = await self.db.execute(
            select(BookingRequest).where(
                BookingRequest.car_id == car_id,
                BookingRequest.status == BookingStatus.PENDING,
            )
        )
        expired = await self._expire_all(list(result.scalars().all()))

        for request in expired:
            await self.notifier.dispatch(
                initiator_id(request),
                templates.request_expired_car_unavailable(car_name, request.id, car_id),
            )

        if expired:
            logger.info("Expired pending requests for unavailable car", extra={"car_id": car_id, "count": len(expired)})
        return len(expired)

    async def sweep_expired_requests(self) -> int:
        """Expire every PENDING request past its TTL and notify the initiators."""
        return await self._expire_overdue()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_request(self, actor: CurrentActor, request_id: int) -> BookingRequest:
        self._require_participant(actor)
        self._require_kyc(actor)
        request = await self._load_request(request_id)

        if actor.user_id not in (request.driver_id, request.operator_id):
            raise booking_permission_denied()

        if is_request_expired(request, self.clock()):
            await self._expire_overdue(BookingRequest.id == request.id)
            await self.db.refresh(request)

        if request.status == BookingStatus.PENDING:
            car = await self.db.get(Car, request.car_id)
            if car is not None:
                await self.gate.ensure_active_or_deactivate(car)
                await self.db.refresh(request)
        return request

    async def list_requests(
        self,
        actor: CurrentActor,
        direction: RequestDirection,
        status: Optional[BookingStatus] = None,
        car_id: Optional[int] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[BookingRequest], int]:
        """
        List the actor's sent or received requests, newest first.

        Overdue PENDING requests are expired before the read so they are never
        served as PENDING.

        Returns:
            (page of requests, total matching)
        """
        self._require_participant(actor)
        self._require_kyc(actor)
        await self._expire_overdue(self._party_filter(actor))

        criteria = [self._direction_filter(actor, direction)]
        if status is not None:
            criteria.append(BookingRequest.status == status)
        if car_id is not None:
            criteria.append(BookingRequest.car_id == car_id)

        total_result = await self.db.execute(select(func.count(BookingRequest.id)).where(*criteria))
        total = total_result.scalar() or 0

        offset = (page - 1) * page_size
        result = await self.db.execute(
            select(BookingRequest)
            .where(*criteria)
            .order_by(BookingRequest.created_at.desc(), BookingRequest.id.desc())
            .offset(offset)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    async def counts(self, actor: CurrentActor) -> BookingRequestCounts:
        """Pending and total counts per direction, for dashboards."""
        self._require_participant(actor)
        self._require_kyc(actor)
        await self._expire_overdue(self._party_filter(actor))

        sent = self._direction_filter(actor, RequestDirection.SENT)
        received = self._direction_filter(actor, RequestDirection.RECEIVED)
        pending = BookingRequest.status == BookingStatus.PENDING

        return BookingRequestCounts(
            pending_sent=await self._count(sent, pending),
            pending_received=await self._count(received, pending),
            total_sent=await self._count(sent),
            total_received=await self._count(received),
        )

    async def daily_limits(self, actor: CurrentActor) -> RateLimitStatus:
        self._require_participant(actor)
        return await self.rate_limiter.check_limit(actor.user_id, actor.role)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_participant(self, actor: CurrentActor):
        if actor.role not in BOOKING_ROLES:
            raise invalid_booking_role()

    def _require_role(self, actor: CurrentActor, role: UserRole, message: str):
        if actor.role != role:
            raise invalid_booking_role(message)

    def _require_kyc(self, actor: CurrentActor):
        if not actor.is_kyc_approved:
            raise kyc_not_approved()

    async def _load_car(self, car_id: int) -> Car:
        car = await self.db.get(Car, car_id)
        if car is None:
            raise car_not_found(car_id)
        return car

    async def _load_request(self, request_id: int) -> BookingRequest:
        request = await self.db.get(BookingRequest, request_id)
        if request is None:
            raise booking_not_found(request_id)
        return request

    async def _ensure_bookable(self, car: Car):
        await self.gate.ensure_active_or_deactivate(car)
        if not self.gate.is_bookable(car):
            raise car_not_available(car.id)

    async def _ensure_request_car_bookable(self, request: BookingRequest):
        """A stale car is deactivated here, which expires this request with the rest."""
        car = await self.db.get(Car, request.car_id)
        if car is None:
            raise car_not_found(request.car_id)
        if self.gate.is_bookable(car):
            return

        await self.gate.ensure_active_or_deactivate(car)
        await self.db.refresh(request)
        raise car_not_available(car.id)

    async def _enforce_daily_limit(self, actor: CurrentActor):
        status = await self.rate_limiter.check_limit(actor.user_id, actor.role)
        if status.allowed:
            return

        logger.info(
            "Daily booking limit reached",
            extra={"actor_id": actor.user_id, "role": actor.role.value, "limit": status.limit},
        )
        today = self.clock().date()
        if not await self._limit_notice_sent(actor.user_id, today):
            await self.notifier.dispatch(
                actor.user_id, templates.daily_limit_reached(status.limit, actor.role, day=today)
            )
        raise daily_limit_reached(status.limit)

    async def _limit_notice_sent(self, user_id: int, day: date) -> bool:
        """One limit notice per day; retries while blocked stay silent."""
        result = await self.db.execute(
            select(Notification.metadata_payload).where(
                Notification.user_id == user_id,
                Notification.event == NotificationEvent.DAILY_LIMIT_REACHED.value,
            )
        )
        return any((payload or {}).get("day") == day.isoformat() for payload in result.scalars().all())

    async def _pending_exists(self, car_id: int, driver_id: int, initiated_by: InitiatedBy) -> bool:
        result = await self.db.execute(
            select(BookingRequest.id).where(
                BookingRequest.car_id == car_id,
                BookingRequest.driver_id == driver_id,
                BookingRequest.initiated_by == initiated_by,
                BookingRequest.status == BookingStatus.PENDING,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _ensure_no_pending(self, car_id: int, driver_id: int, initiated_by: InitiatedBy):
        if await self._pending_exists(car_id, driver_id, initiated_by):
            raise request_already_exists()

    async def _insert(
        self, car: Car, driver_id: int, initiated_by: InitiatedBy, message: Optional[str]
    ) -> BookingRequest:
        now = self.clock()
        car_id = car.id
        request = BookingRequest(
            car_id=car_id,
            driver_id=driver_id,
            operator_id=car.operator_id,
            initiated_by=initiated_by,
            status=BookingStatus.PENDING,
            message=message or None,
            expires_at=compute_request_expiry(now, self.config.booking_request_expiry_days),
            created_at=now,
            updated_at=now,
        )
        self.db.add(request)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            # Lost the race against a concurrent create in the same direction
            if await self._pending_exists(car_id, driver_id, initiated_by):
                raise request_already_exists()
            raise
        await self.db.refresh(request)
        return request

    async def _reject_if_not_pending(self, request: BookingRequest):
        """Terminal requests are immutable; overdue ones are expired first."""
        if request.status in TERMINAL_STATUSES:
            raise request_already_processed(request.status)

        if is_request_expired(request, self.clock()):
            await self._expire_overdue(BookingRequest.id == request.id)
            raise request_expired(request.id)

    async def _conditional_update(self, request_id: int, values: dict) -> bool:
        result = await self.db.execute(
            update(BookingRequest)
            .where(BookingRequest.id == request_id, BookingRequest.status == BookingStatus.PENDING)
            .values(**values)
        )
        return result.rowcount > 0

    async def _apply_transition(self, request: BookingRequest, values: dict):
        applied = await self._conditional_update(request.id, values)
        await self.db.commit()
        await self.db.refresh(request)
        if not applied:
            raise request_already_processed(request.status)

    async def _expire_all(self, requests: List[BookingRequest]) -> List[BookingRequest]:
        """Flip each request to EXPIRED if still pending; returns those that flipped."""
        now = self.clock()
        expired = []
        for request in requests:
            if await self._conditional_update(
                request.id, {"status": BookingStatus.EXPIRED, "decided_at": now, "updated_at": now}
            ):
                expired.append(request)
        await self.db.commit()
        for request in expired:
            await self.db.refresh(request)
        return expired

    async def _expire_overdue(self, *criteria) -> int:
        """Expire overdue PENDING requests (optionally narrowed) and notify initiators."""
        result = await self.db.execute(
            select(BookingRequest).where(
                BookingRequest.status == BookingStatus.PENDING,
                BookingRequest.expires_at < self.clock(),
                *criteria,
            )
        )
        overdue = list(result.scalars().all())
        if not overdue:
            return 0

        expired = await self._expire_all(overdue)
        for request in expired:
            car = await self.db.get(Car, request.car_id)
            car_name = car.car_name if car is not None else "the car"
            if request.initiated_by == InitiatedBy.DRIVER:
                template = templates.booking_request_expired(car_name, request.id, request.car_id)
            else:
                template = templates.booking_invitation_expired(car_name, request.id, request.car_id)
            await self.notifier.dispatch(initiator_id(request), template)

        logger.info("Expired overdue booking requests", extra={"count": len(expired)})
        return len(expired)

    async def _notify_decision(self, request: BookingRequest):
        car = await self.db.get(Car, request.car_id)
        car_name = car.car_name if car is not None else "the car"
        driver = await self.db.get(User, request.driver_id)
        operator = await self.db.get(User, request.operator_id)
        driver_name = _display_name(driver, "The driver")
        operator_name = _display_name(operator, "The operator")
        driver_phone = driver.phone_number if driver is not None else ""
        operator_phone = operator.phone_number if operator is not None else ""
        ids = (request.id, request.car_id)

        if request.status == BookingStatus.ACCEPTED:
            if request.initiated_by == InitiatedBy.DRIVER:
                await self.notifier.dispatch(
                    request.driver_id,
                    templates.booking_request_accepted(operator_name, operator_phone, car_name, *ids),
                )
                await self.notifier.dispatch(
                    request.operator_id,
                    templates.booking_request_acceptance_confirmed(driver_name, driver_phone, car_name, *ids),
                )
            else:
                await self.notifier.dispatch(
                    request.operator_id,
                    templates.booking_invitation_accepted(driver_name, driver_phone, car_name, *ids),
                )
                await self.notifier.dispatch(
                    request.driver_id,
                    templates.booking_invitation_acceptance_confirmed(operator_name, operator_phone, car_name, *ids),
                )
        elif request.status == BookingStatus.REJECTED:
            if request.initiated_by == InitiatedBy.DRIVER:
                await self.notifier.dispatch(
                    request.driver_id,
                    templates.booking_request_rejected(operator_name, car_name, *ids, reason=request.reject_reason),
                )
            else:
                await self.notifier.dispatch(
                    request.operator_id,
                    templates.booking_invitation_rejected(driver_name, car_name, *ids, reason=request.reject_reason),
                )

    def _party_filter(self, actor: CurrentActor):
        if actor.role == UserRole.DRIVER:
            return BookingRequest.driver_id == actor.user_id
        return BookingRequest.operator_id == actor.user_id

    def _direction_filter(self, actor: CurrentActor, direction: RequestDirection):
        """
        SENT: requests the actor initiated. RECEIVED: requests addressed to the actor.
        """
        own_side = InitiatedBy(actor.role.value)
        other_side = InitiatedBy.OPERATOR if own_side == InitiatedBy.DRIVER else InitiatedBy.DRIVER
        initiated_by = own_side if direction == RequestDirection.SENT else other_side
        return and_(self._party_filter(actor), BookingRequest.initiated_by == initiated_by)

    async def _count(self, *criteria) -> int:
        result = await self.db.execute(select(func.count(BookingRequest.id)).where(*criteria))
        return result.scalar() or 0
