"""
Car management service.

Operators create, edit and remove listings; drivers browse bookable cars.
Availability rules come from the CarAvailabilityGate and every cascade into
booking requests goes through the BookingRequestEngine.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import car_not_found, car_permission_denied, car_already_registered
from backend.app.domain.booking.booking_service import BookingRequestEngine
from backend.app.domain.booking.expiry import inactivity_threshold
from backend.app.models.car import Car
from backend.app.models.enums import UserRole
from backend.app.schemas.auth import CurrentActor
from backend.app.schemas.car import CarCreate, CarUpdate, CarFilters

logger = logging.getLogger(__name__)


class CarService:
    def __init__(self, db: AsyncSession, notifier, engine: Optional[BookingRequestEngine] = None):
        self.db = db
        self.engine = engine or BookingRequestEngine(db, notifier)
        self.gate = self.engine.gate

    async def _registration_taken(self, registration_number: str) -> bool:
        result = await self.db.execute(
            select(Car.id).where(Car.registration_number == registration_number)
        )
        return result.scalar_one_or_none() is not None

    async def _load_owned(self, actor: CurrentActor, car_id: int) -> Car:
        car = await self.db.get(Car, car_id)
        if car is None:
            raise car_not_found(car_id)
        if car.operator_id != actor.user_id:
            raise car_permission_denied()
        return car

    async def create_car(self, actor: CurrentActor, data: CarCreate) -> Car:
        """List a new car for the operator. The registration number arrives normalized."""
        if await self._registration_taken(data.registration_number):
            raise car_already_registered()

        car = Car(operator_id=actor.user_id, is_active=True, **data.model_dump())
        self.gate.touch(car)
        self.db.add(car)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if await self._registration_taken(data.registration_number):
                raise car_already_registered()
            raise
        await self.db.refresh(car)

        logger.info("Car listed", extra={"car_id": car.id, "operator_id": actor.user_id})
        return car

    async def update_car(self, actor: CurrentActor, car_id: int, data: CarUpdate) -> Car:
        """
        Apply a partial update and record owner activity.

        Switching an active car off expires its pending requests; switching
        it back on (or any other edit) refreshes last_active_at.
        """
        car = await self._load_owned(actor, car_id)
        was_active = car.is_active

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(car, field, value)
        self.gate.touch(car)

        await self.db.commit()
        await self.db.refresh(car)

        if was_active and not car.is_active:
            expired = await self.engine.expire_requests_for_car(car.id, car.car_name)
            logger.info("Car deactivated by operator", extra={"car_id": car.id, "expired_requests": expired})
        return car

    async def delete_car(self, actor: CurrentActor, car_id: int) -> int:
        """
        Remove a listing. Pending requests are expired (and their initiators
        told) before the row goes; request rows are dropped with it.

        Returns:
            Number of pending requests that were expired
        """
        car = await self._load_owned(actor, car_id)
        expired = await self.engine.expire_requests_for_car(car.id, car.car_name)

        await self.db.delete(car)
        await self.db.commit()

        logger.info("Car deleted", extra={"car_id": car_id, "expired_requests": expired})
        return expired

    async def get_car(self, actor: CurrentActor, car_id: int) -> Car:
        """
        Drivers only see bookable cars (a stale car is deactivated on access
        and then reported as missing). Operators only see their own.
        """
        car = await self.db.get(Car, car_id)
        if car is None:
            raise car_not_found(car_id)

        if actor.role == UserRole.DRIVER:
            await self.gate.ensure_active_or_deactivate(car)
            if not car.is_active:
                raise car_not_found(car_id)
        elif actor.role == UserRole.OPERATOR and car.operator_id != actor.user_id:
            raise car_permission_denied()
        return car

    async def list_cars(
        self,
        actor: CurrentActor,
        filters: Optional[CarFilters] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Car], int]:
        filters = filters or CarFilters()
        criteria = []

        if actor.role == UserRole.DRIVER:
            await self.gate.deactivate_stale_cars()
            criteria.append(Car.is_active == True)
            threshold = inactivity_threshold(self.engine.clock(), self.engine.config.car_inactivity_days)
            criteria.append(Car.last_active_at >= threshold)
        else:
            if actor.role == UserRole.OPERATOR:
                criteria.append(Car.operator_id == actor.user_id)
            if filters.is_active is not None:
                criteria.append(Car.is_active == filters.is_active)

        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            criteria.append(or_(Car.car_name.ilike(pattern), Car.registration_number.ilike(pattern)))
        if filters.city:
            criteria.append(func.lower(Car.city) == filters.city.strip().lower())
        if filters.area:
            criteria.append(func.lower(Car.area) == filters.area.strip().lower())
        if filters.category:
            criteria.append(Car.category == filters.category)
        if filters.fuel_type:
            criteria.append(Car.fuel_type == filters.fuel_type)
        if filters.transmission:
            criteria.append(Car.transmission == filters.transmission)
        if filters.rate_type:
            criteria.append(Car.rate_type == filters.rate_type)
        if filters.min_price is not None:
            criteria.append(Car.rate_amount >= filters.min_price)
        if filters.max_price is not None:
            criteria.append(Car.rate_amount <= filters.max_price)

        total_result = await self.db.execute(select(func.count(Car.id)).where(*criteria))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(Car)
            .where(*criteria)
            .order_by(Car.created_at.desc(), Car.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
