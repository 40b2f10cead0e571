"""
Car Availability Gate.

Single authority on whether a car may take part in a booking action, and the
only code path that auto-deactivates a stale car. Expiring the car's pending
requests is delegated to a RequestExpirer (the booking engine) so this module
does not depend on the engine.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings, settings as default_settings
from backend.app.models.car import Car
from backend.app.services import notification_templates as templates
from backend.app.domain.booking.expiry import utcnow, is_car_inactive, inactivity_threshold

logger = logging.getLogger(__name__)


class RequestExpirer(Protocol):
    async def expire_requests_for_car(self, car_id: int, car_name: str) -> int:
        ...


class CarAvailabilityGate:
    """
    Bookability checks and the lazy deactivation side effect.

    Usage:
        gate = CarAvailabilityGate(db, notifier, expirer=engine)
        car = await gate.ensure_active_or_deactivate(car)
        if not gate.is_bookable(car):
            raise car_not_available(car.id)
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier,
        expirer: RequestExpirer,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.notifier = notifier
        self.expirer = expirer
        self.config = config
        self.clock = clock

    def is_bookable(self, car: Car, now: Optional[datetime] = None) -> bool:
        return bool(car.is_active) and not is_car_inactive(
            car, now or self.clock(), self.config.car_inactivity_days
        )

    def touch(self, car: Car) -> Car:
        """Record owner activity. Caller commits."""
        car.last_active_at = self.clock()
        return car

    async def ensure_active_or_deactivate(self, car: Car) -> Car:
        """
        Deactivate the car if it has gone stale.

        Args:
            car: Loaded car instance (mutated in place)

        Returns:
            The same car, with is_active cleared if it was stale
        """
        if is_car_inactive(car, self.clock(), self.config.car_inactivity_days):
            await self._deactivate(car)
        return car

    async def deactivate_stale_cars(self) -> int:
        """Deactivate every stale active car. Returns how many were switched off."""
        threshold = inactivity_threshold(self.clock(), self.config.car_inactivity_days)
        result = await self.db.execute(
            select(Car).where(Car.is_active == True, Car.last_active_at < threshold).order_by(Car.id)
        )
        stale_cars: List[Car] = list(result.scalars().all())

        deactivated = 0
        for car in stale_cars:
            if await self._deactivate(car):
                deactivated += 1
        return deactivated

    async def _deactivate(self, car: Car) -> bool:
        # Conditional update: a concurrent reader may have deactivated it first
        result = await self.db.execute(
            update(Car)
            .where(Car.id == car.id, Car.is_active == True)
            .values(is_active=False, updated_at=self.clock())
        )
        car.is_active = False
        await self.db.commit()

        if result.rowcount == 0:
            return False

        logger.info(
            "Car auto-deactivated after inactivity",
            extra={"car_id": car.id, "operator_id": car.operator_id},
        )
        await self.notifier.dispatch(
            car.operator_id,
            templates.car_auto_deactivated(car.car_name, car.id, self.config.car_inactivity_days),
        )
        await self.expirer.expire_requests_for_car(car.id, car.car_name)
        return True
