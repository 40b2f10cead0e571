"""
Car API Endpoints.

Operators manage their listings; drivers browse bookable cars.
"""

from decimal import Decimal
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from backend.app.db.session import get_db
from backend.app.core.guards import require_participant, require_operator
from backend.app.models.car_enums import CarCategory, Transmission, FuelType, RateType
from backend.app.schemas.auth import CurrentActor
from backend.app.schemas.car import CarCreate, CarUpdate, CarFilters, CarResponse, CarListResponse
from backend.app.services.car_service import CarService
from backend.app.services.notification_service import NotificationDispatcher, get_notification_dispatcher

router = APIRouter(prefix="/cars", tags=["Cars"])


def get_car_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> CarService:
    return CarService(db, notifier)


@router.get("", response_model=CarListResponse)
async def list_cars(
    search: Optional[str] = Query(None, max_length=100),
    city: Optional[str] = Query(None),
    area: Optional[str] = Query(None),
    category: Optional[CarCategory] = Query(None),
    fuel_type: Optional[FuelType] = Query(None),
    transmission: Optional[Transmission] = Query(None),
    rate_type: Optional[RateType] = Query(None),
    min_price: Optional[Decimal] = Query(None, ge=0),
    max_price: Optional[Decimal] = Query(None, ge=0),
    is_active: Optional[bool] = Query(None, description="Operators only"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: CurrentActor = Depends(require_participant),
    service: CarService = Depends(get_car_service),
):
    """
    Drivers: bookable cars from all operators (stale cars are switched off first).
    Operators: your own cars.
    """
    filters = CarFilters(
        search=search, city=city, area=area, category=category, fuel_type=fuel_type,
        transmission=transmission, rate_type=rate_type, min_price=min_price,
        max_price=max_price, is_active=is_active,
    )
    cars, total = await service.list_cars(actor, filters, page, page_size)
    return CarListResponse(
        cars=[CarResponse.model_validate(c) for c in cars],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{car_id}", response_model=CarResponse)
async def get_car(
    car_id: int = Path(..., description="Car ID"),
    actor: CurrentActor = Depends(require_participant),
    service: CarService = Depends(get_car_service),
):
    return await service.get_car(actor, car_id)


@router.post("", response_model=CarResponse, status_code=status.HTTP_201_CREATED)
async def create_car(
    data: CarCreate,
    actor: CurrentActor = Depends(require_operator),
    service: CarService = Depends(get_car_service),
):
    """List a new car (Operator only). Registration numbers are stored upper-case without spaces."""
    return await service.create_car(actor, data)


@router.patch("/{car_id}", response_model=CarResponse)
async def update_car(
    data: CarUpdate,
    car_id: int = Path(..., description="Car ID"),
    actor: CurrentActor = Depends(require_operator),
    service: CarService = Depends(get_car_service),
):
    """Edit a car you own. Turning it off expires its pending requests."""
    return await service.update_car(actor, car_id, data)


@router.delete("/{car_id}")
async def delete_car(
    car_id: int = Path(..., description="Car ID"),
    actor: CurrentActor = Depends(require_operator),
    service: CarService = Depends(get_car_service),
):
    expired = await service.delete_car(actor, car_id)
    return {"status": "success", "expired_requests": expired}
