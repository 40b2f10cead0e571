"""
Daily Rate Limiter tests.
"""

import pytest
from datetime import timedelta

from backend.app.domain.booking.rate_limiter import DailyRateLimiter
from backend.app.models.booking_request import BookingRequest
from backend.app.models.booking_enums import BookingStatus, InitiatedBy
from backend.app.models.enums import UserRole
from backend.tests.factories import T0, create_car


async def _add_request(db, car, driver, initiated_by, created_at, status=BookingStatus.PENDING):
    request = BookingRequest(
        car_id=car.id,
        driver_id=driver.id,
        operator_id=car.operator_id,
        initiated_by=initiated_by,
        status=status,
        expires_at=created_at + timedelta(days=3),
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(request)
    await db.commit()
    return request


@pytest.mark.asyncio
async def test_counts_only_todays_initiations_in_own_direction(db_session, operator, driver, car, test_settings, clock):
    other_car = await create_car(db_session, operator, registration_number="MH12XY0001")
    third_car = await create_car(db_session, operator, registration_number="MH12XY0002")

    await _add_request(db_session, car, driver, InitiatedBy.DRIVER, T0)
    await _add_request(db_session, other_car, driver, InitiatedBy.DRIVER, T0, status=BookingStatus.CANCELLED)
    # Yesterday: not counted
    await _add_request(db_session, third_car, driver, InitiatedBy.DRIVER, T0 - timedelta(days=1))
    # Invitation to the driver: counts for the operator, not the driver
    await _add_request(db_session, third_car, driver, InitiatedBy.OPERATOR, T0)

    limiter = DailyRateLimiter(db_session, test_settings, clock)
    assert await limiter.count_initiated_today(driver.id, UserRole.DRIVER) == 2
    assert await limiter.count_initiated_today(operator.id, UserRole.OPERATOR) == 1


@pytest.mark.asyncio
async def test_check_limit_reports_remaining(db_session, operator, driver, car, test_settings, clock):
    await _add_request(db_session, car, driver, InitiatedBy.DRIVER, T0)

    status = await DailyRateLimiter(db_session, test_settings, clock).check_limit(driver.id, UserRole.DRIVER)

    assert status.allowed is True
    assert status.limit == 5
    assert status.used == 1
    assert status.remaining == 4
    assert status.resets_at == T0.replace(hour=0) + timedelta(days=1)


@pytest.mark.asyncio
async def test_limit_exhausted_then_resets_next_day(db_session, operator, driver, test_settings, clock):
    test_settings.driver_daily_request_limit = 2
    for i in range(2):
        c = await create_car(db_session, operator, registration_number=f"MH12LM000{i}")
        await _add_request(db_session, c, driver, InitiatedBy.DRIVER, T0)

    limiter = DailyRateLimiter(db_session, test_settings, clock)
    status = await limiter.check_limit(driver.id, UserRole.DRIVER)
    assert status.allowed is False
    assert status.remaining == 0

    clock.advance(days=1)
    status = await limiter.check_limit(driver.id, UserRole.DRIVER)
    assert status.allowed is True
    assert status.used == 0
