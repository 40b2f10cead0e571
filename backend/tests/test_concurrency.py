"""
Concurrency Tests.

Validates that races between decisions, cancels and creates resolve to
exactly one winner.
"""

import pytest
from datetime import timedelta
from sqlalchemy.exc import IntegrityError

from backend.app.core.exceptions import InvalidStateError, ConflictError
from backend.app.domain.booking.booking_service import BookingRequestEngine
from backend.app.models.booking_request import BookingRequest
from backend.app.models.booking_enums import BookingStatus, InitiatedBy
from backend.tests.factories import T0, actor_for


def _pending_row(car, driver, initiated_by=InitiatedBy.DRIVER, status=BookingStatus.PENDING):
    return BookingRequest(
        car_id=car.id,
        driver_id=driver.id,
        operator_id=car.operator_id,
        initiated_by=initiated_by,
        status=status,
        expires_at=T0 + timedelta(days=3),
        created_at=T0,
        updated_at=T0,
    )


@pytest.mark.asyncio
async def test_accept_and_cancel_race_has_one_winner(
    booking_engine, session_factory, dispatcher, test_settings, clock, operator, driver, car
):
    """The driver's cancel loads the request before the operator's accept commits."""
    request = await booking_engine.create_request(actor_for(driver), car.id)

    async with session_factory() as other_session:
        racer = BookingRequestEngine(other_session, dispatcher, config=test_settings, clock=clock)
        stale_view = await other_session.get(BookingRequest, request.id)
        assert stale_view.status == BookingStatus.PENDING

        await booking_engine.update_status(actor_for(operator), request.id, BookingStatus.ACCEPTED)

        with pytest.raises(InvalidStateError) as exc:
            await racer.cancel(actor_for(driver), request.id)

        assert exc.value.error_code == "REQUEST_ALREADY_PROCESSED"
        assert stale_view.status == BookingStatus.ACCEPTED


@pytest.mark.asyncio
async def test_double_accept_has_one_winner(
    booking_engine, session_factory, dispatcher, test_settings, clock, operator, driver, car
):
    request = await booking_engine.create_request(actor_for(driver), car.id)

    async with session_factory() as other_session:
        racer = BookingRequestEngine(other_session, dispatcher, config=test_settings, clock=clock)
        await other_session.get(BookingRequest, request.id)

        await booking_engine.update_status(
            actor_for(operator), request.id, BookingStatus.REJECTED, reject_reason="Already rented"
        )
        with pytest.raises(InvalidStateError):
            await racer.update_status(actor_for(operator), request.id, BookingStatus.ACCEPTED)

    await booking_engine.db.refresh(request)
    assert request.status == BookingStatus.REJECTED
    assert request.reject_reason == "Already rented"


@pytest.mark.asyncio
async def test_database_rejects_second_pending_row(db_session, driver, car):
    db_session.add(_pending_row(car, driver))
    await db_session.commit()

    db_session.add(_pending_row(car, driver))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_pending_index_ignores_terminal_rows(db_session, driver, car):
    db_session.add_all([
        _pending_row(car, driver, status=BookingStatus.CANCELLED),
        _pending_row(car, driver, status=BookingStatus.EXPIRED),
        _pending_row(car, driver, status=BookingStatus.PENDING),
        _pending_row(car, driver, initiated_by=InitiatedBy.OPERATOR),
    ])
    await db_session.commit()


@pytest.mark.asyncio
async def test_create_race_maps_to_conflict(booking_engine, db_session, driver, car, mocker):
    """Both creators passed the pre-check; the unique index decides."""
    car_id = car.id
    db_session.add(_pending_row(car, driver))
    await db_session.commit()

    mocker.patch.object(booking_engine, "_ensure_no_pending", new=mocker.AsyncMock())

    with pytest.raises(ConflictError) as exc:
        await booking_engine.create_request(actor_for(driver), car_id)
    assert exc.value.error_code == "REQUEST_ALREADY_EXISTS"
