"""
Integration tests for the booking request API.

Tests role guards, error mapping and the full request/invitation flows over HTTP.
"""

import pytest
from datetime import datetime, timedelta

from backend.app.models.booking_request import BookingRequest
from backend.app.models.booking_enums import BookingStatus, InitiatedBy
from backend.app.models.enums import UserRole, KycStatus
from backend.tests.factories import create_user, create_car, auth_headers

# Note: Client and DB setup are in conftest.py


async def _send_request(client, driver, car, message=None):
    return await client.post(
        "/v1/booking-requests",
        json={"car_id": car.id, "message": message},
        headers=auth_headers(driver),
    )


# TEST 1: Create
@pytest.mark.asyncio
async def test_driver_sends_request(client, driver, operator, live_car, push_gateway):
    """Driver can request an active car; the operator is pushed."""
    response = await _send_request(client, driver, live_car, "Need it for a Goa trip")

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["initiated_by"] == "DRIVER"
    assert body["operator_id"] == operator.id
    assert body["message"] == "Need it for a Goa trip"
    assert body["decided_at"] is None

    assert [e.value for e in push_gateway.events_for("op-device")] == ["BOOKING_REQUEST_CREATED"]


@pytest.mark.asyncio
async def test_duplicate_request_conflicts(client, driver, live_car):
    """Second pending request for the same car is rejected with 409."""
    assert (await _send_request(client, driver, live_car)).status_code == 201

    response = await _send_request(client, driver, live_car)

    assert response.status_code == 409
    assert response.json()["error_code"] == "REQUEST_ALREADY_EXISTS"
    assert response.json()["kind"] == "CONFLICT"


@pytest.mark.asyncio
async def test_request_for_missing_car(client, driver):
    response = await client.post("/v1/booking-requests", json={"car_id": 777}, headers=auth_headers(driver))

    assert response.status_code == 404
    assert response.json()["kind"] == "NOT_FOUND"


# TEST 2: Guards
@pytest.mark.asyncio
async def test_requires_token(client, live_car):
    response = await client.post("/v1/booking-requests", json={"car_id": live_car.id})
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_rejects_garbage_token(client, live_car):
    response = await client.post(
        "/v1/booking-requests",
        json={"car_id": live_car.id},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_operator_cannot_use_driver_endpoint(client, operator, live_car):
    response = await client.post(
        "/v1/booking-requests", json={"car_id": live_car.id}, headers=auth_headers(operator)
    )
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_FORBIDDEN"


@pytest.mark.asyncio
async def test_kyc_pending_driver_is_blocked(client, driver, live_car):
    response = await client.post(
        "/v1/booking-requests",
        json={"car_id": live_car.id},
        headers=auth_headers(driver, kyc_status=KycStatus.PENDING),
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "KYC_NOT_APPROVED"
    assert response.json()["kind"] == "POLICY_VIOLATION"


@pytest.mark.asyncio
async def test_admin_cannot_list_requests(client, db_session):
    admin = await create_user(db_session, "+919800000090", UserRole.ADMIN)
    response = await client.get("/v1/booking-requests/sent", headers=auth_headers(admin))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invalid_body_is_422(client, driver):
    response = await client.post("/v1/booking-requests", json={"car_id": 0}, headers=auth_headers(driver))

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


# TEST 3: Decisions
@pytest.mark.asyncio
async def test_operator_accepts_request(client, driver, operator, live_car, push_gateway):
    request_id = (await _send_request(client, driver, live_car)).json()["id"]

    response = await client.put(
        f"/v1/booking-requests/{request_id}/status",
        json={"status": "ACCEPTED", "reject_reason": "ignored on accept"},
        headers=auth_headers(operator),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "ACCEPTED"
    assert response.json()["reject_reason"] is None
    assert response.json()["decided_at"] is not None

    accepted = [t for token, t in push_gateway.sent if token == "drv-device"][-1]
    assert accepted.data["contact_phone"] == operator.phone_number
    assert "Call them at +919800000001" in accepted.body


@pytest.mark.asyncio
async def test_driver_cannot_accept_own_request(client, driver, live_car):
    request_id = (await _send_request(client, driver, live_car)).json()["id"]

    response = await client.put(
        f"/v1/booking-requests/{request_id}/status",
        json={"status": "ACCEPTED"},
        headers=auth_headers(driver),
    )

    assert response.status_code == 403
    assert response.json()["error_code"] == "BOOKING_PERMISSION_DENIED"


@pytest.mark.asyncio
async def test_decision_body_only_accepts_accept_or_reject(client, driver, operator, live_car):
    request_id = (await _send_request(client, driver, live_car)).json()["id"]

    response = await client.put(
        f"/v1/booking-requests/{request_id}/status",
        json={"status": "CANCELLED"},
        headers=auth_headers(operator),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_second_decision_is_invalid_state(client, driver, operator, live_car):
    request_id = (await _send_request(client, driver, live_car)).json()["id"]
    url = f"/v1/booking-requests/{request_id}/status"

    first = await client.put(url, json={"status": "REJECTED", "reject_reason": "Out of town"}, headers=auth_headers(operator))
    assert first.status_code == 200
    assert first.json()["reject_reason"] == "Out of town"

    second = await client.put(url, json={"status": "ACCEPTED"}, headers=auth_headers(operator))
    assert second.status_code == 409
    assert second.json()["kind"] == "INVALID_STATE"
    assert second.json()["details"]["status"] == "REJECTED"


@pytest.mark.asyncio
async def test_overdue_request_answers_410(client, db_session, driver, operator, live_car):
    now = datetime.utcnow()
    stale = BookingRequest(
        car_id=live_car.id,
        driver_id=driver.id,
        operator_id=operator.id,
        initiated_by=InitiatedBy.DRIVER,
        status=BookingStatus.PENDING,
        expires_at=now - timedelta(hours=1),
        created_at=now - timedelta(days=3, hours=1),
        updated_at=now - timedelta(days=3, hours=1),
    )
    db_session.add(stale)
    await db_session.commit()

    response = await client.put(
        f"/v1/booking-requests/{stale.id}/status",
        json={"status": "ACCEPTED"},
        headers=auth_headers(operator),
    )
    assert response.status_code == 410
    assert response.json()["kind"] == "EXPIRED"

    fetched = await client.get(f"/v1/booking-requests/{stale.id}", headers=auth_headers(driver))
    assert fetched.json()["status"] == "EXPIRED"


# TEST 4: Invitations and cancel
@pytest.mark.asyncio
async def test_invite_cancel_and_reinvite(client, driver, operator, live_car, push_gateway):
    payload = {"car_id": live_car.id, "driver_id": driver.id, "message": "Monthly rental"}

    created = await client.post("/v1/booking-requests/invite", json=payload, headers=auth_headers(operator))
    assert created.status_code == 201
    assert created.json()["initiated_by"] == "OPERATOR"

    duplicate = await client.post("/v1/booking-requests/invite", json=payload, headers=auth_headers(operator))
    assert duplicate.status_code == 409

    cancelled = await client.delete(f"/v1/booking-requests/{created.json()['id']}", headers=auth_headers(operator))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"

    again = await client.post("/v1/booking-requests/invite", json=payload, headers=auth_headers(operator))
    assert again.status_code == 201

    assert [e.value for e in push_gateway.events_for("drv-device")] == [
        "BOOKING_INVITATION_CREATED",
        "BOOKING_INVITATION_CANCELLED",
        "BOOKING_INVITATION_CREATED",
    ]


@pytest.mark.asyncio
async def test_invited_driver_cannot_cancel(client, driver, operator, live_car):
    created = await client.post(
        "/v1/booking-requests/invite",
        json={"car_id": live_car.id, "driver_id": driver.id},
        headers=auth_headers(operator),
    )

    response = await client.delete(f"/v1/booking-requests/{created.json()['id']}", headers=auth_headers(driver))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_operator_cannot_invite_self(client, db_session, operator):
    car = await create_car(db_session, operator, registration_number="MH12SELF01", last_active_at=datetime.utcnow())
    response = await client.post(
        "/v1/booking-requests/invite",
        json={"car_id": car.id, "driver_id": operator.id},
        headers=auth_headers(operator),
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "CANNOT_INVITE_SELF"


# TEST 5: Limits and listings
@pytest.mark.asyncio
async def test_daily_limit_over_http(client, db_session, driver, operator, push_gateway):
    now = datetime.utcnow()
    cars = [
        await create_car(db_session, operator, registration_number=f"MH12DL00{i:02d}", last_active_at=now)
        for i in range(6)
    ]
    for c in cars[:5]:
        assert (await _send_request(client, driver, c)).status_code == 201

    response = await _send_request(client, driver, cars[5])

    assert response.status_code == 429
    assert response.json()["error_code"] == "DAILY_LIMIT_REACHED"
    assert response.json()["details"]["limit"] == 5
    assert push_gateway.events_for("drv-device")[-1].value == "DAILY_LIMIT_REACHED"

    limits = await client.get("/v1/booking-requests/daily-limits", headers=auth_headers(driver))
    assert limits.json()["used"] == 5
    assert limits.json()["remaining"] == 0
    assert limits.json()["allowed"] is False


@pytest.mark.asyncio
async def test_sent_received_and_counts(client, driver, operator, live_car):
    await _send_request(client, driver, live_car)

    sent = await client.get("/v1/booking-requests/sent", headers=auth_headers(driver))
    assert sent.status_code == 200
    assert set(sent.json()) == {"requests", "total", "page", "page_size"}
    assert sent.json()["total"] == 1
    assert sent.json()["page"] == 1

    received = await client.get(
        "/v1/booking-requests/received", params={"status": "PENDING"}, headers=auth_headers(operator)
    )
    assert received.json()["total"] == 1
    assert received.json()["requests"][0]["driver_id"] == driver.id

    none_accepted = await client.get(
        "/v1/booking-requests/received", params={"status": "ACCEPTED"}, headers=auth_headers(operator)
    )
    assert none_accepted.json()["total"] == 0

    counts = await client.get("/v1/booking-requests/counts", headers=auth_headers(operator))
    assert counts.json() == {"pending_sent": 0, "pending_received": 1, "total_sent": 0, "total_received": 1}


@pytest.mark.asyncio
async def test_outsider_cannot_view_request(client, driver, other_driver, live_car):
    request_id = (await _send_request(client, driver, live_car)).json()["id"]

    response = await client.get(f"/v1/booking-requests/{request_id}", headers=auth_headers(other_driver))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_correlation_id_is_echoed(client, driver):
    response = await client.get(
        "/v1/booking-requests/sent", headers={**auth_headers(driver), "X-Correlation-ID": "abc-123"}
    )
    assert response.headers["X-Correlation-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers
