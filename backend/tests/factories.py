"""
Test data builders shared by the suite.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from backend.app.core.jwt import create_identity_token
from backend.app.models.user import User
from backend.app.models.car import Car
from backend.app.models.car_enums import CarCategory, Transmission, FuelType, RateType
from backend.app.models.enums import KycStatus
from backend.app.schemas.auth import CurrentActor
from backend.app.services.push_gateway import PushGateway

T0 = datetime(2026, 3, 10, 12, 0, 0)


class RecordingPushGateway(PushGateway):
    """Collects pushes instead of sending them."""

    def __init__(self):
        self.sent = []

    async def send(self, push_token, template):
        self.sent.append((push_token, template))

    def events_for(self, push_token):
        return [template.event for token, template in self.sent if token == push_token]


class FakeClock:
    """Settable naive-UTC clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


async def create_user(db, phone, role, kyc_status=KycStatus.APPROVED, name=None, push_token=None, agency_name=None):
    user = User(
        phone_number=phone,
        full_name=name or f"User {phone[-4:]}",
        agency_name=agency_name,
        role=role,
        kyc_status=kyc_status,
        push_token=push_token,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_car(db, operator, registration_number="MH12AB1234", last_active_at=T0, is_active=True, **overrides):
    fields = dict(
        operator_id=operator.id,
        registration_number=registration_number,
        car_name="Swift Dzire",
        city="Pune",
        area="Baner",
        category=CarCategory.TAXI,
        transmission=Transmission.MANUAL,
        fuel_type=FuelType.CNG,
        rate_type=RateType.TWENTY_FOUR_HOURS,
        rate_amount=Decimal("1500.00"),
        is_active=is_active,
        last_active_at=last_active_at,
    )
    fields.update(overrides)
    car = Car(**fields)
    db.add(car)
    await db.commit()
    await db.refresh(car)
    return car


def actor_for(user, kyc_status=None) -> CurrentActor:
    return CurrentActor(
        user_id=user.id, role=user.role, kyc_status=kyc_status or user.kyc_status, sub=user.phone_number
    )


def auth_headers(user, kyc_status=None) -> dict:
    token = create_identity_token(
        user.id, user.role, kyc_status or user.kyc_status, phone_number=user.phone_number
    )
    return {"Authorization": f"Bearer {token}"}
