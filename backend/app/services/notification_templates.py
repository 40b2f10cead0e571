"""
Notification templates.

One function per event. Each returns a NotificationTemplate whose ``data``
carries what the mobile app needs to route the tap (``click_action``) plus
identifiers; all data values are strings so they survive push payloads.
"""

from datetime import date
from typing import Optional

from backend.app.models.notification import NotificationEvent
from backend.app.models.enums import UserRole
from backend.app.schemas.notification import NotificationTemplate


class ClickAction:
    OPEN_RECEIVED_REQUESTS = "OPEN_RECEIVED_REQUESTS"
    OPEN_SENT_REQUESTS = "OPEN_SENT_REQUESTS"
    OPEN_MY_CARS = "OPEN_MY_CARS"
    OPEN_DASHBOARD = "OPEN_DASHBOARD"


def _data(event: NotificationEvent, click_action: str, **extra) -> dict:
    data = {"type": event.value, "click_action": click_action}
    data.update({key: str(value) for key, value in extra.items() if value is not None})
    return data


def _with_reason(text: str, reason: Optional[str]) -> str:
    return f"{text}. Reason: {reason}" if reason else text


# Creation

def booking_request_created(driver_name: str, car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    """Driver requested a car: tell the operator."""
    event = NotificationEvent.BOOKING_REQUEST_CREATED
    return NotificationTemplate(
        event=event,
        title="New Booking Request",
        body=f"{driver_name} requested your {car_name}",
        data=_data(event, ClickAction.OPEN_RECEIVED_REQUESTS, request_id=request_id, car_id=car_id),
    )


def booking_invitation_created(operator_name: str, car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    """Operator invited a driver: tell the driver."""
    event = NotificationEvent.BOOKING_INVITATION_CREATED
    return NotificationTemplate(
        event=event,
        title="New Car Invitation",
        body=f"{operator_name} invited you for {car_name}",
        data=_data(event, ClickAction.OPEN_RECEIVED_REQUESTS, request_id=request_id, car_id=car_id),
    )


# Acceptance (contact details are shared both ways)

def booking_request_accepted(
    operator_name: str, operator_phone: str, car_name: str, request_id: int, car_id: int
) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_REQUEST_ACCEPTED
    return NotificationTemplate(
        event=event,
        title="Request Accepted! 🎉",
        body=f"{operator_name} accepted your request for {car_name}. Call them at {operator_phone}",
        data=_data(
            event, ClickAction.OPEN_SENT_REQUESTS,
            request_id=request_id, car_id=car_id, contact_phone=operator_phone,
        ),
    )


def booking_request_acceptance_confirmed(
    driver_name: str, driver_phone: str, car_name: str, request_id: int, car_id: int
) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_REQUEST_ACCEPTANCE_CONFIRMED
    return NotificationTemplate(
        event=event,
        title="Booking Confirmed",
        body=f"You accepted {driver_name}'s request for {car_name}. Call them at {driver_phone}",
        data=_data(
            event, ClickAction.OPEN_RECEIVED_REQUESTS,
            request_id=request_id, car_id=car_id, contact_phone=driver_phone,
        ),
    )


def booking_invitation_accepted(
    driver_name: str, driver_phone: str, car_name: str, request_id: int, car_id: int
) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_INVITATION_ACCEPTED
    return NotificationTemplate(
        event=event,
        title="Invitation Accepted! 🎉",
        body=f"{driver_name} accepted your invitation for {car_name}. Call them at {driver_phone}",
        data=_data(
            event, ClickAction.OPEN_SENT_REQUESTS,
            request_id=request_id, car_id=car_id, contact_phone=driver_phone,
        ),
    )


def booking_invitation_acceptance_confirmed(
    operator_name: str, operator_phone: str, car_name: str, request_id: int, car_id: int
) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_INVITATION_ACCEPTANCE_CONFIRMED
    return NotificationTemplate(
        event=event,
        title="Booking Confirmed",
        body=f"You accepted {operator_name}'s invitation for {car_name}. Call them at {operator_phone}",
        data=_data(
            event, ClickAction.OPEN_RECEIVED_REQUESTS,
            request_id=request_id, car_id=car_id, contact_phone=operator_phone,
        ),
    )


# Rejection

def booking_request_rejected(
    operator_name: str, car_name: str, request_id: int, car_id: int, reason: Optional[str] = None
) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_REQUEST_REJECTED
    return NotificationTemplate(
        event=event,
        title="Request Rejected",
        body=_with_reason(f"{operator_name} rejected your request for {car_name}", reason),
        data=_data(event, ClickAction.OPEN_SENT_REQUESTS, request_id=request_id, car_id=car_id, reason=reason),
    )


def booking_invitation_rejected(
    driver_name: str, car_name: str, request_id: int, car_id: int, reason: Optional[str] = None
) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_INVITATION_REJECTED
    return NotificationTemplate(
        event=event,
        title="Invitation Rejected",
        body=_with_reason(f"{driver_name} rejected your invitation for {car_name}", reason),
        data=_data(event, ClickAction.OPEN_SENT_REQUESTS, request_id=request_id, car_id=car_id, reason=reason),
    )


# Cancellation

def booking_request_cancelled(driver_name: str, car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_REQUEST_CANCELLED
    return NotificationTemplate(
        event=event,
        title="Request Cancelled",
        body=f"{driver_name} cancelled their request for {car_name}",
        data=_data(event, ClickAction.OPEN_RECEIVED_REQUESTS, request_id=request_id, car_id=car_id),
    )


def booking_invitation_cancelled(operator_name: str, car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_INVITATION_CANCELLED
    return NotificationTemplate(
        event=event,
        title="Invitation Cancelled",
        body=f"{operator_name} cancelled the invitation for {car_name}",
        data=_data(event, ClickAction.OPEN_RECEIVED_REQUESTS, request_id=request_id, car_id=car_id),
    )


# Expiry

def request_expired_car_unavailable(car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    """A pending request died because its car was deactivated or removed."""
    event = NotificationEvent.REQUEST_EXPIRED_CAR_UNAVAILABLE
    return NotificationTemplate(
        event=event,
        title="Request Expired",
        body=f"{car_name} is no longer available, so your pending request has expired",
        data=_data(event, ClickAction.OPEN_SENT_REQUESTS, request_id=request_id, car_id=car_id),
    )


def booking_request_expired(car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_REQUEST_EXPIRED
    return NotificationTemplate(
        event=event,
        title="Request Expired",
        body=f"Your request for {car_name} expired without a response",
        data=_data(event, ClickAction.OPEN_SENT_REQUESTS, request_id=request_id, car_id=car_id),
    )


def booking_invitation_expired(car_name: str, request_id: int, car_id: int) -> NotificationTemplate:
    event = NotificationEvent.BOOKING_INVITATION_EXPIRED
    return NotificationTemplate(
        event=event,
        title="Invitation Expired",
        body=f"Your invitation for {car_name} expired without a response",
        data=_data(event, ClickAction.OPEN_SENT_REQUESTS, request_id=request_id, car_id=car_id),
    )


# Cars and limits

def car_auto_deactivated(car_name: str, car_id: int, inactivity_days: int) -> NotificationTemplate:
    event = NotificationEvent.CAR_AUTO_DEACTIVATED
    return NotificationTemplate(
        event=event,
        title="Car Deactivated",
        body=(
            f"{car_name} was hidden from drivers after {inactivity_days} days without updates. "
            f"Edit the listing to make it available again"
        ),
        data=_data(event, ClickAction.OPEN_MY_CARS, car_id=car_id),
    )


def daily_limit_reached(limit: int, role: UserRole, day: Optional[date] = None) -> NotificationTemplate:
    event = NotificationEvent.DAILY_LIMIT_REACHED
    noun = "requests" if role == UserRole.DRIVER else "invitations"
    return NotificationTemplate(
        event=event,
        title="Daily Limit Reached",
        body=f"You've reached your daily limit of {limit} {noun}. Try again tomorrow.",
        data=_data(event, ClickAction.OPEN_DASHBOARD, limit=limit, day=day.isoformat() if day else None),
    )
