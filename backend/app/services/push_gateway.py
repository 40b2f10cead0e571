"""
Push delivery gateways.

The marketplace hands rendered notifications to an external push provider.
WebhookPushGateway POSTs them to a relay over HTTP; LoggingPushGateway is the
default when no relay is configured and only records the attempt.
"""

import logging
from typing import Optional

import httpx

from backend.app.core.config import settings
from backend.app.schemas.notification import NotificationTemplate

logger = logging.getLogger(__name__)


class PushDeliveryError(Exception):
    pass


class PushGateway:
    """Interface: deliver one notification to one device token."""

    async def send(self, push_token: str, template: NotificationTemplate) -> None:
        raise NotImplementedError


class LoggingPushGateway(PushGateway):
    async def send(self, push_token: str, template: NotificationTemplate) -> None:
        logger.info("Push (log only)", extra={"event": template.event.value, "title": template.title})


class WebhookPushGateway(PushGateway):
    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def send(self, push_token: str, template: NotificationTemplate) -> None:
        payload = {
            "token": push_token,
            "notification": {"title": template.title, "body": template.body},
            "data": template.data,
        }
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PushDeliveryError(f"Push relay call failed: {e}") from e


def build_push_gateway() -> PushGateway:
    if settings.push_webhook_url:
        return WebhookPushGateway(settings.push_webhook_url, timeout=settings.push_timeout_seconds)
    return LoggingPushGateway()
