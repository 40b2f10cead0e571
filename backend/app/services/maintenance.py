"""
Periodic maintenance.

Lazy checks on read paths keep anything that is actually served correct; this
loop catches everything nobody looked at, so initiators and operators still
hear about expiries on time. Every step is idempotent.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from backend.app.core.config import Settings, settings as default_settings
from backend.app.domain.booking.booking_service import BookingRequestEngine
from backend.app.domain.booking.expiry import utcnow
from backend.app.services.notification_service import NotificationService, NotificationDispatcher

logger = logging.getLogger(__name__)


async def run_maintenance_cycle(
    session_factory: async_sessionmaker,
    notifier: NotificationDispatcher,
    config: Settings = default_settings,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    One pass: expire overdue requests, deactivate stale cars, purge old
    notification history.

    Returns:
        Counts per step
    """
    clock = (lambda: now) if now is not None else utcnow

    async with session_factory() as db:
        engine = BookingRequestEngine(db, notifier, config=config, clock=clock)
        expired_requests = await engine.sweep_expired_requests()
        deactivated_cars = await engine.gate.deactivate_stale_cars()

        cutoff = clock() - timedelta(days=config.notification_retention_days)
        purged_notifications = await NotificationService.purge_older_than(db, cutoff)
        await db.commit()

    stats = {
        "expired_requests": expired_requests,
        "deactivated_cars": deactivated_cars,
        "purged_notifications": purged_notifications,
    }
    logger.info("Maintenance cycle finished", extra=stats)
    return stats


async def maintenance_loop(
    session_factory: async_sessionmaker,
    notifier: NotificationDispatcher,
    interval_seconds: int,
    config: Settings = default_settings,
):
    """Run the cycle forever; a failed cycle is logged and retried next interval."""
    logger.info("Maintenance loop started", extra={"interval_seconds": interval_seconds})
    while True:
        try:
            await run_maintenance_cycle(session_factory, notifier, config)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Maintenance cycle failed")
        await asyncio.sleep(interval_seconds)
