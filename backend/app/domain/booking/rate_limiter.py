"""
Daily Rate Limiter.

Caps how many booking requests (drivers) or invitations (operators) an actor
may initiate per UTC calendar day. The count is derived from booking_requests
rows; there is no separate counter to drift out of sync.
"""

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import Settings, settings as default_settings
from backend.app.models.booking_request import BookingRequest
from backend.app.models.booking_enums import InitiatedBy
from backend.app.models.enums import UserRole
from backend.app.schemas.booking_request import RateLimitStatus
from backend.app.domain.booking.expiry import utcnow, day_window


class DailyRateLimiter:
    """Per-role daily initiation cap."""

    def __init__(
        self,
        db: AsyncSession,
        config: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.config = config
        self.clock = clock

    def limit_for(self, role: UserRole) -> int:
        if role == UserRole.DRIVER:
            return self.config.driver_daily_request_limit
        if role == UserRole.OPERATOR:
            return self.config.operator_daily_invitation_limit
        return 0

    async def count_initiated_today(self, actor_id: int, role: UserRole, now: Optional[datetime] = None) -> int:
        """
        Count artifacts the actor initiated in the current UTC day.

        Every status counts (a cancelled request still used up a slot).
        """
        start, end = day_window(now or self.clock())

        if role == UserRole.DRIVER:
            party_filter = BookingRequest.driver_id == actor_id
            initiated_by = InitiatedBy.DRIVER
        elif role == UserRole.OPERATOR:
            party_filter = BookingRequest.operator_id == actor_id
            initiated_by = InitiatedBy.OPERATOR
        else:
            return 0

        result = await self.db.execute(
            select(func.count(BookingRequest.id)).where(
                party_filter,
                BookingRequest.initiated_by == initiated_by,
                BookingRequest.created_at >= start,
                BookingRequest.created_at < end,
            )
        )
        return result.scalar() or 0

    async def check_limit(self, actor_id: int, role: UserRole) -> RateLimitStatus:
        now = self.clock()
        limit = self.limit_for(role)
        used = await self.count_initiated_today(actor_id, role, now)
        _, resets_at = day_window(now)

        return RateLimitStatus(
            allowed=used < limit,
            limit=limit,
            used=used,
            remaining=max(limit - used, 0),
            resets_at=resets_at,
        )
