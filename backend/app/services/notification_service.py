"""
Notification Service.

NotificationService stores and manages the in-app notification history.
NotificationDispatcher is the facade the booking engine talks to: it records
each notification and hands it to the push gateway without ever letting a
delivery problem reach the caller.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, List, Set, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update, delete, func

from backend.app.core.reliability import CircuitBreaker, CircuitOpenError, build_push_circuit_breaker
from backend.app.db.session import get_session_factory
from backend.app.models.notification import Notification
from backend.app.models.user import User
from backend.app.schemas.notification import NotificationTemplate
from backend.app.services.push_gateway import PushGateway, build_push_gateway

logger = logging.getLogger(__name__)


class NotificationService:

    @staticmethod
    async def create_notification(db: AsyncSession, user_id: int, template: NotificationTemplate) -> Notification:
        """Create a single notification."""
        notif = Notification(
            user_id=user_id,
            event=template.event.value,
            title=template.title,
            message=template.body,
            metadata_payload=template.data,
            created_at=datetime.utcnow(),
        )
        db.add(notif)
        await db.flush()  # Caller commits
        return notif

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: int,
        unread_only: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Notification], int]:
        criteria = [Notification.user_id == user_id]
        if unread_only:
            criteria.append(Notification.is_read == False)

        total_result = await db.execute(select(func.count(Notification.id)).where(*criteria))
        total = total_result.scalar() or 0

        result = await db.execute(
            select(Notification)
            .where(*criteria)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def unread_count(db: AsyncSession, user_id: int) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read == False
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def mark_read(db: AsyncSession, notification_id: int, user_id: int) -> bool:
        """Mark a notification as read."""
        stmt = update(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).values(
            is_read=True,
            read_at=datetime.utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: int) -> int:
        """Mark all notifications for user as read."""
        stmt = update(Notification).where(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).values(
            is_read=True,
            read_at=datetime.utcnow()
        )
        result = await db.execute(stmt)
        return result.rowcount

    @staticmethod
    async def purge_older_than(db: AsyncSession, cutoff: datetime) -> int:
        """Delete notification history created before ``cutoff``. Caller commits."""
        result = await db.execute(delete(Notification).where(Notification.created_at < cutoff))
        return result.rowcount


class NotificationDispatcher:
    """
    Fire-and-forget notification facade.

    In background mode each dispatch is scheduled as an asyncio task and the
    caller returns immediately; ``drain()`` waits for whatever is still in
    flight (used at shutdown). Inline mode awaits delivery, which keeps tests
    deterministic. Either way, failures are logged and never raised.

    Each delivery uses its own session, so it cannot interfere with the
    transaction of the operation that triggered it.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        push_gateway: Optional[PushGateway] = None,
        breaker: Optional[CircuitBreaker] = None,
        background: bool = True,
    ):
        self.session_factory = session_factory
        self.push_gateway = push_gateway or build_push_gateway()
        self.breaker = breaker or build_push_circuit_breaker()
        self.background = background
        self._pending: Set[asyncio.Task] = set()

    async def dispatch(self, user_id: int, template: NotificationTemplate) -> None:
        if not self.background:
            await self._deliver(user_id, template)
            return

        task = asyncio.create_task(self._deliver(user_id, template))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for all scheduled deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver(self, user_id: int, template: NotificationTemplate) -> None:
        log_context = {"user_id": user_id, "event": template.event.value}
        try:
            async with self.session_factory() as db:
                notification = await NotificationService.create_notification(db, user_id, template)
                user = await db.get(User, user_id)
                await db.commit()

                if user is None or not user.push_token or not user.is_active:
                    return

                try:
                    await self.breaker.call(self.push_gateway.send, user.push_token, template)
                except CircuitOpenError:
                    logger.warning("Push skipped, circuit open", extra=log_context)
                    return

                notification.push_sent = True
                await db.commit()
        except Exception:
            logger.exception("Notification dispatch failed", extra=log_context)


_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency: process-wide background dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(get_session_factory())
    return _dispatcher
