"""
Notification API Endpoints.

In-app notification history for the current user.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_actor
from backend.app.schemas.auth import CurrentActor
from backend.app.schemas.notification import NotificationResponse, NotificationListResponse, UnreadCountResponse
from backend.app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    actor: CurrentActor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """List current user's notifications, newest first."""
    notifications, total = await NotificationService.list_for_user(
        db, actor.user_id, unread_only=unread_only, page=page, page_size=page_size
    )
    unread = await NotificationService.unread_count(db, actor.user_id)
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        total=total,
        unread_count=unread,
        page=page,
        page_size=page_size,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    actor: CurrentActor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return UnreadCountResponse(unread_count=await NotificationService.unread_count(db, actor.user_id))


@router.patch("/read-all")
async def mark_all_notifications_read(
    actor: CurrentActor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Mark all notifications as read."""
    count = await NotificationService.mark_all_read(db, actor.user_id)
    await db.commit()
    return {"status": "success", "count": count}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int = Path(...),
    actor: CurrentActor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    """Mark a specific notification as read."""
    success = await NotificationService.mark_read(db, notification_id, actor.user_id)
    if not success:
        raise HTTPException(status_code=404, detail="Notification not found")

    await db.commit()
    return {"status": "success"}
