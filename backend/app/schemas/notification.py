"""
Notification Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, Dict, Any, List
from backend.app.models.notification import NotificationEvent


class NotificationTemplate(BaseModel):
    """Rendered notification, ready for in-app storage and push delivery."""
    event: NotificationEvent
    title: str
    body: str
    data: Dict[str, Any] = Field(default_factory=dict)


class NotificationResponse(BaseModel):
    id: int
    event: str
    title: str
    message: str
    metadata_payload: Optional[Dict[str, Any]]
    is_read: bool
    push_sent: bool
    created_at: datetime
    read_at: Optional[datetime]

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    total: int
    unread_count: int
    page: int
    page_size: int


class UnreadCountResponse(BaseModel):
    unread_count: int
