"""
Notification API routes.

Read side of the in-app channel the workflow writes to:
- List notifications (GET /notifications)
- Unread count (GET /notifications/unread-count) - for badges
- Mark as read (POST /notifications/{id}/read)
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from school_approvals.api.dependencies.auth import CurrentUser
from school_approvals.api.dependencies.services import get_database_channel
from school_approvals.implementations.notifications.database import DatabaseNotificationChannel
from school_approvals.schemas.notification import NotificationResponse, UnreadCountResponse

router = APIRouter()

Channel = Annotated[DatabaseNotificationChannel, Depends(get_database_channel)]


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUser,
    channel: Channel,
    read: Optional[bool] = Query(None, description="Filter by read status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the caller's notifications, newest first."""
    return await channel.list_for_user(
        user_id=current_user.id,
        read=read,
        limit=limit,
        offset=offset,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(current_user: CurrentUser, channel: Channel):
    """Count of unread notifications."""
    return UnreadCountResponse(count=await channel.count_unread(current_user.id))


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(notification_id: UUID, current_user: CurrentUser, channel: Channel):
    """Mark one of the caller's notifications as read."""
    if not await channel.mark_read(notification_id, current_user.id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found or already read",
        )
