"""
Database notification channel - stores notifications in the database for in-app display.
"""

from __future__ import annotations

from uuid import UUID
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, func, update
from sqlalchemy.exc import SQLAlchemyError

from school_approvals.core.interfaces.notifications import (
    Notification,
    NotificationResult,
    BulkNotificationResult,
)
from school_approvals.models.notification import Notification as NotificationModel
from school_approvals.utils.timezone import utc_now

logger = structlog.get_logger(__name__)


class DatabaseNotificationChannel:
    """
    Database notification channel for in-app notifications.

    Reads run on the request's session. Writes go through a separate
    session on the same engine, so a failed insert rolls back only the
    notification and never the objects the caller already committed.

    Usage:
        channel = DatabaseNotificationChannel(db)
        result = await channel.send_bulk(user_ids, notification)
    """

    channel_type = "in_app"

    def __init__(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ):
        """Initialize with the request session and an optional writer factory."""
        self.db = db
        self.session_factory = session_factory or async_sessionmaker(
            db.bind,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def send(
        self,
        user_id: UUID,
        notification: Notification,
    ) -> NotificationResult:
        """
        Store and commit one notification.

        Returns:
            NotificationResult with the notification ID
        """
        db_notification = NotificationModel(
            user_id=user_id,
            type=notification.type.value,
            category=notification.category.value,
            title=notification.title,
            message=notification.message,
            action_url=notification.action_url,
            data=notification.data,
        )

        async with self.session_factory() as session:
            try:
                session.add(db_notification)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.warning(
                    "In-app notification failed",
                    user_id=str(user_id),
                    title=notification.title,
                    error=str(e),
                )
                return NotificationResult(
                    success=False,
                    channel=self.channel_type,
                    error=str(e),
                )

        return NotificationResult(
            success=True,
            channel=self.channel_type,
            notification_id=str(db_notification.id),
        )

    async def send_bulk(
        self,
        user_ids: list[UUID],
        notification: Notification,
    ) -> BulkNotificationResult:
        """
        Store notification for multiple users, one commit per recipient.
        """
        results = []
        sent = 0
        failed = 0

        for user_id in user_ids:
            result = await self.send(user_id, notification)
            results.append(result)
            if result.success:
                sent += 1
            else:
                failed += 1

        return BulkNotificationResult(
            total=len(user_ids),
            sent=sent,
            failed=failed,
            results=results,
        )

    # --- Read side for the notifications API ---

    async def list_for_user(
        self,
        user_id: UUID,
        read: Optional[bool] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[NotificationModel]:
        """List notifications for a user, newest first."""
        query = (
            select(NotificationModel)
            .where(NotificationModel.user_id == user_id)
        )

        if read is not None:
            if read:
                query = query.where(NotificationModel.read_at.isnot(None))
            else:
                query = query.where(NotificationModel.read_at.is_(None))

        query = (
            query
            .order_by(NotificationModel.created_at.desc())
            .limit(limit)
            .offset(offset)
        )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_unread(self, user_id: UUID) -> int:
        """Count unread notifications for a user."""
        result = await self.db.execute(
            select(func.count())
            .select_from(NotificationModel)
            .where(NotificationModel.user_id == user_id)
            .where(NotificationModel.read_at.is_(None))
        )
        return result.scalar() or 0

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> bool:
        """Mark one of the user's notifications as read."""
        result = await self.db.execute(
            update(NotificationModel)
            .where(NotificationModel.id == notification_id)
            .where(NotificationModel.user_id == user_id)
            .where(NotificationModel.read_at.is_(None))
            .values(read_at=utc_now())
        )
        await self.db.commit()
        return result.rowcount > 0
