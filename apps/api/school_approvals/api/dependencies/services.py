"""
Service dependencies.
"""

from datetime import datetime
from typing import Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from school_approvals.implementations.notifications.database import DatabaseNotificationChannel
from school_approvals.services.notifications import NotificationDispatcher
from school_approvals.services.workflow import WorkflowService
from school_approvals.utils.timezone import utc_now


def get_clock() -> Callable[[], datetime]:
    """Time source for workflow decisions. Overridden in tests."""
    return utc_now


async def get_database_channel(db: AsyncSession = Depends(get_db)) -> DatabaseNotificationChannel:
    """Get in-app notification channel."""
    return DatabaseNotificationChannel(db)


async def get_notification_dispatcher(
    channel: DatabaseNotificationChannel = Depends(get_database_channel),
) -> NotificationDispatcher:
    """Get dispatcher over the configured channels."""
    return NotificationDispatcher([channel])


async def get_workflow_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> WorkflowService:
    """Get workflow service instance."""
    return WorkflowService(db, dispatcher, clock=clock)
