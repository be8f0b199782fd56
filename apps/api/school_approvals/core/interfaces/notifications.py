"""
Notification channel protocol.
Implementations: DatabaseNotificationChannel (in-app)
"""
from __future__ import annotations

from typing import Protocol, Any, Optional
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class NotificationType(str, Enum):
    """Notification severity/type."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationCategory(str, Enum):
    """Notification categories."""
    APPROVALS = "approvals"       # Role grants, guardian links
    PERMISSIONS = "permissions"   # Access permissions
    SYSTEM = "system"


@dataclass
class Notification:
    """
    Notification payload.

    Used across all channels - each channel renders appropriately.
    """
    type: NotificationType
    category: NotificationCategory
    title: str
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    action_url: Optional[str] = None


@dataclass
class NotificationResult:
    """Result of sending a notification."""
    success: bool
    channel: str
    notification_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BulkNotificationResult:
    """Result of sending bulk notifications."""
    total: int
    sent: int
    failed: int
    results: list[NotificationResult] = field(default_factory=list)


class NotificationChannel(Protocol):
    """
    Protocol for notification channels.

    Each channel implements delivery to a specific medium. Channels
    report failures in their results; they may also raise, which the
    dispatcher logs and swallows.
    """

    @property
    def channel_type(self) -> str:
        """Channel identifier (e.g., 'in_app', 'email')."""
        ...

    async def send(
        self,
        user_id: UUID,
        notification: Notification,
    ) -> NotificationResult:
        """Send notification to a single user."""
        ...

    async def send_bulk(
        self,
        user_ids: list[UUID],
        notification: Notification,
    ) -> BulkNotificationResult:
        """Send notification to multiple users."""
        ...
