"""
Core interfaces (protocols) for extensibility.
Backends implement these protocols to be swappable.
"""

from .notifications import (
    NotificationChannel,
    Notification,
    NotificationResult,
    BulkNotificationResult,
    NotificationType,
    NotificationCategory,
)

__all__ = [
    "NotificationChannel",
    "Notification",
    "NotificationResult",
    "BulkNotificationResult",
    "NotificationType",
    "NotificationCategory",
]
