"""Notification channel implementations."""

from school_approvals.implementations.notifications.database import DatabaseNotificationChannel

__all__ = [
    "DatabaseNotificationChannel",
]
