"""
Backend implementations for core interfaces.
"""

from school_approvals.implementations.notifications import DatabaseNotificationChannel

__all__ = [
    "DatabaseNotificationChannel",
]
