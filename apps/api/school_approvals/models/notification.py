"""
Notification model for in-app notifications.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import String, Text, ForeignKey, Index, JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    """
    In-app notification stored in database.

    Written by the workflow after a request is created or resolved;
    data carries the request identity so clients can link to it.
    """

    __tablename__ = "notifications"

    id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )

    # Target user
    user_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False, default="info")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="system")

    # Content
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    # Read status
    read_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        # User's unread notifications (most common query)
        Index("ix_notifications_user_unread", "user_id", "read_at"),
    )

    @property
    def is_read(self) -> bool:
        """Check if notification has been read."""
        return self.read_at is not None
