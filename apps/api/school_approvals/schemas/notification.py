"""
Notification schemas.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    """In-app notification."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: str
    category: str
    title: str
    message: str
    action_url: str | None = None
    data: dict
    read_at: datetime | None = None
    created_at: datetime


class UnreadCountResponse(BaseModel):
    count: int
