"""
Access permission model.

A time-windowed authorization for a parent to access or attend the
school on behalf of a student. Approval attaches a single-use credential
token (rendered as a QR code by clients).
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID as PyUUID

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, ResolvableMixin, TimestampMixin, UUIDMixin, enum_values


class PermissionKind(str, Enum):
    """Kind of access requested."""

    ACCESS = "ACCESO_PADRE"
    EVENT = "EVENTO_ESTUDIANTE"
    EMERGENCY = "EMERGENCIA"
    RECURRING = "RECURRENTE"


class AccessPermission(Base, UUIDMixin, ResolvableMixin, TimestampMixin):
    """
    Parent access permission request.

    student_id is optional: without it the permission covers any of the
    parent's linked children in the course.
    """

    __tablename__ = "access_permissions"

    parent_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parent_profiles.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("student_profiles.user_id", ondelete="SET NULL"),
        nullable=True,
    )

    kind: Mapped[PermissionKind] = mapped_column(
        SQLEnum(
            PermissionKind,
            name="permission_kind",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    window_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    window_end: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Only written by the credential issuer on approval
    credential_token: Mapped[Optional[str]] = mapped_column(
        String(128),
        unique=True,
        nullable=True,
    )

    __table_args__ = (
        # Expiry sweep: approved permissions past their window
        Index("ix_access_permissions_state_window_end", "state", "window_end"),
    )

    def __repr__(self) -> str:
        return f"<AccessPermission {self.id} {self.kind.value} {self.state.value}>"
