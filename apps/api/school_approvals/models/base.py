"""
Base model classes and mixins.

Mixins used across the schema:
- TimestampMixin: created_at, updated_at (always use)
- UUIDMixin: UUID primary key
- ResolvableMixin: state, approver_id, resolved_at, comment (for any
  request that goes through the approve/reject workflow)
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID as PyUUID, uuid4
from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Persist enum values, not member names."""
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """Base class for all models."""

    # Common type annotations - all datetimes are timezone-aware
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


# ============================================================
# TIMESTAMP MIXINS
# ============================================================

class TimestampMixin:
    """
    Mixin for created_at and updated_at timestamps.

    All timestamps are stored in UTC (timezone-aware).
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ============================================================
# PRIMARY KEY MIXIN
# ============================================================

class UUIDMixin:
    """
    Mixin for UUID primary key.

    Usage:
        class MyModel(Base, UUIDMixin):
            __tablename__ = "my_table"
            # No need to define id column
    """

    id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )


# ============================================================
# RESOLVABLE MIXIN (approve/reject workflow)
# ============================================================

class RequestState(str, Enum):
    """
    Lifecycle state of a workflow request.

    Values are the ones stored by the rest of the school platform.
    CONSUMED and EXPIRED only apply to access permissions.
    """

    PENDING = "PENDIENTE"
    APPROVED = "APROBADO"
    REJECTED = "RECHAZADO"
    CONSUMED = "UTILIZADO"
    EXPIRED = "VENCIDO"


class ResolvableMixin:
    """
    Shared state shape of every request an approver resolves.

    approver_id and resolved_at are written together by the state
    machine when the request leaves PENDING. Never assign them directly.

    Usage:
        class RoleGrant(Base, ResolvableMixin, TimestampMixin):
            __tablename__ = "role_grants"
            ...

        # Transition with a conditional update
        await repository.compare_and_set(grant, RequestState.PENDING,
                                         state=RequestState.APPROVED, ...)
    """

    state: Mapped[RequestState] = mapped_column(
        SQLEnum(
            RequestState,
            name="request_state",
            values_callable=enum_values,
        ),
        default=RequestState.PENDING,
        nullable=False,
        index=True,
    )
    approver_id: Mapped[Optional[PyUUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    @property
    def is_pending(self) -> bool:
        return self.state == RequestState.PENDING
