"""
Role grant and guardian link requests.

Both are keyed by the pair they associate, so a re-request after a
rejection reopens the existing row instead of inserting a new one.
"""

from uuid import UUID as PyUUID

from sqlalchemy import Boolean, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, ResolvableMixin, TimestampMixin


class RoleGrant(Base, ResolvableMixin, TimestampMixin):
    """Association of a user with a role, pending until approved."""

    __tablename__ = "role_grants"

    user_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    )

    def __repr__(self) -> str:
        return f"<RoleGrant {self.user_id}:{self.role_id} {self.state.value}>"


class GuardianLink(Base, ResolvableMixin, TimestampMixin):
    """Claim that a parent is guardian (or representative) of a student."""

    __tablename__ = "guardian_links"

    parent_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("parent_profiles.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    student_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("student_profiles.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    is_representative: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<GuardianLink {self.parent_id}->{self.student_id} {self.state.value}>"
