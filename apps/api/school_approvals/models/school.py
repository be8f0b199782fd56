"""
School directory models.

Roles, courses and the teacher/student/parent profiles are maintained by
the platform's CRUD modules. The approval workflow only reads them.
"""

from enum import Enum
from typing import Optional
from uuid import UUID as PyUUID

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from .base import Base, TimestampMixin


class RoleKind(str, Enum):
    """
    Closed set of role kinds the authorization rules branch on.

    Role names are parsed once, where a Role row is read; every rule
    downstream switches on the kind, never on the raw name.
    """

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"
    TREASURER = "treasurer"
    OTHER = "other"

    @classmethod
    def from_role_name(cls, name: str) -> "RoleKind":
        for kind, names in ROLE_NAMES.items():
            if name in names:
                return kind
        return cls.OTHER


# Stored role names per kind
ROLE_NAMES: dict[RoleKind, frozenset[str]] = {
    RoleKind.ADMIN: frozenset({"admin"}),
    RoleKind.TEACHER: frozenset({"profesor"}),
    RoleKind.STUDENT: frozenset({"estudiante"}),
    RoleKind.PARENT: frozenset({"padre", "padre_familia"}),
    RoleKind.TREASURER: frozenset({"tesorero"}),
}


class Role(Base):
    """Named role a user can be granted."""

    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    @property
    def kind(self) -> RoleKind:
        return RoleKind.from_role_name(self.name)

    def __repr__(self) -> str:
        return f"<Role {self.name}>"


class Course(Base, TimestampMixin):
    """A course (grade + parallel) in a school year."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    parallel: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    school_year: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class TeacherProfile(Base, TimestampMixin):
    __tablename__ = "teacher_profiles"

    user_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    specialty: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class TeacherCourse(Base):
    """
    Teacher assignment to a course.

    is_tutor marks the course's approving authority. A course may have
    more than one tutor.
    """

    __tablename__ = "teacher_courses"

    teacher_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teacher_profiles.user_id", ondelete="CASCADE"),
        primary_key=True,
    )
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        primary_key=True,
    )
    is_tutor: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class StudentProfile(Base, TimestampMixin):
    """Student enrolment. Every student belongs to exactly one course."""

    __tablename__ = "student_profiles"

    user_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("courses.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    grade: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class ParentProfile(Base, TimestampMixin):
    __tablename__ = "parent_profiles"

    user_id: Mapped[PyUUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
