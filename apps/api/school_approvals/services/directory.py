"""
Directory service.

Read-only lookups over users, roles, courses and the teacher, student and
parent profiles. Everything the authorization rules need to know about
the school graph comes through here.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_approvals.models.approvals import GuardianLink, RoleGrant
from school_approvals.models.base import RequestState
from school_approvals.models.school import (
    ROLE_NAMES,
    Course,
    ParentProfile,
    Role,
    RoleKind,
    StudentProfile,
    TeacherCourse,
)
from school_approvals.models.user import User

# Link states that count when deciding who tutors a parent's children
ACTIVE_LINK_STATES = (RequestState.PENDING, RequestState.APPROVED)


def approved_holders(kind: RoleKind) -> Select:
    """Users holding an APPROVED grant of a role of the given kind."""
    return (
        select(RoleGrant.user_id)
        .join(Role, Role.id == RoleGrant.role_id)
        .where(Role.name.in_(sorted(ROLE_NAMES[kind])))
        .where(RoleGrant.state == RequestState.APPROVED)
    )


def tutor_courses_of(user_id: UUID) -> Select:
    """
    Courses the user is an approved tutor of.

    Requires both the tutor assignment and an APPROVED teacher grant; a
    pending teacher grant never makes anyone a tutor.
    """
    return (
        select(TeacherCourse.course_id)
        .where(TeacherCourse.teacher_id == user_id)
        .where(TeacherCourse.is_tutor.is_(True))
        .where(TeacherCourse.teacher_id.in_(approved_holders(RoleKind.TEACHER)))
    )


class DirectoryService:
    """Read-only school directory."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: UUID) -> User | None:
        return await self.db.get(User, user_id)

    async def get_role(self, role_id: int) -> Role | None:
        return await self.db.get(Role, role_id)

    async def get_course(self, course_id: int) -> Course | None:
        return await self.db.get(Course, course_id)

    async def get_student(self, user_id: UUID) -> StudentProfile | None:
        return await self.db.get(StudentProfile, user_id)

    async def get_parent(self, user_id: UUID) -> ParentProfile | None:
        return await self.db.get(ParentProfile, user_id)

    async def get_link(self, parent_id: UUID, student_id: UUID) -> GuardianLink | None:
        return await self.db.get(GuardianLink, (parent_id, student_id))

    # --- Role predicates ---

    async def approved_role_names(self, user_id: UUID) -> set[str]:
        """Names of every role the user holds an APPROVED grant for."""
        result = await self.db.execute(
            select(Role.name)
            .join(RoleGrant, RoleGrant.role_id == Role.id)
            .where(RoleGrant.user_id == user_id)
            .where(RoleGrant.state == RequestState.APPROVED)
        )
        return set(result.scalars().all())

    async def has_approved_role(self, user_id: UUID, kind: RoleKind) -> bool:
        result = await self.db.execute(
            approved_holders(kind).where(RoleGrant.user_id == user_id).limit(1)
        )
        return result.first() is not None

    async def is_admin(self, user_id: UUID) -> bool:
        return await self.has_approved_role(user_id, RoleKind.ADMIN)

    async def admin_ids(self) -> list[UUID]:
        result = await self.db.execute(approved_holders(RoleKind.ADMIN))
        return list(result.scalars().all())

    # --- Course graph ---

    async def tutor_course_ids(self, user_id: UUID) -> set[int]:
        result = await self.db.execute(tutor_courses_of(user_id))
        return set(result.scalars().all())

    async def tutor_ids_for_courses(self, course_ids: Iterable[int]) -> list[UUID]:
        """Approved tutors of any of the given courses."""
        course_ids = list(course_ids)
        if not course_ids:
            return []
        result = await self.db.execute(
            select(TeacherCourse.teacher_id)
            .where(TeacherCourse.course_id.in_(course_ids))
            .where(TeacherCourse.is_tutor.is_(True))
            .where(TeacherCourse.teacher_id.in_(approved_holders(RoleKind.TEACHER)))
            .distinct()
        )
        return list(result.scalars().all())

    async def student_course_id(self, student_id: UUID) -> int | None:
        return await self.db.scalar(
            select(StudentProfile.course_id).where(StudentProfile.user_id == student_id)
        )

    async def linked_student_course_ids(
        self,
        parent_id: UUID,
        states: Iterable[RequestState] = ACTIVE_LINK_STATES,
    ) -> set[int]:
        """Courses of the students linked to a parent with a link in one of states."""
        result = await self.db.execute(
            select(StudentProfile.course_id)
            .join(GuardianLink, GuardianLink.student_id == StudentProfile.user_id)
            .where(GuardianLink.parent_id == parent_id)
            .where(GuardianLink.state.in_(list(states)))
        )
        return set(result.scalars().all())
