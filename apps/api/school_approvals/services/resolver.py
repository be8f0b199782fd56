"""
Authorization resolver.

Decides who may approve which pending request. Approver sets are not
stored anywhere; they are computed per request from the school graph:

    admin (APPROVED grant)      -> any request
    RoleGrant, target teacher   -> admin only
    RoleGrant, target student   -> approved tutor of the student's course
    RoleGrant, target parent    -> approved tutor of a course holding a
                                   student linked (pending or approved)
                                   to the parent
    RoleGrant, any other role   -> admin only
    GuardianLink                -> approved tutor of the student's course
    AccessPermission            -> approved tutor of the permission's course

can_approve() evaluates one request. find_approvable() answers the
inverse question with set-membership joins and must return exactly the
pending rows can_approve() accepts.
"""

from dataclasses import dataclass, field
from typing import Union
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_approvals.models.approvals import GuardianLink, RoleGrant
from school_approvals.models.base import RequestState
from school_approvals.models.permissions import AccessPermission
from school_approvals.models.school import ROLE_NAMES, Role, RoleKind, StudentProfile
from school_approvals.services.directory import (
    ACTIVE_LINK_STATES,
    DirectoryService,
    tutor_courses_of,
)

WorkflowRequest = Union[RoleGrant, GuardianLink, AccessPermission]


@dataclass
class ApprovableRequests:
    """Pending requests an approver may act on, by kind."""

    role_grants: list[RoleGrant] = field(default_factory=list)
    links: list[GuardianLink] = field(default_factory=list)
    permissions: list[AccessPermission] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.role_grants) + len(self.links) + len(self.permissions)


class AuthorizationResolver:
    """Computes approver rights over workflow requests."""

    def __init__(self, db: AsyncSession, directory: DirectoryService | None = None):
        self.db = db
        self.directory = directory or DirectoryService(db)

    async def _target_kind(self, grant: RoleGrant) -> RoleKind:
        role = await self.directory.get_role(grant.role_id)
        return role.kind if role else RoleKind.OTHER

    async def course_scope(self, request: WorkflowRequest) -> set[int]:
        """
        Courses whose tutors may approve the request.

        Empty for requests only an admin may resolve.
        """
        if isinstance(request, AccessPermission):
            return {request.course_id}

        if isinstance(request, GuardianLink):
            course_id = await self.directory.student_course_id(request.student_id)
            return {course_id} if course_id is not None else set()

        kind = await self._target_kind(request)
        if kind == RoleKind.STUDENT:
            course_id = await self.directory.student_course_id(request.user_id)
            return {course_id} if course_id is not None else set()
        if kind == RoleKind.PARENT:
            return await self.directory.linked_student_course_ids(
                request.user_id, ACTIVE_LINK_STATES
            )
        return set()

    async def can_approve(self, approver_id: UUID, request: WorkflowRequest) -> bool:
        """May approver_id approve or reject this request?"""
        if await self.directory.is_admin(approver_id):
            return True

        scope = await self.course_scope(request)
        if not scope:
            return False

        tutor_courses = await self.directory.tutor_course_ids(approver_id)
        return bool(scope & tutor_courses)

    async def approvers_for(self, request: WorkflowRequest) -> list[UUID]:
        """Everyone who may resolve the request: admins plus scoped tutors."""
        approvers = list(await self.directory.admin_ids())
        scope = await self.course_scope(request)
        for tutor_id in await self.directory.tutor_ids_for_courses(scope):
            if tutor_id not in approvers:
                approvers.append(tutor_id)
        return approvers

    async def find_approvable(self, approver_id: UUID) -> ApprovableRequests:
        """
        All PENDING requests approver_id may act on.

        Admins get every pending request. Tutors get the requests whose
        course scope intersects their tutor courses, selected in SQL.
        """
        if await self.directory.is_admin(approver_id):
            return ApprovableRequests(
                role_grants=await self._pending(RoleGrant, select(RoleGrant)),
                links=await self._pending(GuardianLink, select(GuardianLink)),
                permissions=await self._pending(AccessPermission, select(AccessPermission)),
            )

        courses = tutor_courses_of(approver_id)
        students_in_courses = select(StudentProfile.user_id).where(
            StudentProfile.course_id.in_(courses)
        )
        parents_in_courses = (
            select(GuardianLink.parent_id)
            .join(StudentProfile, StudentProfile.user_id == GuardianLink.student_id)
            .where(GuardianLink.state.in_(ACTIVE_LINK_STATES))
            .where(StudentProfile.course_id.in_(courses))
        )

        role_grants = await self._pending(
            RoleGrant,
            select(RoleGrant)
            .join(Role, Role.id == RoleGrant.role_id)
            .where(
                or_(
                    Role.name.in_(sorted(ROLE_NAMES[RoleKind.STUDENT]))
                    & RoleGrant.user_id.in_(students_in_courses),
                    Role.name.in_(sorted(ROLE_NAMES[RoleKind.PARENT]))
                    & RoleGrant.user_id.in_(parents_in_courses),
                )
            )
        )
        links = await self._pending(
            GuardianLink,
            select(GuardianLink).where(GuardianLink.student_id.in_(students_in_courses))
        )
        permissions = await self._pending(
            AccessPermission,
            select(AccessPermission).where(AccessPermission.course_id.in_(courses))
        )
        return ApprovableRequests(role_grants=role_grants, links=links, permissions=permissions)

    async def _pending(self, model, stmt) -> list:
        result = await self.db.execute(
            stmt.where(model.state == RequestState.PENDING).order_by(model.created_at)
        )
        return list(result.scalars().all())
