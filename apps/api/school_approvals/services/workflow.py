"""
Workflow service.

Orchestrates the approval workflow for role grants, guardian links and
access permissions. Holds no authorization rules of its own: it checks
referential integrity, asks the resolver, applies the state machine,
issues credentials and finally notifies.

Every mutating operation follows the same order:

    1. look up the request                 -> NotFoundError
    2. check its state                     -> InvalidStateError
    3. ask the resolver                    -> UnauthorizedError
    4. conditional update of the state     -> InvalidStateError on a lost race
    5. commit
    6. notify (best-effort, never undoes step 5)
"""

from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_approvals.core.errors import (
    CredentialConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from school_approvals.models.approvals import GuardianLink, RoleGrant
from school_approvals.models.base import RequestState
from school_approvals.models.permissions import AccessPermission, PermissionKind
from school_approvals.models.school import RoleKind
from school_approvals.repositories.requests import (
    AccessPermissionRepository,
    GuardianLinkRepository,
    RoleGrantRepository,
)
from school_approvals.schemas.permissions import PermissionCreate, PermissionUpdate
from school_approvals.services import notifications as messages
from school_approvals.services.credentials import CredentialIssuer, RedemptionResult
from school_approvals.services.directory import DirectoryService
from school_approvals.services.notifications import NotificationDispatcher
from school_approvals.services.resolver import ApprovableRequests, AuthorizationResolver
from school_approvals.services.state_machine import (
    PERMISSION_EDGES,
    REOPENABLE_EDGES,
    Decision,
    RequestStateMachine,
)
from school_approvals.utils.timezone import to_utc, utc_now

logger = structlog.get_logger(__name__)


class WorkflowService:
    """Approval workflow orchestration."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        clock: Callable[[], datetime] = utc_now,
        issuer: CredentialIssuer | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.clock = clock

        self.directory = DirectoryService(db)
        self.resolver = AuthorizationResolver(db, self.directory)

        self.grants = RoleGrantRepository(db)
        self.links = GuardianLinkRepository(db)
        self.permissions = AccessPermissionRepository(db)

        self.grant_machine = RequestStateMachine(self.grants, REOPENABLE_EDGES)
        self.link_machine = RequestStateMachine(self.links, REOPENABLE_EDGES)
        self.permission_machine = RequestStateMachine(self.permissions, PERMISSION_EDGES)
        self.issuer = issuer or CredentialIssuer(self.permissions)

    def now(self) -> datetime:
        return to_utc(self.clock())

    async def _authorize(self, approver_id: UUID, request) -> None:
        if not await self.resolver.can_approve(approver_id, request):
            logger.info(
                "Approval denied",
                approver_id=str(approver_id),
                kind=type(request).__name__,
            )
            raise UnauthorizedError("You are not allowed to resolve this request")

    # ============================================================
    # ROLE GRANTS
    # ============================================================

    async def request_role_grant(self, user_id: UUID, role_id: int) -> RoleGrant:
        """
        Create a pending role grant, or reopen a rejected one.

        A grant that is already pending or approved cannot be requested
        again.
        """
        user = await self.directory.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")
        role = await self.directory.get_role(role_id)
        if not role:
            raise NotFoundError("Role not found")

        grant = await self.grants.get_one(user_id=user_id, role_id=role_id)
        if grant is None:
            grant = await self.grants.create(user_id=user_id, role_id=role_id)
        elif grant.state == RequestState.REJECTED:
            grant = await self.grant_machine.reopen(grant)
        else:
            raise InvalidStateError(
                f"Role {role.name} is already {grant.state.value} for this user",
                state=grant.state.value,
            )

        await self.db.commit()
        logger.info("Role grant requested", user_id=str(user_id), role=role.name)

        approvers = await self.resolver.approvers_for(grant)
        await self.dispatcher.dispatch(approvers, messages.role_grant_requested(user, role))
        return grant

    async def resolve_role_grant(
        self,
        user_id: UUID,
        role_id: int,
        approver_id: UUID,
        approved: bool,
        comment: Optional[str] = None,
    ) -> RoleGrant:
        """Approve or reject a pending role grant."""
        grant = await self.grants.get_one(user_id=user_id, role_id=role_id)
        if grant is None:
            raise NotFoundError("Role request not found")
        self.grant_machine.ensure_pending(grant)
        await self._authorize(approver_id, grant)

        grant = await self.grant_machine.resolve(
            grant, approver_id, Decision.from_bool(approved), self.now(), comment
        )
        await self.db.commit()

        role = await self.directory.get_role(role_id)
        await self.dispatcher.dispatch([grant.user_id], messages.role_grant_resolved(role, grant))
        return grant

    async def is_role_approved(self, user_id: UUID, role_name: str) -> bool:
        """Does the user hold an APPROVED grant for the named role?"""
        return role_name in await self.directory.approved_role_names(user_id)

    async def can_approve_role_grant(self, approver_id: UUID, user_id: UUID, role_id: int) -> bool:
        """
        Could approver_id resolve a grant of role_id to user_id?

        Answered from the school graph, whether or not a request exists.
        """
        if not await self.directory.get_user(user_id):
            raise NotFoundError("User not found")
        if not await self.directory.get_role(role_id):
            raise NotFoundError("Role not found")

        grant = await self.grants.get_one(user_id=user_id, role_id=role_id)
        if grant is None:
            grant = RoleGrant(user_id=user_id, role_id=role_id)
        return await self.resolver.can_approve(approver_id, grant)

    # ============================================================
    # GUARDIAN LINKS
    # ============================================================

    async def request_guardian_link(
        self,
        parent_id: UUID,
        student_id: UUID,
        is_representative: bool = False,
    ) -> GuardianLink:
        """Create a pending guardian link, or reopen a rejected one."""
        if parent_id == student_id:
            raise ValidationError("A user cannot be linked to themselves")
        if not await self.directory.get_parent(parent_id):
            raise NotFoundError("Parent profile not found")
        if not await self.directory.get_student(student_id):
            raise NotFoundError("Student profile not found")

        link = await self.links.get_one(parent_id=parent_id, student_id=student_id)
        if link is None:
            link = await self.links.create(
                parent_id=parent_id,
                student_id=student_id,
                is_representative=is_representative,
            )
        elif link.state == RequestState.REJECTED:
            link = await self.link_machine.reopen(link, is_representative=is_representative)
        else:
            raise InvalidStateError(
                f"Link is already {link.state.value}",
                state=link.state.value,
            )

        await self.db.commit()
        logger.info("Guardian link requested", parent_id=str(parent_id), student_id=str(student_id))

        parent = await self.directory.get_user(parent_id)
        student = await self.directory.get_user(student_id)
        approvers = await self.resolver.approvers_for(link)
        await self.dispatcher.dispatch(approvers, messages.guardian_link_requested(parent, student))
        return link

    async def resolve_guardian_link(
        self,
        parent_id: UUID,
        student_id: UUID,
        approver_id: UUID,
        approved: bool,
        comment: Optional[str] = None,
    ) -> GuardianLink:
        """Approve or reject a pending guardian link."""
        link = await self.links.get_one(parent_id=parent_id, student_id=student_id)
        if link is None:
            raise NotFoundError("Link request not found")
        self.link_machine.ensure_pending(link)
        await self._authorize(approver_id, link)

        link = await self.link_machine.resolve(
            link, approver_id, Decision.from_bool(approved), self.now(), comment
        )
        await self.db.commit()

        student = await self.directory.get_user(student_id)
        await self.dispatcher.dispatch([link.parent_id], messages.guardian_link_resolved(student, link))
        return link

    # ============================================================
    # ACCESS PERMISSIONS
    # ============================================================

    def _check_window(
        self,
        kind: PermissionKind,
        start: datetime,
        end: datetime,
        check_start: bool = True,
    ) -> None:
        """Only a newly chosen start is held against the clock."""
        if start >= end:
            raise ValidationError("Window start must be before window end")
        if check_start and kind != PermissionKind.EMERGENCY and start < self.now():
            raise ValidationError("Window start cannot be in the past")

    async def create_permission(self, parent_id: UUID, data: PermissionCreate) -> AccessPermission:
        """
        Create a pending access permission for parent_id.

        All referential checks run before anything is written.
        """
        start, end = to_utc(data.window_start), to_utc(data.window_end)
        self._check_window(data.kind, start, end)

        if not await self.directory.get_parent(parent_id):
            raise NotFoundError("Parent profile not found")
        if not await self.directory.has_approved_role(parent_id, RoleKind.PARENT):
            raise ValidationError("Parent role has not been approved")
        if not await self.directory.get_course(data.course_id):
            raise NotFoundError("Course not found")

        if data.student_id is not None:
            student = await self.directory.get_student(data.student_id)
            if not student:
                raise NotFoundError("Student profile not found")
            link = await self.directory.get_link(parent_id, data.student_id)
            if link is None or link.state != RequestState.APPROVED:
                raise ValidationError("Student is not linked to this parent")
            if student.course_id != data.course_id:
                raise ValidationError("Student is not enrolled in this course")
        else:
            linked_courses = await self.directory.linked_student_course_ids(
                parent_id, [RequestState.APPROVED]
            )
            if data.course_id not in linked_courses:
                raise ValidationError("Parent has no linked student in this course")

        permission = await self.permissions.create(
            parent_id=parent_id,
            course_id=data.course_id,
            student_id=data.student_id,
            kind=data.kind,
            title=data.title,
            description=data.description,
            window_start=start,
            window_end=end,
        )
        await self.db.commit()
        logger.info(
            "Permission requested",
            permission_id=str(permission.id),
            parent_id=str(parent_id),
            course_id=data.course_id,
            kind=data.kind.value,
        )

        parent = await self.directory.get_user(parent_id)
        approvers = await self.directory.tutor_ids_for_courses([data.course_id])
        await self.dispatcher.dispatch(approvers, messages.permission_requested(parent, permission))
        return permission

    async def update_permission(
        self,
        permission_id: UUID,
        parent_id: UUID,
        data: PermissionUpdate,
    ) -> AccessPermission:
        """Edit a permission while it is still pending."""
        permission = await self.permissions.get_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found")
        self.permission_machine.ensure_pending(permission)
        if permission.parent_id != parent_id:
            raise UnauthorizedError("Only the requesting parent can edit this permission")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "window_start" in changes:
            changes["window_start"] = to_utc(changes["window_start"])
        if "window_end" in changes:
            changes["window_end"] = to_utc(changes["window_end"])
        if "window_start" in changes or "window_end" in changes:
            self._check_window(
                permission.kind,
                changes.get("window_start", to_utc(permission.window_start)),
                changes.get("window_end", to_utc(permission.window_end)),
                check_start="window_start" in changes,
            )

        if changes and not await self.permissions.compare_and_set(
            permission, RequestState.PENDING, **changes
        ):
            raise InvalidStateError(
                f"Permission is {permission.state.value}, expected PENDIENTE",
                state=permission.state.value,
            )
        await self.db.commit()
        return permission

    async def resolve_permission(
        self,
        permission_id: UUID,
        approver_id: UUID,
        approved: bool,
        comment: Optional[str] = None,
    ) -> AccessPermission:
        """Approve (issuing a credential) or reject a pending permission."""
        permission = await self.permissions.get_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found")
        self.permission_machine.ensure_pending(permission)
        await self._authorize(approver_id, permission)

        decision = Decision.from_bool(approved)
        if decision == Decision.APPROVE:
            permission = await self._approve_with_credential(permission, approver_id, comment)
        else:
            permission = await self.permission_machine.resolve(
                permission, approver_id, decision, self.now(), comment
            )
        await self.db.commit()

        await self.dispatcher.dispatch([permission.parent_id], messages.permission_resolved(permission))
        return permission

    async def _approve_with_credential(
        self,
        permission: AccessPermission,
        approver_id: UUID,
        comment: Optional[str],
    ) -> AccessPermission:
        """
        Approve with a freshly issued credential.

        The issuer's uniqueness check and the write are not atomic, so a
        concurrent approval can claim the same token in between. The
        unique index catches that; the transaction is rolled back and a
        new token is drawn.
        """
        for attempt in range(1, self.issuer.max_attempts + 1):
            token = await self.issuer.issue(
                permission.parent_id, permission.window_start, permission.window_end
            )
            try:
                return await self.permission_machine.resolve(
                    permission,
                    approver_id,
                    Decision.APPROVE,
                    self.now(),
                    comment,
                    credential_token=token,
                )
            except IntegrityError:
                await self.db.rollback()
                await self.db.refresh(permission)
                self.permission_machine.ensure_pending(permission)
                logger.warning(
                    "Credential collided on write",
                    permission_id=str(permission.id),
                    attempt=attempt,
                )

        raise CredentialConflictError(
            f"Could not store a unique credential after {self.issuer.max_attempts} attempts"
        )

    async def delete_permission(self, permission_id: UUID, user_id: UUID) -> None:
        """
        Withdraw a pending permission.

        Allowed for the requesting parent and for admins. Resolved
        permissions are part of the audit trail and stay.
        """
        permission = await self.permissions.get_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found")
        self.permission_machine.ensure_pending(permission)
        if permission.parent_id != user_id and not await self.directory.is_admin(user_id):
            raise UnauthorizedError("Only the requesting parent can delete this permission")

        if not await self.permissions.delete_if(permission, RequestState.PENDING):
            self.db.expire(permission)
            if await self.permissions.get_by_id(permission_id) is None:
                raise NotFoundError("Permission not found")
            raise InvalidStateError(
                f"Permission is {permission.state.value}, expected PENDIENTE",
                state=permission.state.value,
            )
        await self.db.commit()
        logger.info("Permission deleted", permission_id=str(permission_id), user_id=str(user_id))

    async def get_permission(self, permission_id: UUID, viewer_id: UUID) -> AccessPermission:
        """Permission visible to its parent and to anyone who may resolve it."""
        permission = await self.permissions.get_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found")
        await self._ensure_visible(permission, viewer_id)
        return permission

    async def get_permission_by_token(self, token: str, viewer_id: UUID) -> AccessPermission:
        permission = await self.permissions.get_by_token(token)
        if permission is None:
            raise NotFoundError("Credential not found")
        await self._ensure_visible(permission, viewer_id)
        return permission

    async def _ensure_visible(self, permission: AccessPermission, viewer_id: UUID) -> None:
        if permission.parent_id == viewer_id:
            return
        if not await self.resolver.can_approve(viewer_id, permission):
            raise UnauthorizedError("You are not allowed to view this permission")

    async def list_permissions(
        self,
        viewer_id: UUID,
        parent_id: UUID | None = None,
        course_id: int | None = None,
        student_id: UUID | None = None,
        kind: PermissionKind | None = None,
        state: RequestState | None = None,
    ) -> list[AccessPermission]:
        """
        Filtered permission listing.

        Admins may filter freely; everyone else only sees their own.
        """
        if not await self.directory.is_admin(viewer_id):
            if parent_id is not None and parent_id != viewer_id:
                raise UnauthorizedError("You can only list your own permissions")
            parent_id = viewer_id

        return await self.permissions.all(
            order_by="window_start",
            descending=True,
            parent_id=parent_id,
            course_id=course_id,
            student_id=student_id,
            kind=kind,
            state=state,
        )

    async def redeem(self, token: str) -> RedemptionResult:
        """
        Redeem a credential at the gate.

        A late redemption still records the EXPIRED transition before
        the error reaches the caller.
        """
        try:
            result = await self.issuer.redeem(token, self.now())
        except ExpiredError:
            await self.db.commit()
            raise
        await self.db.commit()
        logger.info("Credential redeemed", permission_id=str(result.permission.id))
        return result

    async def expire_overdue(self) -> int:
        """Sweep approved permissions whose window has ended."""
        count = await self.issuer.expire_overdue(self.now())
        await self.db.commit()
        return count

    # ============================================================
    # APPROVER INBOX
    # ============================================================

    async def find_approvable(self, approver_id: UUID) -> ApprovableRequests:
        return await self.resolver.find_approvable(approver_id)
