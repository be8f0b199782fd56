"""
Approval API routes.

Role grants and guardian links:
- Approver inbox (GET /approvals/pendientes)
- Request / resolve role grant (POST /approvals/rol/{usuario_id}/{rol_id}[/resolve])
- Role checks (GET /approvals/verificar/..., GET /approvals/puede-aprobar/...)
- Request / resolve guardian link (POST /approvals/vinculacion[/{padre_id}/{estudiante_id}/resolve])
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status

from school_approvals.api.dependencies.auth import CurrentUser
from school_approvals.api.dependencies.services import get_workflow_service
from school_approvals.schemas.approvals import (
    ApprovableResponse,
    CanApproveResponse,
    GuardianLinkCreate,
    GuardianLinkResponse,
    ResolveRequest,
    RoleApprovedResponse,
    RoleGrantResponse,
)
from school_approvals.services.workflow import WorkflowService

router = APIRouter()

Workflow = Annotated[WorkflowService, Depends(get_workflow_service)]


@router.get("/pendientes", response_model=ApprovableResponse)
async def list_pending(current_user: CurrentUser, workflow: Workflow):
    """Pending requests the caller may approve or reject."""
    approvable = await workflow.find_approvable(current_user.id)
    return ApprovableResponse.model_validate(approvable, from_attributes=True)


# ============================================================
# ROLE GRANTS
# ============================================================

@router.post(
    "/rol/{usuario_id}/{rol_id}",
    response_model=RoleGrantResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_role(
    usuario_id: UUID,
    rol_id: int,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Create a role request, or reopen a rejected one."""
    return await workflow.request_role_grant(usuario_id, rol_id)


@router.post("/rol/{usuario_id}/{rol_id}/resolve", response_model=RoleGrantResponse)
async def resolve_role(
    usuario_id: UUID,
    rol_id: int,
    data: ResolveRequest,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Approve or reject a pending role request."""
    return await workflow.resolve_role_grant(
        usuario_id, rol_id, current_user.id, data.approved, data.comment
    )


@router.get("/verificar/{usuario_id}/{rol_nombre}", response_model=RoleApprovedResponse)
async def verify_role(
    usuario_id: UUID,
    rol_nombre: str,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Whether the user holds an approved grant for the named role."""
    return RoleApprovedResponse(approved=await workflow.is_role_approved(usuario_id, rol_nombre))


@router.get("/puede-aprobar/{usuario_id}/{rol_id}", response_model=CanApproveResponse)
async def can_approve_role(
    usuario_id: UUID,
    rol_id: int,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Whether the caller may resolve this user's request for the role."""
    allowed = await workflow.can_approve_role_grant(current_user.id, usuario_id, rol_id)
    return CanApproveResponse(can_approve=allowed)


# ============================================================
# GUARDIAN LINKS
# ============================================================

@router.post(
    "/vinculacion",
    response_model=GuardianLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def request_link(
    data: GuardianLinkCreate,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Create a guardian link request, or reopen a rejected one."""
    return await workflow.request_guardian_link(
        data.parent_id, data.student_id, data.is_representative
    )


@router.post(
    "/vinculacion/{padre_id}/{estudiante_id}/resolve",
    response_model=GuardianLinkResponse,
)
async def resolve_link(
    padre_id: UUID,
    estudiante_id: UUID,
    data: ResolveRequest,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Approve or reject a pending guardian link."""
    return await workflow.resolve_guardian_link(
        padre_id, estudiante_id, current_user.id, data.approved, data.comment
    )
