"""
Access permission API routes.

- Create / edit / withdraw (POST /permisos, PATCH and DELETE /permisos/{id})
- Read (GET /permisos, /permisos/pendientes, /permisos/{id}, /permisos/qr/{codigo_qr})
- Resolve (POST /permisos/{id}/aprobar, POST /permisos/{id}/rechazar)
- Redeem at the gate (POST /permisos/validar/{codigo_qr})
- Expiry sweep (POST /permisos/vencidos) - admin only
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from school_approvals.api.dependencies.auth import CurrentUser
from school_approvals.api.dependencies.permissions import AdminUser
from school_approvals.api.dependencies.services import get_workflow_service
from school_approvals.models.base import RequestState
from school_approvals.models.permissions import PermissionKind
from school_approvals.schemas.permissions import (
    ExpirySweepResponse,
    PermissionCreate,
    PermissionResponse,
    PermissionUpdate,
    RedemptionResponse,
    CommentRequest,
)
from school_approvals.services.workflow import WorkflowService

router = APIRouter()

Workflow = Annotated[WorkflowService, Depends(get_workflow_service)]


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    data: PermissionCreate,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Request an access permission as the calling parent."""
    return await workflow.create_permission(current_user.id, data)


@router.get("", response_model=list[PermissionResponse])
async def list_permissions(
    current_user: CurrentUser,
    workflow: Workflow,
    padre_id: Optional[UUID] = Query(None),
    curso_id: Optional[int] = Query(None),
    estudiante_id: Optional[UUID] = Query(None),
    tipo: Optional[PermissionKind] = Query(None),
    estado: Optional[RequestState] = Query(None),
):
    """List permissions. Non-admins only see their own."""
    return await workflow.list_permissions(
        current_user.id,
        parent_id=padre_id,
        course_id=curso_id,
        student_id=estudiante_id,
        kind=tipo,
        state=estado,
    )


@router.get("/pendientes", response_model=list[PermissionResponse])
async def list_pending_permissions(current_user: CurrentUser, workflow: Workflow):
    """Pending permissions the caller may resolve."""
    approvable = await workflow.find_approvable(current_user.id)
    return approvable.permissions


@router.post("/vencidos", response_model=ExpirySweepResponse)
async def expire_overdue(admin: AdminUser, workflow: Workflow):
    """Expire approved permissions whose window has ended."""
    return ExpirySweepResponse(expired=await workflow.expire_overdue())


@router.get("/qr/{codigo_qr}", response_model=PermissionResponse)
async def get_by_token(codigo_qr: str, current_user: CurrentUser, workflow: Workflow):
    """Look up a permission by its credential token."""
    return await workflow.get_permission_by_token(codigo_qr, current_user.id)


@router.post("/validar/{codigo_qr}", response_model=RedemptionResponse)
async def redeem(codigo_qr: str, current_user: CurrentUser, workflow: Workflow):
    """Redeem a credential. Succeeds once, inside the permission window."""
    result = await workflow.redeem(codigo_qr)
    return RedemptionResponse.model_validate(result, from_attributes=True)


@router.get("/{permission_id}", response_model=PermissionResponse)
async def get_permission(permission_id: UUID, current_user: CurrentUser, workflow: Workflow):
    """Get a permission visible to the caller."""
    return await workflow.get_permission(permission_id, current_user.id)


@router.patch("/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: UUID,
    data: PermissionUpdate,
    current_user: CurrentUser,
    workflow: Workflow,
):
    """Edit a pending permission."""
    return await workflow.update_permission(permission_id, current_user.id, data)


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(permission_id: UUID, current_user: CurrentUser, workflow: Workflow):
    """Withdraw a pending permission. Owner or admin only."""
    await workflow.delete_permission(permission_id, current_user.id)


@router.post("/{permission_id}/aprobar", response_model=PermissionResponse)
async def approve_permission(
    permission_id: UUID,
    current_user: CurrentUser,
    workflow: Workflow,
    data: Optional[CommentRequest] = None,
):
    """Approve a pending permission and issue its credential."""
    comment = data.comment if data else None
    return await workflow.resolve_permission(permission_id, current_user.id, True, comment)


@router.post("/{permission_id}/rechazar", response_model=PermissionResponse)
async def reject_permission(
    permission_id: UUID,
    current_user: CurrentUser,
    workflow: Workflow,
    data: Optional[CommentRequest] = None,
):
    """Reject a pending permission."""
    comment = data.comment if data else None
    return await workflow.resolve_permission(permission_id, current_user.id, False, comment)
