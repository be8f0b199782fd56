"""
Access permission schemas.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from school_approvals.models.base import RequestState
from school_approvals.models.permissions import PermissionKind


class PermissionCreate(BaseModel):
    """Access permission request. The caller is the requesting parent."""
    model_config = ConfigDict(populate_by_name=True)

    course_id: int = Field(alias="cursoId")
    student_id: UUID | None = Field(None, alias="estudianteId")
    kind: PermissionKind = Field(alias="tipoPermiso")
    title: str = Field(alias="titulo", min_length=1, max_length=255)
    description: str | None = Field(None, alias="descripcion", max_length=2000)
    window_start: datetime = Field(alias="fechaInicio")
    window_end: datetime = Field(alias="fechaFin")


class PermissionUpdate(BaseModel):
    """Changes allowed while the permission is pending."""
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = Field(None, alias="titulo", min_length=1, max_length=255)
    description: str | None = Field(None, alias="descripcion", max_length=2000)
    window_start: datetime | None = Field(None, alias="fechaInicio")
    window_end: datetime | None = Field(None, alias="fechaFin")


class CommentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    comment: str | None = Field(None, alias="comentarios", max_length=1000)


class PermissionResponse(BaseModel):
    """Access permission response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    parent_id: UUID
    course_id: int
    student_id: UUID | None = None
    kind: PermissionKind
    title: str
    description: str | None = None
    window_start: datetime
    window_end: datetime
    state: RequestState
    approver_id: UUID | None = None
    resolved_at: datetime | None = None
    comment: str | None = None
    credential_token: str | None = None
    created_at: datetime


class RedemptionResponse(BaseModel):
    """Successful credential redemption."""
    model_config = ConfigDict(from_attributes=True)

    permission: PermissionResponse
    redeemed_at: datetime


class ExpirySweepResponse(BaseModel):
    expired: int
