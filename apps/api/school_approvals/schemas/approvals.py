"""
Role grant and guardian link schemas.

Request bodies accept the field names used by the platform's clients
(aprobado, comentarios, padreId, ...) as well as the Python names.
"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from school_approvals.models.base import RequestState
from school_approvals.schemas.permissions import PermissionResponse


class ResolveRequest(BaseModel):
    """Approve or reject a pending request."""
    model_config = ConfigDict(populate_by_name=True)

    approved: bool = Field(alias="aprobado")
    comment: str | None = Field(None, alias="comentarios", max_length=1000)


class GuardianLinkCreate(BaseModel):
    """Guardian link request."""
    model_config = ConfigDict(populate_by_name=True)

    parent_id: UUID = Field(alias="padreId")
    student_id: UUID = Field(alias="estudianteId")
    is_representative: bool = Field(False, alias="esRepresentante")


class RoleGrantResponse(BaseModel):
    """Role grant response schema."""
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    role_id: int
    state: RequestState
    approver_id: UUID | None = None
    resolved_at: datetime | None = None
    comment: str | None = None
    created_at: datetime


class GuardianLinkResponse(BaseModel):
    """Guardian link response schema."""
    model_config = ConfigDict(from_attributes=True)

    parent_id: UUID
    student_id: UUID
    is_representative: bool
    state: RequestState
    approver_id: UUID | None = None
    resolved_at: datetime | None = None
    comment: str | None = None
    created_at: datetime


class ApprovableResponse(BaseModel):
    """Pending requests the caller may resolve."""
    model_config = ConfigDict(from_attributes=True)

    role_grants: list[RoleGrantResponse]
    links: list[GuardianLinkResponse]
    permissions: list[PermissionResponse]
    total: int


class RoleApprovedResponse(BaseModel):
    approved: bool = Field(serialization_alias="aprobado")


class CanApproveResponse(BaseModel):
    can_approve: bool = Field(serialization_alias="puede_aprobar")
