"""
Workflow error taxonomy.

Every failure a workflow operation can report to its caller derives
from WorkflowError. The API layer maps each class to an HTTP status
with a single exception handler, so services never build HTTP errors.

    NotFoundError       404  referenced entity absent
    InvalidStateError   409  request not in the state the transition needs
    UnauthorizedError   403  resolver denied the approver
    ValidationError     400  malformed window, broken referential claim
    ExpiredError        410  redemption after the window ended
    NotYetValidError    425  redemption before the window started
"""

from typing import Any


class WorkflowError(Exception):
    """Base class for caller-visible workflow failures."""

    status_code: int = 400
    code: str = "workflow_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class NotFoundError(WorkflowError):
    status_code = 404
    code = "not_found"


class InvalidStateError(WorkflowError):
    status_code = 409
    code = "invalid_state"


class CredentialConflictError(InvalidStateError):
    """Raised when no unique credential token could be produced."""

    code = "credential_conflict"


class UnauthorizedError(WorkflowError):
    status_code = 403
    code = "unauthorized"


class ValidationError(WorkflowError):
    status_code = 400
    code = "validation_error"


class ExpiredError(WorkflowError):
    status_code = 410
    code = "expired"


class NotYetValidError(WorkflowError):
    status_code = 425
    code = "not_yet_valid"
