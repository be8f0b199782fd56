"""
Credential issuer for access permissions.

Mints the single-use token a parent presents (as a QR code) at the
school gate, and applies the usage-driven transitions:

    redeem inside the window   APPROVED -> CONSUMED
    redeem after the window    APPROVED -> EXPIRED, then ExpiredError
    redeem before the window   NotYetValidError, no state change
    expiry sweep               APPROVED -> EXPIRED for ended windows
"""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID

import structlog

from school_approvals.core.config import settings
from school_approvals.core.errors import (
    CredentialConflictError,
    ExpiredError,
    NotFoundError,
    NotYetValidError,
)
from school_approvals.models.base import RequestState
from school_approvals.models.permissions import AccessPermission
from school_approvals.repositories.requests import AccessPermissionRepository
from school_approvals.services.state_machine import PERMISSION_EDGES, RequestStateMachine
from school_approvals.utils.timezone import to_utc

logger = structlog.get_logger(__name__)


def generate_token() -> str:
    """URL-safe random token."""
    return secrets.token_urlsafe(settings.credentials.token_bytes)


@dataclass
class RedemptionResult:
    """Outcome of a successful redemption."""

    permission: AccessPermission
    redeemed_at: datetime


class CredentialIssuer:
    """
    Issues and redeems access permission credentials.

    The unique constraint on access_permissions.credential_token is the
    source of truth for uniqueness. Before handing out a token the
    issuer checks it against that column and regenerates on a collision,
    up to max_attempts times.
    """

    def __init__(
        self,
        permissions: AccessPermissionRepository,
        token_factory: Callable[[], str] = generate_token,
        max_attempts: int | None = None,
    ):
        self.permissions = permissions
        self.machine = RequestStateMachine(permissions, PERMISSION_EDGES)
        self.token_factory = token_factory
        self.max_attempts = max_attempts or settings.credentials.max_issue_attempts

    async def issue(self, subject_id: UUID, valid_from: datetime, valid_to: datetime) -> str:
        """Produce a token no permission currently holds."""
        for attempt in range(1, self.max_attempts + 1):
            token = self.token_factory()
            if not await self.permissions.exists(credential_token=token):
                logger.info(
                    "Credential issued",
                    subject_id=str(subject_id),
                    valid_from=to_utc(valid_from).isoformat(),
                    valid_to=to_utc(valid_to).isoformat(),
                    attempt=attempt,
                )
                return token
            logger.warning("Credential token collision", attempt=attempt)

        raise CredentialConflictError(
            f"Could not issue a unique credential after {self.max_attempts} attempts"
        )

    async def redeem(self, token: str, now: datetime) -> RedemptionResult:
        """
        Consume a credential.

        On a late redemption the EXPIRED transition is flushed before
        ExpiredError is raised; the caller decides whether to commit it.
        """
        permission = await self.permissions.get_by_token(token)
        if permission is None:
            raise NotFoundError("Credential not found")

        self.machine.ensure_state(permission, RequestState.APPROVED)

        now = to_utc(now)
        if now > to_utc(permission.window_end):
            await self.machine.transition(permission, RequestState.EXPIRED)
            raise ExpiredError(
                "Permission window has ended",
                window_end=to_utc(permission.window_end).isoformat(),
            )

        if now < to_utc(permission.window_start):
            raise NotYetValidError(
                "Permission window has not started",
                window_start=to_utc(permission.window_start).isoformat(),
            )

        await self.machine.transition(permission, RequestState.CONSUMED)
        return RedemptionResult(permission=permission, redeemed_at=now)

    async def expire_overdue(self, now: datetime) -> int:
        """Expire every approved permission whose window ended before now."""
        count = await self.permissions.expire_overdue(to_utc(now))
        logger.info("Expired overdue permissions", count=count)
        return count
