"""
Repositories for the three workflow request kinds.
"""

from datetime import datetime

from sqlalchemy import update

from school_approvals.models.approvals import GuardianLink, RoleGrant
from school_approvals.models.base import RequestState
from school_approvals.models.permissions import AccessPermission
from school_approvals.repositories.base import ResolvableRepository


class RoleGrantRepository(ResolvableRepository[RoleGrant]):
    model = RoleGrant


class GuardianLinkRepository(ResolvableRepository[GuardianLink]):
    model = GuardianLink


class AccessPermissionRepository(ResolvableRepository[AccessPermission]):
    model = AccessPermission

    async def get_by_token(self, token: str) -> AccessPermission | None:
        """Get permission by its credential token."""
        return await self.get_one(credential_token=token)

    async def expire_overdue(self, now: datetime) -> int:
        """Move every APPROVED permission whose window ended to EXPIRED."""
        stmt = (
            update(AccessPermission)
            .where(AccessPermission.state == RequestState.APPROVED)
            .where(AccessPermission.window_end < now)
            .values(state=RequestState.EXPIRED)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount
