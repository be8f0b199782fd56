"""
Permission checking dependencies.
"""

from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_approvals.models.user import User
from school_approvals.services.directory import DirectoryService
from .database import get_db
from .auth import get_current_user


async def require_admin(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Require an APPROVED admin role grant.

    Usage:
    ```python
    @router.post("/vencidos")
    async def sweep(admin: AdminUser):
        ...
    ```
    """
    if not await DirectoryService(db).is_admin(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user


AdminUser = Annotated[User, Depends(require_admin)]
