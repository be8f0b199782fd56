"""
Authentication dependencies.

Tokens are issued by the platform's identity provider. This service only
verifies the signature and resolves the `sub` claim to a user.

Usage:
    from school_approvals.api.dependencies.auth import CurrentUser

    @router.get("/protected")
    async def handler(user: CurrentUser):
        ...
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from school_approvals.core.config import settings
from school_approvals.models.user import User
from school_approvals.services.directory import DirectoryService
from .database import get_db

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthenticated(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT token.

    Raises:
        HTTPException 401: If not authenticated
    """
    if not credentials:
        raise _unauthenticated("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.auth.secret_key,
            algorithms=[settings.auth.algorithm],
        )
        user_id = UUID(str(payload.get("sub")))
    except (JWTError, ValueError):
        raise _unauthenticated("Invalid token")

    user = await DirectoryService(db).get_user(user_id)
    if not user:
        raise _unauthenticated("User not found")
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
