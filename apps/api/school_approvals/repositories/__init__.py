"""
Repository pattern for data access.
"""

from school_approvals.repositories.base import BaseRepository, ResolvableRepository
from school_approvals.repositories.requests import (
    AccessPermissionRepository,
    GuardianLinkRepository,
    RoleGrantRepository,
)

__all__ = [
    "BaseRepository",
    "ResolvableRepository",
    "RoleGrantRepository",
    "GuardianLinkRepository",
    "AccessPermissionRepository",
]
