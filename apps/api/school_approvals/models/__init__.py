"""
Database models.
"""

from .base import (
    Base,
    TimestampMixin,
    UUIDMixin,
    ResolvableMixin,
    RequestState,
)
from .user import User
from .school import (
    Role,
    RoleKind,
    Course,
    TeacherProfile,
    TeacherCourse,
    StudentProfile,
    ParentProfile,
)
from .approvals import RoleGrant, GuardianLink
from .permissions import AccessPermission, PermissionKind
from .notification import Notification

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "ResolvableMixin",
    "RequestState",
    # Directory
    "User",
    "Role",
    "RoleKind",
    "Course",
    "TeacherProfile",
    "TeacherCourse",
    "StudentProfile",
    "ParentProfile",
    # Requests
    "RoleGrant",
    "GuardianLink",
    "AccessPermission",
    "PermissionKind",
    # Notifications
    "Notification",
]
