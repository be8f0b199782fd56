"""
Notification fan-out for workflow transitions.

Delivery is best-effort: the dispatcher runs after the transition has
been committed, logs every failure and never raises, so an approval
stands even if nobody hears about it.
"""

from typing import Iterable, Optional
from uuid import UUID

import structlog

from school_approvals.core.interfaces.notifications import (
    Notification,
    NotificationCategory,
    NotificationChannel,
    NotificationType,
)
from school_approvals.models.approvals import GuardianLink, RoleGrant
from school_approvals.models.base import RequestState
from school_approvals.models.permissions import AccessPermission
from school_approvals.models.school import Role
from school_approvals.models.user import User

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """
    Sends one notification to many recipients over every channel.

    Usage:
        dispatcher = NotificationDispatcher([DatabaseNotificationChannel(db)])
        await dispatcher.dispatch([user.id], role_grant_resolved(role, grant))
    """

    def __init__(self, channels: Iterable[NotificationChannel]):
        self.channels = list(channels)

    async def dispatch(self, user_ids: Iterable[UUID], notification: Notification) -> int:
        """Fan out; returns how many deliveries succeeded."""
        recipients = list(dict.fromkeys(user_ids))
        if not recipients:
            return 0

        delivered = 0
        for channel in self.channels:
            try:
                result = await channel.send_bulk(recipients, notification)
            except Exception:
                logger.exception(
                    "Notification channel failed",
                    channel=channel.channel_type,
                    title=notification.title,
                    recipients=len(recipients),
                )
                continue

            delivered += result.sent
            if result.failed:
                logger.warning(
                    "Notification partially delivered",
                    channel=channel.channel_type,
                    title=notification.title,
                    sent=result.sent,
                    failed=result.failed,
                )
        return delivered


# ============================================================
# MESSAGES
# ============================================================

def _outcome(state: RequestState) -> tuple[str, NotificationType]:
    if state == RequestState.APPROVED:
        return "aprobada", NotificationType.SUCCESS
    return "rechazada", NotificationType.WARNING


def _with_comment(message: str, comment: Optional[str]) -> str:
    return f"{message}. Comentarios: {comment}" if comment else message


def role_grant_requested(user: User, role: Role) -> Notification:
    return Notification(
        type=NotificationType.INFO,
        category=NotificationCategory.APPROVALS,
        title="Nueva solicitud de rol",
        message=f"{user.name} solicita el rol {role.name}",
        data={"user_id": str(user.id), "role_id": role.id},
        action_url="/approvals/pendientes",
    )


def role_grant_resolved(role: Role, grant: RoleGrant) -> Notification:
    word, type_ = _outcome(grant.state)
    return Notification(
        type=type_,
        category=NotificationCategory.APPROVALS,
        title=f"Solicitud de rol {word}",
        message=_with_comment(f"Tu solicitud para el rol {role.name} fue {word}", grant.comment),
        data={"role_id": role.id, "state": grant.state.value},
    )


def guardian_link_requested(parent: User, student: User) -> Notification:
    return Notification(
        type=NotificationType.INFO,
        category=NotificationCategory.APPROVALS,
        title="Nueva solicitud de vinculación",
        message=f"{parent.name} solicita vincularse con el estudiante {student.name}",
        data={"parent_id": str(parent.id), "student_id": str(student.id)},
        action_url="/approvals/pendientes",
    )


def guardian_link_resolved(student: User, link: GuardianLink) -> Notification:
    word, type_ = _outcome(link.state)
    return Notification(
        type=type_,
        category=NotificationCategory.APPROVALS,
        title=f"Vinculación {word}",
        message=_with_comment(
            f"Tu vinculación con el estudiante {student.name} fue {word}", link.comment
        ),
        data={"student_id": str(link.student_id), "state": link.state.value},
    )


def permission_requested(parent: User, permission: AccessPermission) -> Notification:
    return Notification(
        type=NotificationType.INFO,
        category=NotificationCategory.PERMISSIONS,
        title="Nueva solicitud de permiso",
        message=f"{parent.name} solicita el permiso: {permission.title}",
        data={"permission_id": str(permission.id), "course_id": permission.course_id},
        action_url=f"/permisos/{permission.id}",
    )


def permission_resolved(permission: AccessPermission) -> Notification:
    word, type_ = _outcome(permission.state)
    return Notification(
        type=type_,
        category=NotificationCategory.PERMISSIONS,
        title="Permiso aprobado" if permission.state == RequestState.APPROVED else "Permiso rechazado",
        message=_with_comment(f"Tu solicitud '{permission.title}' fue {word}", permission.comment),
        data={"permission_id": str(permission.id), "state": permission.state.value},
        action_url=f"/permisos/{permission.id}",
    )
