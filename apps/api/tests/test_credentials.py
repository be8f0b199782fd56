"""
Tests for credential issuing and redemption.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from school_approvals.core.errors import (
    CredentialConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    NotYetValidError,
)
from school_approvals.models import AccessPermission, PermissionKind, RequestState
from school_approvals.repositories import AccessPermissionRepository
from school_approvals.schemas.permissions import PermissionCreate
from school_approvals.services.credentials import CredentialIssuer, generate_token
from school_approvals.services.notifications import NotificationDispatcher
from school_approvals.services.workflow import WorkflowService

from conftest import T0


async def _approved(school, start, end, token="qr-token"):
    course = await school.course()
    parent = await school.parent()
    return await school.permission(
        parent, course, start, end, state=RequestState.APPROVED, token=token
    )


def test_generate_token_is_url_safe_and_random():
    tokens = {generate_token() for _ in range(20)}
    assert len(tokens) == 20
    for token in tokens:
        assert len(token) >= 32
        assert all(c.isalnum() or c in "-_" for c in token)


@pytest.mark.asyncio
async def test_redeem_inside_window_once(db, school, workflow, clock):
    """Too early, then accepted, then spent."""
    permission = await _approved(school, T0 + timedelta(hours=1), T0 + timedelta(hours=2))

    clock.set(T0 + timedelta(minutes=30))
    with pytest.raises(NotYetValidError):
        await workflow.redeem("qr-token")
    await db.refresh(permission)
    assert permission.state == RequestState.APPROVED

    clock.set(T0 + timedelta(minutes=90))
    result = await workflow.redeem("qr-token")
    assert result.permission.id == permission.id
    assert result.permission.state == RequestState.CONSUMED
    assert result.redeemed_at == T0 + timedelta(minutes=90)

    clock.set(T0 + timedelta(minutes=91))
    with pytest.raises(InvalidStateError):
        await workflow.redeem("qr-token")


@pytest.mark.asyncio
async def test_redeem_at_window_end_is_accepted(db, school, workflow, clock):
    await _approved(school, T0 + timedelta(hours=1), T0 + timedelta(hours=2))

    clock.set(T0 + timedelta(hours=2))
    result = await workflow.redeem("qr-token")

    assert result.permission.state == RequestState.CONSUMED


@pytest.mark.asyncio
async def test_late_redeem_expires_permission(db, fresh_session, school, workflow):
    permission = await _approved(school, T0 - timedelta(hours=2), T0 - timedelta(hours=1))

    with pytest.raises(ExpiredError):
        await workflow.redeem("qr-token")

    stored = await fresh_session.get(AccessPermission, permission.id)
    assert stored.state == RequestState.EXPIRED

    with pytest.raises(InvalidStateError):
        await workflow.redeem("qr-token")


@pytest.mark.asyncio
async def test_redeem_unknown_or_unapproved(db, school, workflow):
    course = await school.course()
    parent = await school.parent()
    await school.permission(
        parent, course, T0, T0 + timedelta(hours=1), state=RequestState.REJECTED, token="rejected"
    )

    with pytest.raises(NotFoundError):
        await workflow.redeem("no-such-token")
    with pytest.raises(InvalidStateError):
        await workflow.redeem("rejected")


@pytest.mark.asyncio
async def test_issue_retries_on_collision(db, school):
    await _approved(school, T0, T0 + timedelta(hours=1), token="taken")
    tokens = iter(["taken", "taken", "fresh"])
    issuer = CredentialIssuer(AccessPermissionRepository(db), token_factory=lambda: next(tokens))

    token = await issuer.issue(uuid4(), T0, T0 + timedelta(hours=1))

    assert token == "fresh"


@pytest.mark.asyncio
async def test_issue_gives_up_after_max_attempts(db, school):
    await _approved(school, T0, T0 + timedelta(hours=1), token="taken")
    calls = []

    def factory():
        calls.append(1)
        return "taken"

    issuer = CredentialIssuer(AccessPermissionRepository(db), token_factory=factory, max_attempts=3)

    with pytest.raises(CredentialConflictError):
        await issuer.issue(uuid4(), T0, T0 + timedelta(hours=1))
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_credential_conflict_leaves_permission_pending(db, school, channel, clock):
    course = await school.course()
    tutor = await school.teacher(course)
    student = await school.student(course)
    parent = await school.parent()
    await school.link(parent, student)
    await _approved(school, T0, T0 + timedelta(hours=1), token="taken")

    issuer = CredentialIssuer(
        AccessPermissionRepository(db), token_factory=lambda: "taken", max_attempts=2
    )
    workflow = WorkflowService(db, NotificationDispatcher([channel]), clock=clock, issuer=issuer)
    permission = await workflow.create_permission(
        parent.id,
        PermissionCreate(
            course_id=course.id,
            kind=PermissionKind.EVENT,
            title="Casa abierta",
            window_start=T0 + timedelta(hours=1),
            window_end=T0 + timedelta(hours=4),
        ),
    )

    with pytest.raises(CredentialConflictError):
        await workflow.resolve_permission(permission.id, tutor.id, True)

    await db.refresh(permission)
    assert permission.state == RequestState.PENDING
    assert permission.credential_token is None


class ScriptedIssuer:
    """Hands out a fixed sequence of tokens without checking them first."""

    def __init__(self, *tokens):
        self.tokens = list(tokens)
        self.max_attempts = len(tokens)
        self.issued = []

    async def issue(self, subject_id, valid_from, valid_to):
        token = self.tokens[len(self.issued)]
        self.issued.append(token)
        return token


async def _pending_with_taken_token(school):
    """A pending permission, its tutor, and an approved row already holding 'taken'."""
    course = await school.course()
    tutor = await school.teacher(course)
    student = await school.student(course)
    parent = await school.parent()
    await school.link(parent, student)
    await _approved(school, T0, T0 + timedelta(hours=1), token="taken")
    permission = await school.permission(parent, course, T0 + timedelta(hours=1), T0 + timedelta(hours=4))
    return permission.id, tutor.id


@pytest.mark.asyncio
async def test_token_collision_on_write_draws_a_new_token(db, school, channel, clock):
    """The unique index rejects a token claimed after the issuer's check."""
    permission_id, tutor_id = await _pending_with_taken_token(school)
    issuer = ScriptedIssuer("taken", "fresh")
    workflow = WorkflowService(db, NotificationDispatcher([channel]), clock=clock, issuer=issuer)

    permission = await workflow.resolve_permission(permission_id, tutor_id, True, "Adelante")

    assert issuer.issued == ["taken", "fresh"]
    assert permission.state == RequestState.APPROVED
    assert permission.credential_token == "fresh"
    assert permission.approver_id == tutor_id
    assert permission.comment == "Adelante"


@pytest.mark.asyncio
async def test_token_collision_on_every_write_is_conflict(db, fresh_session, school, channel, clock):
    permission_id, tutor_id = await _pending_with_taken_token(school)
    issuer = ScriptedIssuer("taken", "taken")
    workflow = WorkflowService(db, NotificationDispatcher([channel]), clock=clock, issuer=issuer)

    with pytest.raises(CredentialConflictError):
        await workflow.resolve_permission(permission_id, tutor_id, True)

    assert len(issuer.issued) == 2
    stored = await fresh_session.get(AccessPermission, permission_id)
    assert stored.state == RequestState.PENDING
    assert stored.credential_token is None
    assert channel.sent == []


@pytest.mark.asyncio
async def test_expire_overdue_sweep(db, fresh_session, school, workflow):
    course = await school.course()
    parent = await school.parent()
    ended = await school.permission(
        parent, course, T0 - timedelta(hours=3), T0 - timedelta(hours=1),
        state=RequestState.APPROVED, token="ended",
    )
    running = await school.permission(
        parent, course, T0 - timedelta(hours=1), T0 + timedelta(hours=1),
        state=RequestState.APPROVED, token="running",
    )
    pending = await school.permission(
        parent, course, T0 - timedelta(hours=3), T0 - timedelta(hours=1),
    )

    assert await workflow.expire_overdue() == 1

    states = {
        p.id: (await fresh_session.get(AccessPermission, p.id)).state
        for p in (ended, running, pending)
    }
    assert states == {
        ended.id: RequestState.EXPIRED,
        running.id: RequestState.APPROVED,
        pending.id: RequestState.PENDING,
    }
