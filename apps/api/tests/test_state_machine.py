"""
Tests for the request state machine and compare-and-set updates.
"""

from datetime import timedelta

import pytest
from sqlalchemy import update

from school_approvals.core.errors import InvalidStateError
from school_approvals.models import AccessPermission, RequestState, RoleGrant
from school_approvals.repositories import AccessPermissionRepository, RoleGrantRepository
from school_approvals.services.state_machine import (
    PERMISSION_EDGES,
    REOPENABLE_EDGES,
    Decision,
    RequestStateMachine,
)
from school_approvals.utils.timezone import to_utc

from conftest import T0


@pytest.fixture
def grant_machine(db):
    return RequestStateMachine(RoleGrantRepository(db), REOPENABLE_EDGES)


@pytest.fixture
def permission_machine(db):
    return RequestStateMachine(AccessPermissionRepository(db), PERMISSION_EDGES)


def test_decision_from_bool():
    assert Decision.from_bool(True) is Decision.APPROVE
    assert Decision.from_bool(False) is Decision.REJECT
    assert Decision.APPROVE.target_state == RequestState.APPROVED
    assert Decision.REJECT.target_state == RequestState.REJECTED


def test_edge_sets():
    assert (RequestState.REJECTED, RequestState.PENDING) in REOPENABLE_EDGES
    assert (RequestState.REJECTED, RequestState.PENDING) not in PERMISSION_EDGES
    assert (RequestState.APPROVED, RequestState.CONSUMED) in PERMISSION_EDGES
    assert (RequestState.APPROVED, RequestState.CONSUMED) not in REOPENABLE_EDGES
    # Terminal states have no way out
    for source, _ in REOPENABLE_EDGES | PERMISSION_EDGES:
        assert source not in (RequestState.CONSUMED, RequestState.EXPIRED)


@pytest.mark.asyncio
async def test_resolve_records_approver_time_and_comment(db, school, grant_machine):
    admin = await school.admin()
    user = await school.user()
    grant = await school.grant(user, "estudiante", RequestState.PENDING)

    await grant_machine.resolve(grant, admin.id, Decision.APPROVE, T0, "Bienvenido")

    assert grant.state == RequestState.APPROVED
    assert grant.approver_id == admin.id
    assert to_utc(grant.resolved_at) == T0
    assert grant.comment == "Bienvenido"


@pytest.mark.asyncio
async def test_ensure_pending_rejects_resolved_request(db, school, grant_machine):
    user = await school.user()
    grant = await school.grant(user, "estudiante", RequestState.APPROVED)

    with pytest.raises(InvalidStateError):
        grant_machine.ensure_pending(grant)


@pytest.mark.asyncio
async def test_illegal_edge_is_refused(db, school, grant_machine):
    admin = await school.admin()
    user = await school.user()
    grant = await school.grant(user, "estudiante", RequestState.APPROVED)

    with pytest.raises(InvalidStateError):
        await grant_machine.resolve(grant, admin.id, Decision.REJECT, T0)
    with pytest.raises(InvalidStateError):
        await grant_machine.transition(grant, RequestState.CONSUMED)

    assert grant.state == RequestState.APPROVED


@pytest.mark.asyncio
async def test_consumed_permission_is_terminal(db, school, permission_machine):
    course = await school.course()
    parent = await school.parent()
    permission = await school.permission(
        parent, course, T0, T0 + timedelta(hours=1),
        state=RequestState.CONSUMED, token="spent",
    )

    for target in (RequestState.APPROVED, RequestState.EXPIRED, RequestState.PENDING):
        with pytest.raises(InvalidStateError):
            await permission_machine.transition(permission, target)


@pytest.mark.asyncio
async def test_stale_entity_loses_the_race(db, school, grant_machine):
    """A transition based on an outdated read never overwrites the winner."""
    winner = await school.admin("Winner")
    loser = await school.admin("Loser")
    user = await school.user()
    grant = await school.grant(user, "estudiante", RequestState.PENDING)

    # Another request resolves the row behind this session's back
    await db.execute(
        update(RoleGrant)
        .where(RoleGrant.user_id == grant.user_id, RoleGrant.role_id == grant.role_id)
        .values(state=RequestState.REJECTED, approver_id=winner.id)
        .execution_options(synchronize_session=False)
    )
    assert grant.state == RequestState.PENDING

    with pytest.raises(InvalidStateError):
        await grant_machine.resolve(grant, loser.id, Decision.APPROVE, T0)

    assert grant.state == RequestState.REJECTED
    assert grant.approver_id == winner.id


@pytest.mark.asyncio
async def test_two_sessions_resolve_the_same_grant(db, fresh_session, school):
    """Two approvers holding their own copy of a pending grant: exactly one wins."""
    first = await school.admin("First")
    second = await school.admin("Second")
    user = await school.user()
    grant = await school.grant(user, "estudiante", RequestState.PENDING)
    key = (grant.user_id, grant.role_id)
    first_id, second_id = first.id, second.id

    grant_a = await db.get(RoleGrant, key)
    grant_b = await fresh_session.get(RoleGrant, key)
    assert grant_a.state == grant_b.state == RequestState.PENDING

    machine_a = RequestStateMachine(RoleGrantRepository(db), REOPENABLE_EDGES)
    machine_b = RequestStateMachine(RoleGrantRepository(fresh_session), REOPENABLE_EDGES)

    await machine_a.resolve(grant_a, first_id, Decision.APPROVE, T0, "Primero")
    await db.commit()

    with pytest.raises(InvalidStateError):
        await machine_b.resolve(grant_b, second_id, Decision.REJECT, T0, "Segundo")

    assert grant_b.state == RequestState.APPROVED
    assert grant_b.approver_id == first_id
    assert grant_b.comment == "Primero"


@pytest.mark.asyncio
async def test_reopen_clears_previous_resolution(db, school, grant_machine):
    admin = await school.admin()
    user = await school.user()
    grant = await school.grant(user, "estudiante", RequestState.PENDING)
    await grant_machine.resolve(grant, admin.id, Decision.REJECT, T0, "Falta documentación")

    await grant_machine.reopen(grant)

    assert grant.state == RequestState.PENDING
    assert grant.approver_id is None
    assert grant.resolved_at is None
    assert grant.comment is None


@pytest.mark.asyncio
async def test_compare_and_set_reports_mismatch(db, school):
    course = await school.course()
    parent = await school.parent()
    permission = await school.permission(parent, course, T0, T0 + timedelta(hours=1))
    repo = AccessPermissionRepository(db)

    assert repo.key_of(permission) == {"id": permission.id}
    assert not await repo.compare_and_set(permission, RequestState.APPROVED, title="Changed")
    assert permission.title != "Changed"
    assert await repo.compare_and_set(permission, RequestState.PENDING, title="Changed")
    assert permission.title == "Changed"

    stored = await db.get(AccessPermission, permission.id)
    assert stored.title == "Changed"
