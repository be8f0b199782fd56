"""
Request state machine.

One transition engine for every request kind carrying ResolvableMixin.
Each kind is described by its set of legal edges:

    PENDING  -> APPROVED | REJECTED          (all kinds)
    REJECTED -> PENDING                      (role grants, guardian links)
    APPROVED -> CONSUMED | EXPIRED           (access permissions)

Transitions are persisted through ResolvableRepository.compare_and_set,
so a transition only lands if the row is still in the state this
process saw. Losing that race surfaces as InvalidStateError.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional
from uuid import UUID

import structlog

from school_approvals.core.errors import InvalidStateError
from school_approvals.models.base import RequestState
from school_approvals.repositories.base import ModelT, ResolvableRepository

logger = structlog.get_logger(__name__)

Edge = tuple[RequestState, RequestState]


class Decision(str, Enum):
    """Approver's verdict on a pending request."""

    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def from_bool(cls, approved: bool) -> "Decision":
        return cls.APPROVE if approved else cls.REJECT

    @property
    def target_state(self) -> RequestState:
        return RequestState.APPROVED if self == Decision.APPROVE else RequestState.REJECTED


RESOLUTION_EDGES: frozenset[Edge] = frozenset({
    (RequestState.PENDING, RequestState.APPROVED),
    (RequestState.PENDING, RequestState.REJECTED),
})

# Role grants and guardian links are reopened in place after a rejection
REOPENABLE_EDGES: frozenset[Edge] = RESOLUTION_EDGES | {
    (RequestState.REJECTED, RequestState.PENDING),
}

# Access permissions never reopen; approval leads to usage or expiry
PERMISSION_EDGES: frozenset[Edge] = RESOLUTION_EDGES | {
    (RequestState.APPROVED, RequestState.CONSUMED),
    (RequestState.APPROVED, RequestState.EXPIRED),
}


class RequestStateMachine(Generic[ModelT]):
    """
    Applies legal transitions to one request kind.

    Usage:
        machine = RequestStateMachine(RoleGrantRepository(db), REOPENABLE_EDGES)
        machine.ensure_state(grant, RequestState.PENDING)
        await machine.resolve(grant, approver_id, Decision.APPROVE, now=utc_now())
    """

    def __init__(self, repository: ResolvableRepository[ModelT], edges: frozenset[Edge]):
        self.repository = repository
        self.edges = edges

    @property
    def kind(self) -> str:
        return self.repository.model.__name__

    def can_transition(self, source: RequestState, target: RequestState) -> bool:
        return (source, target) in self.edges

    def ensure_state(self, entity: ModelT, expected: RequestState) -> None:
        """Raise InvalidStateError unless the entity is in the expected state."""
        if entity.state != expected:
            raise InvalidStateError(
                f"{self.kind} is {entity.state.value}, expected {expected.value}",
                state=entity.state.value,
            )

    def ensure_pending(self, entity: ModelT) -> None:
        self.ensure_state(entity, RequestState.PENDING)

    async def transition(self, entity: ModelT, target: RequestState, **values: Any) -> ModelT:
        """
        Move entity to target, writing values in the same statement.

        Raises InvalidStateError for an illegal edge, or when another
        caller changed the row first.
        """
        source = entity.state
        if not self.can_transition(source, target):
            raise InvalidStateError(
                f"{self.kind} cannot go from {source.value} to {target.value}",
                state=source.value,
            )

        changed = await self.repository.compare_and_set(entity, source, state=target, **values)
        if not changed:
            raise InvalidStateError(
                f"{self.kind} was modified concurrently and is now {entity.state.value}",
                state=entity.state.value,
            )

        logger.info(
            "Request transitioned",
            kind=self.kind,
            key={k: str(v) for k, v in self.repository.key_of(entity).items()},
            source=source.value,
            target=target.value,
        )
        return entity

    async def resolve(
        self,
        entity: ModelT,
        approver_id: UUID,
        decision: Decision,
        now: datetime,
        comment: Optional[str] = None,
        **values: Any,
    ) -> ModelT:
        """PENDING -> APPROVED/REJECTED, recording approver, time and comment."""
        return await self.transition(
            entity,
            decision.target_state,
            approver_id=approver_id,
            resolved_at=now,
            comment=comment,
            **values,
        )

    async def reopen(self, entity: ModelT, **values: Any) -> ModelT:
        """REJECTED -> PENDING, clearing the previous resolution."""
        return await self.transition(
            entity,
            RequestState.PENDING,
            approver_id=None,
            resolved_at=None,
            comment=None,
            **values,
        )
