"""
Base repository with common data access operations.
"""

from typing import TypeVar, Generic, Type, Any
from uuid import UUID
from sqlalchemy import Select, delete, inspect, select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from school_approvals.models.base import Base, RequestState

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Base repository providing common data access operations.

    Usage:
        class RoleGrantRepository(BaseRepository[RoleGrant]):
            model = RoleGrant

        repo = RoleGrantRepository(db)
        grant = await repo.get_one(user_id=user_id, role_id=role_id)
    """

    model: Type[ModelT]

    def __init__(self, db: AsyncSession):
        self.db = db

    def _base_query(self) -> Select:
        """Base query - override to add default filters."""
        return select(self.model)

    def _filtered(self, stmt: Select, filters: dict[str, Any]) -> Select:
        for field, value in filters.items():
            if value is not None:
                stmt = stmt.where(getattr(self.model, field) == value)
        return stmt

    async def get_by_id(self, id: UUID | str) -> ModelT | None:
        """Get entity by ID."""
        if isinstance(id, str):
            id = UUID(id)
        stmt = self._base_query().where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_one(self, **filters) -> ModelT | None:
        """Get single entity by filters."""
        stmt = self._base_query()
        for field, value in filters.items():
            stmt = stmt.where(getattr(self.model, field) == value)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def exists(self, **filters) -> bool:
        """Check if entity exists."""
        stmt = select(func.count()).select_from(self.model)
        for field, value in filters.items():
            stmt = stmt.where(getattr(self.model, field) == value)
        count = await self.db.scalar(stmt)
        return (count or 0) > 0

    async def all(self, order_by: str | None = None, descending: bool = False, **filters) -> list[ModelT]:
        """Get all entities matching filters. None-valued filters are ignored."""
        stmt = self._filtered(self._base_query(), filters)
        if order_by:
            column = getattr(self.model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **data) -> ModelT:
        """Create new entity."""
        entity = self.model(**data)
        self.db.add(entity)
        await self.db.flush()
        await self.db.refresh(entity)
        return entity


class ResolvableRepository(BaseRepository[ModelT]):
    """
    Repository for models carrying ResolvableMixin.

    State changes never go through attribute assignment. They are issued
    as one conditional UPDATE guarded by the state the caller last saw, so
    when two callers race on the same row exactly one of them matches.

    Usage:
        changed = await repo.compare_and_set(
            grant,
            RequestState.PENDING,
            state=RequestState.APPROVED,
            approver_id=approver_id,
        )
        if not changed:
            raise InvalidStateError("Request was resolved by someone else")
    """

    def key_of(self, entity: ModelT) -> dict[str, Any]:
        """Primary key values of an entity, by attribute name."""
        mapper = inspect(self.model)
        keys = [mapper.get_property_by_column(column).key for column in mapper.primary_key]
        return {key: getattr(entity, key) for key in keys}

    async def compare_and_set(
        self,
        entity: ModelT,
        expected: RequestState,
        **values,
    ) -> bool:
        """
        Apply values only if the row is still in the expected state.

        Returns True when the row was updated; the entity is refreshed
        from the database either way.
        """
        key = self.key_of(entity)
        stmt = (
            update(self.model)
            .where(*[getattr(self.model, k) == v for k, v in key.items()])
            .where(self.model.state == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.refresh(entity)
        return result.rowcount == 1

    async def delete_if(self, entity: ModelT, expected: RequestState) -> bool:
        """Delete the row only if it is still in the expected state."""
        key = self.key_of(entity)
        stmt = (
            delete(self.model)
            .where(*[getattr(self.model, k) == v for k, v in key.items()])
            .where(self.model.state == expected)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 1:
            self.db.expunge(entity)
            return True
        return False
