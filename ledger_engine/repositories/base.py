"""
Base repository.

Generic reads and writes shared by the ledger repositories. Ledger rows
are append-only, so there is no delete.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository for one model class.

    Example:
        class PlanRepository(BaseRepository[Plan]):
            def __init__(self, session: AsyncSession):
                super().__init__(Plan, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get entity by primary key."""
        return await self.session.get(self.model, id)

    async def get_for_update(self, id: int) -> ModelType | None:
        """
        Get entity by ID with a row lock (SELECT ... FOR UPDATE).

        populate_existing reloads an instance already in the identity
        map, so balances written by other sessions are seen.
        """
        stmt = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by(self, **filters: Any) -> ModelType | None:
        """Get the single entity matching column filters."""
        result = await self.session.execute(
            select(self.model).filter_by(**filters)
        )
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Insert a new entity and flush it so its ID is assigned.

        Args:
            **data: Column values

        Returns:
            Created entity
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    async def update(
        self, id: int, for_update: bool = False, **data: Any
    ) -> ModelType | None:
        """
        Update entity columns by ID.

        Args:
            id: Entity ID
            for_update: Lock the row before changing it
            **data: Column values

        Returns:
            Updated entity or None if not found
        """
        loader = self.get_for_update if for_update else self.get_by_id
        entity = await loader(id)
        if entity is None:
            return None

        for key, value in data.items():
            setattr(entity, key, value)
        await self.session.flush()
        await self.session.refresh(entity)
        return entity

    def _count_stmt(self, **filters: Any) -> Select:
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = stmt.filter_by(**filters)
        return stmt

    async def count(self, **filters: Any) -> int:
        """Count entities matching column filters."""
        result = await self.session.execute(self._count_stmt(**filters))
        return result.scalar() or 0

    async def exists(self, **filters: Any) -> bool:
        """Check whether any entity matches column filters."""
        return await self.count(**filters) > 0

    async def find_paginated(
        self,
        page: int = 1,
        per_page: int = 100,
        newest_first: bool = False,
        **filters: Any,
    ) -> tuple[list[ModelType], int]:
        """
        Get one page of entities and the total match count.

        Args:
            page: Page number, 1-indexed
            per_page: Items per page
            newest_first: Order by descending ID
            **filters: Column filters

        Returns:
            Tuple of (items, total_count)
        """
        page = max(page, 1)
        total = await self.count(**filters)

        order = self.model.id.desc() if newest_first else self.model.id
        stmt = (
            select(self.model)
            .filter_by(**filters)
            .order_by(order)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
