"""
Base repository.

Generic read and create operations for all repositories. Ledger rows
are changed through targeted UPDATE statements in the entity
repositories and are never hard-deleted.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

# Generic type for model
ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository shared by the ledger repositories.

    Type Parameters:
        ModelType: SQLAlchemy model class

    Example:
        class TierRepository(BaseRepository[Tier]):
            def __init__(self, session: AsyncSession):
                super().__init__(Tier, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int, for_update: bool = False) -> ModelType | None:
        """
        Load one row by primary key.

        Args:
            id: Row id
            for_update: Take a row lock (settlement and balance recalculation)

        Returns:
            Row or None
        """
        if not for_update:
            return await self.session.get(self.model, id)
        stmt = select(self.model).where(self.model.id == id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by(self, **filters: Any) -> ModelType | None:
        """First row matching column filters, or None."""
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by(self, **filters: Any) -> list[ModelType]:
        """All rows matching column filters, oldest first."""
        stmt = select(self.model).filter_by(**filters).order_by(self.model.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **data: Any) -> ModelType:
        """
        Add a row and flush it so the id is populated.

        The caller owns the transaction and commits.
        """
        entity = self.model(**data)
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def exists(self, **filters: Any) -> bool:
        """Whether any row matches the column filters."""
        stmt = select(self.model.id).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.first() is not None
