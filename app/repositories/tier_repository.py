"""
Tier repository.

Data access layer for Tier model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tier import Tier
from app.repositories.base import BaseRepository


class TierRepository(BaseRepository[Tier]):
    """Tier repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize tier repository."""
        super().__init__(Tier, session)

    async def list_ordered(self) -> list[Tier]:
        """Tier ladder, lowest first."""
        stmt = select(Tier).order_by(Tier.sort_order, Tier.min_referrals)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_slug(self, slug: str) -> Tier | None:
        """Get tier by slug."""
        return await self.get_by(slug=slug)
