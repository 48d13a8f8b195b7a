"""
ManualReviewItem repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.manual_review_item import ManualReviewItem
from app.repositories.base import BaseRepository


class ManualReviewRepository(BaseRepository[ManualReviewItem]):
    """Manual review queue repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize manual review repository."""
        super().__init__(ManualReviewItem, session)

    async def list_open(self, kind: str | None = None) -> list[ManualReviewItem]:
        """Unresolved items, oldest first."""
        stmt = select(ManualReviewItem).where(ManualReviewItem.resolved.is_(False))
        if kind:
            stmt = stmt.where(ManualReviewItem.kind == kind)
        result = await self.session.execute(stmt.order_by(ManualReviewItem.id))
        return list(result.scalars().all())
