"""
ActivityLog repository.

Data access layer for ActivityLog model.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.activity_log import ActivityLog
from app.repositories.base import BaseRepository


class ActivityLogRepository(BaseRepository[ActivityLog]):
    """ActivityLog repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize activity log repository."""
        super().__init__(ActivityLog, session)

    async def count_affiliates_sharing_ip(
        self,
        ip_address: str,
        since: datetime,
        exclude_affiliate_id: int | None = None,
    ) -> int:
        """
        Count distinct affiliates seen from an IP since a moment.

        Args:
            ip_address: Client IP
            since: Window start
            exclude_affiliate_id: Affiliate being checked

        Returns:
            Number of other affiliates with activity from this IP
        """
        stmt = select(func.count(func.distinct(ActivityLog.affiliate_id))).where(
            ActivityLog.ip_address == ip_address,
            ActivityLog.created_at >= since,
            ActivityLog.affiliate_id.is_not(None),
        )
        if exclude_affiliate_id is not None:
            stmt = stmt.where(ActivityLog.affiliate_id != exclude_affiliate_id)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def list_for_affiliate(self, affiliate_id: int, limit: int = 50) -> list[ActivityLog]:
        """Most recent entries for an affiliate."""
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.affiliate_id == affiliate_id)
            .order_by(ActivityLog.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
