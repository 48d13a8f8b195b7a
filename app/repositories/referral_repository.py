"""
Referral repository.

Data access layer for Referral model, including the window counts the
fraud engine needs and the aggregates behind balance derivation.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import COUNTED_REFERRAL_STATUSES, EARNED_REFERRAL_STATUSES, ReferralStatus
from app.models.referral import Referral
from app.repositories.base import BaseRepository
from app.utils.money import to_money


@dataclass(frozen=True)
class ReferralTotals:
    """Aggregates over one affiliate's referral rows."""

    count: int
    revenue: Decimal
    commission_earned: Decimal


class ReferralRepository(BaseRepository[Referral]):
    """Referral repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(Referral, session)

    async def get_by_order_id(self, order_id: str) -> Referral | None:
        """Get referral by external order/charge id (dedup key)."""
        return await self.get_by(order_id=order_id)

    async def exists_for_order(self, order_id: str) -> bool:
        """Check whether an event was already recorded."""
        stmt = select(Referral.id).where(Referral.order_id == order_id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def count_for_affiliate_between(
        self,
        affiliate_id: int,
        start: datetime,
        end: datetime | None = None,
    ) -> int:
        """
        Count an affiliate's referrals created in [start, end).

        Args:
            affiliate_id: Affiliate ID
            start: Window start (inclusive)
            end: Window end (exclusive); open-ended if None
        """
        stmt = select(func.count(Referral.id)).where(
            Referral.affiliate_id == affiliate_id,
            Referral.created_at >= start,
        )
        if end is not None:
            stmt = stmt.where(Referral.created_at < end)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_all_since(self, since: datetime) -> int:
        """Count referrals from all affiliates created since a moment."""
        stmt = select(func.count(Referral.id)).where(Referral.created_at >= since)
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def totals_for_affiliate(self, affiliate_id: int) -> ReferralTotals:
        """
        Re-derive an affiliate's referral aggregates from raw rows.

        count/revenue cover pending, approved and paid rows; earned
        commission covers approved and paid rows.
        """
        counted = select(
            func.count(Referral.id),
            func.coalesce(func.sum(Referral.order_total), 0),
        ).where(
            Referral.affiliate_id == affiliate_id,
            Referral.status.in_([s.value for s in COUNTED_REFERRAL_STATUSES]),
        )
        earned = select(
            func.coalesce(func.sum(Referral.commission_amount), 0),
        ).where(
            Referral.affiliate_id == affiliate_id,
            Referral.status.in_([s.value for s in EARNED_REFERRAL_STATUSES]),
        )

        count, revenue = (await self.session.execute(counted)).one()
        commission = (await self.session.execute(earned)).scalar()

        return ReferralTotals(
            count=int(count or 0),
            revenue=to_money(revenue),
            commission_earned=to_money(commission),
        )

    async def mark_approved_as_paid(
        self, affiliate_id: int, payout_id: int, paid_at: datetime
    ) -> int:
        """
        Mark every approved referral of an affiliate as paid.

        Only rows still in approved are touched, so repeating the call is
        harmless.

        Returns:
            Number of referrals marked paid
        """
        stmt = (
            update(Referral)
            .where(
                Referral.affiliate_id == affiliate_id,
                Referral.status == ReferralStatus.APPROVED,
            )
            .values(status=ReferralStatus.PAID, paid_at=paid_at, payout_id=payout_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def list_for_affiliate(
        self, affiliate_id: int, status: str | None = None
    ) -> list[Referral]:
        """Referrals of one affiliate, optionally filtered by status."""
        filters = {"affiliate_id": affiliate_id}
        if status:
            filters["status"] = status
        return await self.find_by(**filters)
