"""
Affiliate stats service.

Re-derives an affiliate's aggregates from raw referral and payout rows
and re-evaluates the tier. Recomputation from rows (never incremental
counters) makes concurrent calls converge on the same answer.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import ReviewKind
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.manual_review_repository import ManualReviewRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.referral_repository import ReferralRepository
from app.repositories.tier_repository import TierRepository
from app.services.audit.review_queue import ManualReviewQueue
from app.services.base_service import BaseService
from app.services.commission.tier_evaluator import TierChange, TierRung, evaluate_tier


@dataclass
class StatsResult:
    """Outcome of a recalculation."""

    affiliate: Affiliate
    tier_change: TierChange | None = None


class AffiliateStatsService(BaseService):
    """Balance derivation and tier evaluation."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.payout_repo = PayoutRepository(session)
        self.tier_repo = TierRepository(session)
        self.review_repo = ManualReviewRepository(session)

    async def load_ladder(self) -> list[TierRung]:
        """Tier table as evaluator rungs."""
        tiers = await self.tier_repo.list_ordered()
        return [
            TierRung(
                slug=t.slug,
                name=t.name,
                min_referrals=t.min_referrals,
                commission_rate=t.commission_rate,
            )
            for t in tiers
        ]

    async def recalculate(self, affiliate_id: int) -> StatsResult | None:
        """
        Recompute totals, balance and tier for one affiliate.

        balance_owed = earned (approved + paid referrals) - completed payouts.
        A negative difference is stored as zero and queued for review.
        The caller commits.

        Args:
            affiliate_id: Affiliate ID

        Returns:
            StatsResult, or None if the affiliate does not exist
        """
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id, for_update=True)
        if affiliate is None:
            return None

        totals = await self.referral_repo.totals_for_affiliate(affiliate_id)
        paid = await self.payout_repo.completed_total_for_affiliate(affiliate_id)
        balance = totals.commission_earned - paid

        if balance < 0:
            await self._queue_negative_balance(affiliate_id, totals.commission_earned, paid)
            balance = Decimal("0.00")

        affiliate.total_referrals = totals.count
        affiliate.total_revenue = totals.revenue
        affiliate.total_commission_earned = totals.commission_earned
        affiliate.total_commission_paid = paid
        affiliate.balance_owed = balance

        tier_change = evaluate_tier(affiliate.tier, totals.count, await self.load_ladder())
        if tier_change is not None:
            affiliate.tier = tier_change.new_slug
            affiliate.commission_rate = tier_change.new_commission_rate
            self.logger.info(
                f"Affiliate {affiliate_id} upgraded {tier_change.previous_slug} -> "
                f"{tier_change.new_slug} ({tier_change.new_commission_rate})"
            )

        await self.session.flush()
        return StatsResult(affiliate=affiliate, tier_change=tier_change)

    async def _queue_negative_balance(
        self, affiliate_id: int, earned: Decimal, paid: Decimal
    ) -> None:
        already_open = await self.review_repo.exists(
            kind=ReviewKind.NEGATIVE_BALANCE, affiliate_id=affiliate_id, resolved=False
        )
        if already_open:
            return
        await ManualReviewQueue(self.session).enqueue(
            ReviewKind.NEGATIVE_BALANCE,
            affiliate_id=affiliate_id,
            details={"earned": str(earned), "paid": str(paid)},
        )
