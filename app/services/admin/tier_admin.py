"""
Tier administration.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tier import Tier
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.tier_repository import TierRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.base_service import BaseService
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import InvalidRequestError, NotFoundError


class TierAdminService(BaseService):
    """Tier edits and commission rate propagation."""

    def __init__(self, session: AsyncSession, activity: ActivityLogger) -> None:
        super().__init__(session)
        self.activity = activity
        self.tier_repo = TierRepository(session)
        self.affiliate_repo = AffiliateRepository(session)

    @with_rollback_on_error
    async def update_tier(
        self,
        tier_id: int,
        name: str,
        min_referrals: int,
        commission_rate: Decimal,
        updated_by: str,
        description: str | None = None,
        perks: list | None = None,
    ) -> tuple[Tier, int]:
        """
        Update a tier and push its rate to affiliates currently in it.

        Existing referrals keep their snapshotted rate.

        Returns:
            (tier, number of affiliates whose rate was updated)
        """
        if not name:
            raise InvalidRequestError("Missing required fields")
        if commission_rate < 0 or commission_rate > 1:
            raise InvalidRequestError(f"Commission rate must be between 0 and 1: {commission_rate}")
        if min_referrals < 0:
            raise InvalidRequestError("min_referrals cannot be negative")

        tier = await self.tier_repo.get_by_id(tier_id)
        if tier is None:
            raise NotFoundError("Tier not found", tier_id=tier_id)

        tier.name = name
        tier.min_referrals = min_referrals
        tier.commission_rate = commission_rate
        tier.description = description
        tier.perks = perks
        await self.session.flush()
        affected = await self.affiliate_repo.set_rate_for_tier(tier.slug, commission_rate)
        await self.session.commit()

        self.logger.info(f"Tier {tier.slug} updated: rate {commission_rate}, {affected} affiliates")
        await self.activity.log(
            "tier_updated",
            details={
                "updated_by": updated_by,
                "tier_id": tier.id,
                "tier_name": name,
                "commission_rate": str(commission_rate),
                "affiliates_updated": affected,
            },
        )
        return tier, affected
