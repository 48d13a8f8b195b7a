"""
Affiliate repository.

Data access layer for Affiliate model.
"""

from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import AffiliateStatus
from app.repositories.base import BaseRepository


class AffiliateRepository(BaseRepository[Affiliate]):
    """Affiliate repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize affiliate repository."""
        super().__init__(Affiliate, session)

    async def get_by_identity_subject(self, subject: str) -> Affiliate | None:
        """Get affiliate by identity provider subject id."""
        return await self.get_by(identity_subject=subject)

    async def get_by_email(self, email: str) -> Affiliate | None:
        """Get affiliate by email (case-insensitive)."""
        stmt = (
            select(Affiliate)
            .where(func.lower(Affiliate.email) == email.strip().lower())
            .order_by(Affiliate.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_approved_by_code(self, code: str) -> Affiliate | None:
        """
        Resolve an order's code to an approved affiliate.

        Matches referral_code or discount_code, case-insensitively.

        Args:
            code: Code as entered on the order

        Returns:
            Approved affiliate or None
        """
        normalized = code.strip().lower()
        if not normalized:
            return None
        stmt = (
            select(Affiliate)
            .where(
                or_(
                    func.lower(Affiliate.referral_code) == normalized,
                    func.lower(Affiliate.discount_code) == normalized,
                ),
                Affiliate.status == AffiliateStatus.APPROVED,
            )
            .order_by(Affiliate.id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def referral_code_taken(self, code: str) -> bool:
        """Check whether a referral code is already used (case-insensitive)."""
        stmt = select(func.count()).select_from(Affiliate).where(
            func.lower(Affiliate.referral_code) == code.lower()
        )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def list_emails(self, exclude_id: int | None = None) -> list[str]:
        """All affiliate emails, optionally excluding one affiliate."""
        stmt = select(Affiliate.email)
        if exclude_id is not None:
            stmt = stmt.where(Affiliate.id != exclude_id)
        result = await self.session.execute(stmt)
        return [row for row in result.scalars().all() if row]

    async def set_rate_for_tier(self, tier_slug: str, commission_rate: Decimal) -> int:
        """
        Propagate a tier's commission rate to affiliates in that tier.

        Existing referrals keep their snapshotted rate.

        Returns:
            Number of affiliates updated
        """
        stmt = (
            update(Affiliate)
            .where(Affiliate.tier == tier_slug)
            .values(commission_rate=commission_rate)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
