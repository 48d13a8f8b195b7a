"""
Manual review queue.

Conflicts the ledger cannot resolve on its own. Items are written in the
caller's transaction: losing one would lose track of money.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReviewKind
from app.models.manual_review_item import ManualReviewItem
from app.repositories.manual_review_repository import ManualReviewRepository


class ManualReviewQueue:
    """Enqueue ledger conflicts for a human decision."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.repo = ManualReviewRepository(session)

    async def enqueue(
        self,
        kind: ReviewKind,
        *,
        affiliate_id: int | None = None,
        referral_id: int | None = None,
        payout_id: int | None = None,
        details: dict | None = None,
    ) -> ManualReviewItem:
        """Add an item; the caller commits."""
        item = await self.repo.create(
            kind=kind,
            affiliate_id=affiliate_id,
            referral_id=referral_id,
            payout_id=payout_id,
            details=details,
        )
        logger.warning(
            f"Manual review item {item.id} queued: {kind}",
            extra={"affiliate_id": affiliate_id, "referral_id": referral_id, "payout_id": payout_id},
        )
        return item
