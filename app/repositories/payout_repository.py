"""
Payout repository.

Data access layer for Payout model.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import IN_FLIGHT_PAYOUT_STATUSES, PayoutStatus
from app.models.payout import Payout
from app.repositories.base import BaseRepository
from app.utils.money import to_money


class PayoutRepository(BaseRepository[Payout]):
    """Payout repository with reconciliation queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payout repository."""
        super().__init__(Payout, session)

    async def affiliates_with_payout_in_flight(self, affiliate_ids: list[int]) -> set[int]:
        """
        Which of the given affiliates already have a pending/processing payout.

        Args:
            affiliate_ids: Candidate affiliate IDs

        Returns:
            Subset of IDs with a payout in flight
        """
        if not affiliate_ids:
            return set()
        stmt = select(Payout.affiliate_id).where(
            Payout.affiliate_id.in_(affiliate_ids),
            Payout.status.in_([s.value for s in IN_FLIGHT_PAYOUT_STATUSES]),
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def find_processing_with_batch(self) -> list[Payout]:
        """Processing payouts that carry an external batch id."""
        stmt = (
            select(Payout)
            .where(
                Payout.status == PayoutStatus.PROCESSING,
                Payout.paypal_batch_id.is_not(None),
            )
            .order_by(Payout.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_batch(self, batch_id: str) -> list[Payout]:
        """All payouts created from one external batch."""
        return await self.find_by(paypal_batch_id=batch_id)

    async def get_by_batch_and_affiliate(self, batch_id: str, affiliate_id: int) -> Payout | None:
        """Payout for one affiliate within a batch."""
        return await self.get_by(paypal_batch_id=batch_id, affiliate_id=affiliate_id)

    async def get_by_item_id(self, item_id: str) -> Payout | None:
        """Payout by external item id."""
        return await self.get_by(paypal_payout_item_id=item_id)

    async def transition(
        self,
        payout_id: int,
        from_statuses: tuple[str, ...],
        **values: Any,
    ) -> bool:
        """
        Conditionally update a payout's status.

        The WHERE clause on the current status makes concurrent callers
        race on the row: exactly one sees rowcount 1.

        Args:
            payout_id: Payout ID
            from_statuses: Statuses the payout must currently be in
            **values: Columns to set

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(Payout)
            .where(Payout.id == payout_id, Payout.status.in_(list(from_statuses)))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) == 1

    async def completed_total_for_affiliate(self, affiliate_id: int) -> Decimal:
        """Sum of completed payout amounts for an affiliate."""
        stmt = select(func.coalesce(func.sum(Payout.amount), 0)).where(
            Payout.affiliate_id == affiliate_id,
            Payout.status == PayoutStatus.COMPLETED,
        )
        result = await self.session.execute(stmt)
        return to_money(result.scalar())
