"""
Payout administration: status overrides and payout creation.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PayoutStatus
from app.models.payout import Payout
from app.repositories.payout_repository import PayoutRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.base_service import BaseService
from app.services.payout.orchestrator import PayoutBatchResult, PayoutOrchestrator
from app.services.payout.settlement import PayoutSettlementService
from app.services.payout.transitions import RemoteResult
from app.utils.datetime_utils import utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import (
    InvalidRequestError,
    InvalidStatusTransitionError,
    NotFoundError,
    PayoutImmutableError,
)


class PayoutAdminService(BaseService):
    """Admin overrides routed through the shared settlement path."""

    def __init__(
        self,
        session: AsyncSession,
        settlement: PayoutSettlementService,
        orchestrator: PayoutOrchestrator,
        activity: ActivityLogger,
    ) -> None:
        super().__init__(session)
        self.settlement = settlement
        self.orchestrator = orchestrator
        self.activity = activity
        self.payout_repo = PayoutRepository(session)

    async def create_payouts(
        self,
        affiliate_ids: list[int],
        method: str,
        created_by: str,
        notes: str | None = None,
    ) -> PayoutBatchResult:
        """Create payouts for the selected affiliates."""
        if not affiliate_ids:
            raise InvalidRequestError("Missing required fields")
        return await self.orchestrator.create_payouts(
            affiliate_ids, method, created_by=created_by, notes=notes
        )

    @with_rollback_on_error
    async def set_status(
        self,
        payout_id: int,
        status: str,
        changed_by: str,
        failure_reason: str | None = None,
    ) -> Payout:
        """
        Override a payout's status.

        completed and failed go through settlement so referrals, stats
        and notifications follow exactly as for processor events.

        Raises:
            InvalidRequestError: Unknown status
            NotFoundError: Payout does not exist
            PayoutImmutableError: Payout is already completed
            InvalidStatusTransitionError: Change not allowed
        """
        try:
            target = PayoutStatus(status)
        except ValueError as e:
            raise InvalidRequestError(f"Invalid status: {status}") from e

        payout = await self.payout_repo.get_by_id(payout_id)
        if payout is None:
            raise NotFoundError("Payout not found", payout_id=payout_id)
        if payout.status == PayoutStatus.COMPLETED:
            raise PayoutImmutableError("Completed payouts cannot be changed", payout_id=payout_id)

        source = f"admin:{changed_by}"
        if target in (PayoutStatus.COMPLETED, PayoutStatus.FAILED):
            remote = RemoteResult(
                status=target.value,
                observed_at=utc_now(),
                failure_reason=failure_reason or "Marked failed by admin",
            )
            outcome = await self.settlement.settle(payout, remote, source=source)
            if not outcome.applied and payout.status != target:
                raise InvalidStatusTransitionError(
                    f"Cannot change payout from {payout.status} to {target}",
                    current=payout.status,
                    target=target.value,
                )
        elif payout.status != target:
            values = {"status": target}
            if target == PayoutStatus.PROCESSING:
                values["processed_at"] = utc_now()
            moved = await self.payout_repo.transition(payout.id, (payout.status,), **values)
            await self.session.commit()
            if not moved:
                raise InvalidStatusTransitionError(
                    "Payout changed concurrently, reload and retry", payout_id=payout_id
                )
            payout = await self.session.get(Payout, payout_id, populate_existing=True)

        await self.activity.log(
            f"payout_{target}",
            affiliate_id=payout.affiliate_id,
            details={
                "changed_by": changed_by,
                "payout_id": payout.id,
                "new_status": target.value,
                "amount": str(payout.amount),
            },
        )
        return payout
