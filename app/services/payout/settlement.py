"""
Payout settlement.

Applies a transition decided by apply_terminal_status to the ledger.
The status update is conditional on the payout still being open, so
when the poller and the webhook race only one of them performs the
side effects (mark referrals paid, recalc, notify).
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import PayoutStatus, ReviewKind
from app.models.payout import Payout
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.manual_review_repository import ManualReviewRepository
from app.repositories.payout_repository import PayoutRepository
from app.repositories.referral_repository import ReferralRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.audit.review_queue import ManualReviewQueue
from app.services.base_service import BaseService
from app.services.integrations.notifier import AffiliateNotifier
from app.services.ledger.stats_service import AffiliateStatsService
from app.services.payout.transitions import (
    CompletePayout,
    FailPayout,
    NoOp,
    PayoutSnapshot,
    PayoutTransition,
    RemoteResult,
    apply_terminal_status,
)


_OPEN = (PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value)


@dataclass
class SettlementResult:
    """What a settle call did."""

    transition: PayoutTransition
    applied: bool
    referrals_paid: int = 0

    @property
    def completed(self) -> bool:
        return self.applied and isinstance(self.transition, CompletePayout)

    @property
    def failed(self) -> bool:
        return self.applied and isinstance(self.transition, FailPayout)


class PayoutSettlementService(BaseService):
    """Commits payout transitions and their side effects."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: AffiliateNotifier,
        activity: ActivityLogger | None = None,
    ) -> None:
        super().__init__(session)
        self.notifier = notifier
        self.activity = activity
        self.payout_repo = PayoutRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.review_repo = ManualReviewRepository(session)
        self.stats = AffiliateStatsService(session)

    async def settle(self, payout: Payout, remote: RemoteResult, source: str) -> SettlementResult:
        """
        Apply a remote status to a payout and commit.

        Args:
            payout: Payout row (possibly stale)
            remote: Observed status
            source: "poller", "webhook" or "admin:<subject>"

        Returns:
            SettlementResult; applied is False when this call changed nothing
        """
        decision = apply_terminal_status(
            PayoutSnapshot(
                payout_id=payout.id, status=payout.status, item_id=payout.paypal_payout_item_id
            ),
            remote,
        )

        if isinstance(decision, NoOp):
            if decision.conflict:
                await self._queue_conflict(payout, remote, source)
            self.logger.debug(f"Payout {payout.id}: no-op ({decision.reason})")
            return SettlementResult(transition=decision, applied=False)

        if isinstance(decision, CompletePayout):
            return await self._complete(payout, decision, source)
        return await self._fail(payout, decision, source)

    async def _complete(
        self, payout: Payout, decision: CompletePayout, source: str
    ) -> SettlementResult:
        won = await self.payout_repo.transition(
            payout.id,
            _OPEN,
            status=PayoutStatus.COMPLETED,
            completed_at=decision.completed_at,
            paypal_payout_item_id=decision.item_id,
        )
        if not won:
            await self.session.commit()
            self.logger.info(f"Payout {payout.id} already settled by another path ({source})")
            return SettlementResult(transition=NoOp("lost settlement race"), applied=False)

        paid = await self.referral_repo.mark_approved_as_paid(
            payout.affiliate_id, payout.id, decision.completed_at
        )
        await self.stats.recalculate(payout.affiliate_id)
        await self.session.commit()
        await self.session.refresh(payout)

        self.logger.info(
            f"Payout {payout.id} completed via {source}: {paid} referrals marked paid",
            extra={"payout_id": payout.id, "affiliate_id": payout.affiliate_id},
        )

        affiliate = await self.affiliate_repo.get_by_id(payout.affiliate_id)
        if affiliate is not None:
            await self.notifier.payout_sent(affiliate, payout)
        if self.activity is not None:
            await self.activity.log(
                "payout_completed",
                affiliate_id=payout.affiliate_id,
                details={
                    "payout_id": payout.id,
                    "amount": str(payout.amount),
                    "referrals_paid": paid,
                    "source": source,
                },
            )
        return SettlementResult(transition=decision, applied=True, referrals_paid=paid)

    async def _fail(self, payout: Payout, decision: FailPayout, source: str) -> SettlementResult:
        won = await self.payout_repo.transition(
            payout.id,
            _OPEN,
            status=PayoutStatus.FAILED,
            failure_reason=decision.failure_reason,
        )
        if not won:
            await self.session.commit()
            return SettlementResult(transition=NoOp("lost settlement race"), applied=False)

        await self.session.commit()
        await self.session.refresh(payout)
        self.logger.warning(
            f"Payout {payout.id} failed via {source}: {decision.failure_reason}",
            extra={"payout_id": payout.id, "affiliate_id": payout.affiliate_id},
        )
        if self.activity is not None:
            await self.activity.log(
                "payout_failed",
                affiliate_id=payout.affiliate_id,
                details={
                    "payout_id": payout.id,
                    "reason": decision.failure_reason,
                    "source": source,
                },
            )
        return SettlementResult(transition=decision, applied=True)

    async def _queue_conflict(self, payout: Payout, remote: RemoteResult, source: str) -> None:
        already_open = await self.review_repo.exists(
            kind=ReviewKind.CONFLICTING_PAYOUT_STATUS, payout_id=payout.id, resolved=False
        )
        if already_open:
            return
        await ManualReviewQueue(self.session).enqueue(
            ReviewKind.CONFLICTING_PAYOUT_STATUS,
            affiliate_id=payout.affiliate_id,
            payout_id=payout.id,
            details={
                "local_status": payout.status,
                "remote_status": remote.status,
                "remote_item_id": remote.item_id,
                "failure_reason": remote.failure_reason,
                "source": source,
            },
        )
        await self.session.commit()
