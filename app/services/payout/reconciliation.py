"""
Payout reconciliation poller.

Finds processing payouts with a batch id, asks the processor for their
status and settles items that reached a terminal state. A batch whose
status query fails is recorded and skipped until the next tick.
"""

from collections import defaultdict
from dataclasses import asdict, dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ErrorSeverity, ErrorType
from app.models.payout import Payout
from app.repositories.payout_repository import PayoutRepository
from app.services.audit.diagnostics import DiagnosticSink
from app.services.base_service import BaseService
from app.services.integrations.interfaces import PayoutProcessor, RemoteBatch, RemoteItem
from app.services.payout.settlement import PayoutSettlementService
from app.services.payout.transitions import RemoteResult
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import ExternalServiceError


@dataclass
class ReconciliationReport:
    """Counters for one poll."""

    checked: int = 0
    updated: int = 0
    completed: int = 0
    failed: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def remote_result_for(item: RemoteItem | None, batch: RemoteBatch) -> RemoteResult:
    """
    Status to apply to one payout of a batch.

    The item status wins when the item is present; otherwise the batch
    status is used (e.g. a denied batch fails every payout in it).
    """
    now = utc_now()
    if item is None:
        return RemoteResult(
            status=batch.mapped_status,
            observed_at=now,
            failure_reason=f"Batch {batch.batch_status}" if batch.mapped_status == "failed" else None,
        )
    return RemoteResult(
        status=item.mapped_status,
        observed_at=now,
        item_id=item.payout_item_id,
        failure_reason=item.error or item.transaction_status,
    )


class ReconciliationPoller(BaseService):
    """Polls processor batch status for in-flight payouts."""

    def __init__(
        self,
        session: AsyncSession,
        processor: PayoutProcessor | None,
        settlement: PayoutSettlementService,
        diagnostics: DiagnosticSink,
    ) -> None:
        super().__init__(session)
        self.processor = processor
        self.settlement = settlement
        self.diagnostics = diagnostics
        self.payout_repo = PayoutRepository(session)

    async def run(self) -> ReconciliationReport:
        """
        Run one reconciliation pass.

        Returns:
            ReconciliationReport with checked/updated/completed/failed/errors
        """
        report = ReconciliationReport()
        payouts = await self.payout_repo.find_processing_with_batch()
        if not payouts:
            self.logger.debug("No processing payouts to reconcile")
            return report

        # Plain ids: a rollback below expires every loaded instance
        by_batch: dict[str, list[tuple[int, int]]] = defaultdict(list)
        for payout in payouts:
            by_batch[payout.paypal_batch_id].append((payout.id, payout.affiliate_id))

        for batch_id, batch_payouts in by_batch.items():
            try:
                batch = await self.processor.get_batch(batch_id)
            except ExternalServiceError as e:
                report.errors += 1
                await self.diagnostics.record(
                    f"Failed to check payout batch {batch_id}",
                    error_type=ErrorType.DISBURSEMENT_ERROR,
                    severity=ErrorSeverity.WARNING,
                    source="payout_reconciliation",
                    exc=e,
                    details={"batch_id": batch_id, "payout_ids": [pid for pid, _ in batch_payouts]},
                )
                continue

            await self.reconcile_batch(batch, batch_payouts, report, source="poller")

        self.logger.info(f"Payout reconciliation finished: {report.to_dict()}")
        return report

    async def reconcile_batch(
        self,
        batch: RemoteBatch,
        batch_payouts: list[tuple[int, int]],
        report: ReconciliationReport | None = None,
        source: str = "poller",
        allow_batch_fallback: bool = False,
    ) -> ReconciliationReport:
        """
        Settle the given payouts of one batch against its remote status.

        Args:
            batch: Batch as reported by the processor
            batch_payouts: (payout_id, affiliate_id) pairs belonging to it
            report: Report to accumulate into
            source: Settlement source label
            allow_batch_fallback: Settle payouts missing from the item list
                with the batch status; otherwise they are left untouched
        """
        report = report if report is not None else ReconciliationReport()
        items = {item.affiliate_id: item for item in batch.items if item.affiliate_id}

        for payout_id, affiliate_id in batch_payouts:
            report.checked += 1
            item = items.get(affiliate_id)
            if item is None and not allow_batch_fallback:
                self.logger.debug(f"Payout {payout_id} has no item in batch {batch.batch_id} yet")
                continue
            remote = remote_result_for(item, batch)
            try:
                # Re-read: another path may have settled it since the query
                payout = await self.session.get(Payout, payout_id, populate_existing=True)
                if payout is None:
                    continue
                outcome = await self.settlement.settle(payout, remote, source=source)
            except Exception as e:
                report.errors += 1
                await self.session.rollback()
                await self.diagnostics.record(
                    f"Failed to settle payout {payout_id}",
                    error_type=ErrorType.PAYOUT_ERROR,
                    severity=ErrorSeverity.ERROR,
                    source="payout_reconciliation",
                    exc=e,
                    payout_id=payout_id,
                    affiliate_id=affiliate_id,
                    details={"batch_id": batch.batch_id, "remote_status": remote.status},
                )
                continue

            if outcome.applied:
                report.updated += 1
                if outcome.completed:
                    report.completed += 1
                elif outcome.failed:
                    report.failed += 1
        return report
