"""
Payment processor (disbursement) webhook handler.

Batch and item terminal events go through the same settlement path as
the reconciliation poller, so either may arrive first.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.enums import PayoutStatus
from app.models.payout import Payout
from app.repositories.payout_repository import PayoutRepository
from app.services.audit.diagnostics import DiagnosticSink
from app.services.base_service import BaseService
from app.services.integrations.interfaces import PayoutProcessor, RemoteBatch
from app.services.integrations.paypal_client import (
    is_trusted_cert_url,
    missing_transmission_headers,
    parse_batch,
)
from app.services.payout.reconciliation import ReconciliationPoller
from app.services.payout.settlement import PayoutSettlementService
from app.services.payout.transitions import RemoteResult
from app.services.webhooks.results import WebhookOutcome, WebhookResult
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import SignatureVerificationError


CERT_URL_HEADER = "paypal-cert-url"

BATCH_SUCCESS = "PAYMENT.PAYOUTSBATCH.SUCCESS"
BATCH_DENIED = "PAYMENT.PAYOUTSBATCH.DENIED"
ITEM_SUCCEEDED = "PAYMENT.PAYOUTS-ITEM.SUCCEEDED"
ITEM_FAILED_EVENTS = (
    "PAYMENT.PAYOUTS-ITEM.FAILED",
    "PAYMENT.PAYOUTS-ITEM.BLOCKED",
    "PAYMENT.PAYOUTS-ITEM.RETURNED",
    "PAYMENT.PAYOUTS-ITEM.REFUNDED",
)
ITEM_UNCLAIMED = "PAYMENT.PAYOUTS-ITEM.UNCLAIMED"

UNCLAIMED_NOTE = "Payment unclaimed by recipient - processor will retry"


async def verify_disbursement_webhook(
    headers: Mapping[str, str],
    event: dict[str, Any],
    processor: PayoutProcessor | None,
    webhook_id: str | None = None,
) -> None:
    """
    Check a disbursement delivery.

    Transmission headers must be present and the cert URL must be on a
    processor domain. With a webhook id configured the processor's own
    verification endpoint has the final word.

    Raises:
        SignatureVerificationError: Delivery is not authentic
    """
    missing = missing_transmission_headers(headers)
    if missing:
        raise SignatureVerificationError(
            "Missing disbursement webhook headers", missing=missing
        )
    if not is_trusted_cert_url(headers.get(CERT_URL_HEADER)):
        raise SignatureVerificationError(
            "Untrusted disbursement cert URL", cert_url=headers.get(CERT_URL_HEADER)
        )

    webhook_id = webhook_id if webhook_id is not None else settings.disbursement_webhook_id
    if not webhook_id or processor is None:
        return
    if not await processor.verify_webhook_signature(headers, event, webhook_id):
        raise SignatureVerificationError("Disbursement webhook signature rejected by processor")


class DisbursementWebhookHandler(BaseService):
    """Applies processor push events to payouts."""

    def __init__(
        self,
        session: AsyncSession,
        settlement: PayoutSettlementService,
        diagnostics: DiagnosticSink,
        processor: PayoutProcessor | None = None,
    ) -> None:
        super().__init__(session)
        self.settlement = settlement
        self.processor = processor
        self.payout_repo = PayoutRepository(session)
        self.poller = ReconciliationPoller(session, processor, settlement, diagnostics)

    async def handle(self, event: dict) -> WebhookResult:
        """Dispatch by event_type."""
        event_type = event.get("event_type")
        resource = event.get("resource") or {}

        if event_type == BATCH_SUCCESS:
            return await self._batch_success(resource)
        if event_type == BATCH_DENIED:
            return await self._batch_denied(resource)
        if event_type == ITEM_SUCCEEDED:
            return await self._item_terminal(resource, PayoutStatus.COMPLETED)
        if event_type in ITEM_FAILED_EVENTS:
            return await self._item_terminal(resource, PayoutStatus.FAILED)
        if event_type == ITEM_UNCLAIMED:
            return await self._item_unclaimed(resource)

        self.logger.info(f"Unhandled disbursement event type: {event_type}")
        return WebhookResult(WebhookOutcome.IGNORED, {"event_type": event_type})

    async def _open_batch_payouts(self, batch_id: str) -> list[tuple[int, int]]:
        payouts = await self.payout_repo.find_by_batch(batch_id)
        return [
            (p.id, p.affiliate_id)
            for p in payouts
            if p.status in (PayoutStatus.PENDING, PayoutStatus.PROCESSING)
        ]

    async def _batch_success(self, resource: dict) -> WebhookResult:
        """
        Settle a successful batch item by item.

        A successful batch may still contain failed or unclaimed items,
        so the fresh batch status is fetched when the processor is
        available and each payout follows its own item.
        """
        batch = parse_batch(resource)
        if not batch.batch_id:
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "batch id missing"})

        if self.processor is not None:
            batch = await self.processor.get_batch(batch.batch_id)

        open_payouts = await self._open_batch_payouts(batch.batch_id)
        report = await self.poller.reconcile_batch(
            batch, open_payouts, source="webhook", allow_batch_fallback=self.processor is None
        )
        return WebhookResult(
            WebhookOutcome.PAYOUT_UPDATED, {"batch_id": batch.batch_id, **report.to_dict()}
        )

    async def _batch_denied(self, resource: dict) -> WebhookResult:
        header = parse_batch(resource)
        if not header.batch_id:
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "batch id missing"})

        # Denied: every open payout fails regardless of item data
        denied = RemoteBatch(
            batch_id=header.batch_id,
            batch_status=header.batch_status,
            mapped_status=PayoutStatus.FAILED.value,
        )
        open_payouts = await self._open_batch_payouts(header.batch_id)
        report = await self.poller.reconcile_batch(
            denied, open_payouts, source="webhook", allow_batch_fallback=True
        )
        return WebhookResult(
            WebhookOutcome.PAYOUT_UPDATED, {"batch_id": header.batch_id, **report.to_dict()}
        )

    async def _find_item_payout(self, resource: dict) -> Payout | None:
        item_id = resource.get("payout_item_id")
        batch_id = resource.get("payout_batch_id")
        sender_item_id = (resource.get("payout_item") or {}).get("sender_item_id")

        if batch_id and sender_item_id:
            try:
                affiliate_id = int(sender_item_id)
            except (TypeError, ValueError):
                affiliate_id = None
            if affiliate_id is not None:
                payout = await self.payout_repo.get_by_batch_and_affiliate(batch_id, affiliate_id)
                if payout is not None:
                    return payout
        if item_id:
            return await self.payout_repo.get_by_item_id(item_id)
        return None

    async def _item_terminal(self, resource: dict, status: PayoutStatus) -> WebhookResult:
        payout = await self._find_item_payout(resource)
        if payout is None:
            self.logger.warning(
                "Disbursement item event for unknown payout",
                extra={"payout_item_id": resource.get("payout_item_id")},
            )
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "payout not found"})

        errors = resource.get("errors") or {}
        failure_reason = None
        if status == PayoutStatus.FAILED:
            failure_reason = (
                (errors.get("message") if isinstance(errors, dict) else None)
                or resource.get("transaction_status")
                or "Payment failed"
            )

        remote = RemoteResult(
            status=status.value,
            observed_at=utc_now(),
            item_id=resource.get("payout_item_id"),
            failure_reason=failure_reason,
        )
        outcome = await self.settlement.settle(payout, remote, source="webhook")
        return WebhookResult(
            WebhookOutcome.PAYOUT_UPDATED,
            {"payout_id": payout.id, "applied": outcome.applied},
        )

    async def _item_unclaimed(self, resource: dict) -> WebhookResult:
        payout = await self._find_item_payout(resource)
        if payout is None:
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "payout not found"})
        if payout.status not in (PayoutStatus.PENDING, PayoutStatus.PROCESSING):
            return WebhookResult(WebhookOutcome.IGNORED, {"payout_id": payout.id, "status": payout.status})

        payout.notes = UNCLAIMED_NOTE
        if resource.get("payout_item_id") and not payout.paypal_payout_item_id:
            payout.paypal_payout_item_id = resource["payout_item_id"]
        await self.session.commit()
        self.logger.info(f"Payout {payout.id} unclaimed by recipient")
        return WebhookResult(WebhookOutcome.PAYOUT_NOTED, {"payout_id": payout.id})
