"""
Payout orchestrator.

Turns admin-selected affiliate balances into payout rows.

For the PayPal method the batch is submitted first and rows are written
only after the processor accepted it. If that write fails the money is
already in flight: a critical diagnostic with the batch id and every
item is recorded before PartialWriteError is raised.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import settings
from app.models.affiliate import Affiliate
from app.models.enums import ErrorSeverity, ErrorType, PayoutMethod, PayoutStatus
from app.models.payout import Payout
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.payout_repository import PayoutRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.audit.diagnostics import DiagnosticSink
from app.services.base_service import BaseService
from app.services.integrations.interfaces import PayoutItemRequest, PayoutProcessor
from app.services.ledger.stats_service import AffiliateStatsService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    InvalidPayoutMethodError,
    MissingPayoutDestinationError,
    NoEligibleAffiliatesError,
    PartialWriteError,
    PaymentProcessorError,
    ProcessorNotConfiguredError,
)


# Exclusion reasons
EXCLUDED_NOT_FOUND = "not_found"
EXCLUDED_IN_FLIGHT = "payout_in_flight"
EXCLUDED_BELOW_MINIMUM = "below_minimum"

PAYOUT_EMAIL_SUBJECT = "You have received an affiliate commission payout"
PAYOUT_EMAIL_MESSAGE = "Thank you for being an affiliate partner. Your commission payout is on its way."


@dataclass
class PayoutBatchResult:
    """Outcome of a create_payouts call."""

    method: str
    payouts: list[Payout] = field(default_factory=list)
    excluded: dict[int, str] = field(default_factory=dict)
    batch_id: str | None = None

    @property
    def total_amount(self) -> Decimal:
        return sum((p.amount for p in self.payouts), Decimal("0.00"))


class PayoutOrchestrator(BaseService):
    """Eligibility re-validation, batch submission and payout persistence."""

    def __init__(
        self,
        session: AsyncSession,
        diagnostics: DiagnosticSink,
        processor: PayoutProcessor | None = None,
        activity: ActivityLogger | None = None,
        minimum_balance: Decimal | None = None,
    ) -> None:
        super().__init__(session)
        self.diagnostics = diagnostics
        self.processor = processor
        self.activity = activity
        self.minimum_balance = (
            minimum_balance if minimum_balance is not None else settings.payout_minimum_balance
        )
        self.affiliate_repo = AffiliateRepository(session)
        self.payout_repo = PayoutRepository(session)
        self.stats = AffiliateStatsService(session)

    async def create_payouts(
        self,
        affiliate_ids: list[int],
        method: str,
        created_by: str | None = None,
        notes: str | None = None,
    ) -> PayoutBatchResult:
        """
        Create payouts for the selected affiliates.

        Affiliates that vanished, already have a payout in flight or whose
        freshly re-derived balance is below the minimum are excluded
        silently.

        Raises:
            InvalidPayoutMethodError: Unknown method
            NoEligibleAffiliatesError: Nobody left after exclusions
            MissingPayoutDestinationError: PayPal batch with a recipient
                lacking a payment email (whole batch rejected)
            ProcessorNotConfiguredError / PaymentProcessorError: Submission failed
            PartialWriteError: Submission succeeded, persistence failed
        """
        try:
            method = PayoutMethod(method)
        except ValueError as e:
            raise InvalidPayoutMethodError(f"Invalid payout method: {method}") from e

        result = PayoutBatchResult(method=method)
        eligible = await self._eligible_affiliates(affiliate_ids, result.excluded)
        if not eligible:
            await self.session.commit()
            raise NoEligibleAffiliatesError(
                "No eligible affiliates for payout",
                excluded={str(k): v for k, v in result.excluded.items()},
            )

        if method == PayoutMethod.PAYPAL:
            await self._pay_with_processor(eligible, result, created_by, notes)
        else:
            await self._record_offline(eligible, result, method, created_by, notes)

        self.logger.info(
            f"Created {len(result.payouts)} {method} payouts totalling {result.total_amount}",
            extra={"batch_id": result.batch_id, "excluded": result.excluded},
        )
        if self.activity is not None:
            await self.activity.log(
                "payouts_created",
                details={
                    "method": method.value,
                    "batch_id": result.batch_id,
                    "payout_ids": [p.id for p in result.payouts],
                    "total": str(result.total_amount),
                    "excluded": {str(k): v for k, v in result.excluded.items()},
                    "created_by": created_by,
                },
            )
        return result

    async def _eligible_affiliates(
        self, affiliate_ids: list[int], excluded: dict[int, str]
    ) -> list[Affiliate]:
        # Recalculation locks each affiliate row (FOR UPDATE) until the
        # payouts are committed; the in-flight check runs after the locks
        # so a concurrent creation for the same affiliate sees our rows.
        locked: list[Affiliate] = []
        for affiliate_id in dict.fromkeys(affiliate_ids):
            stats = await self.stats.recalculate(affiliate_id)
            if stats is None:
                excluded[affiliate_id] = EXCLUDED_NOT_FOUND
                continue
            locked.append(stats.affiliate)

        in_flight = await self.payout_repo.affiliates_with_payout_in_flight(
            [a.id for a in locked]
        )

        eligible: list[Affiliate] = []
        for affiliate in locked:
            if affiliate.id in in_flight:
                excluded[affiliate.id] = EXCLUDED_IN_FLIGHT
            elif affiliate.balance_owed < self.minimum_balance:
                excluded[affiliate.id] = EXCLUDED_BELOW_MINIMUM
            else:
                eligible.append(affiliate)
        return eligible

    async def _pay_with_processor(
        self,
        affiliates: list[Affiliate],
        result: PayoutBatchResult,
        created_by: str | None,
        notes: str | None,
    ) -> None:
        missing = [a for a in affiliates if not a.paypal_email]
        if missing:
            await self.session.commit()
            raise MissingPayoutDestinationError(
                "Some affiliates do not have a PayPal email configured",
                affiliates=[a.referral_code for a in missing],
            )
        if self.processor is None:
            await self.session.commit()
            raise ProcessorNotConfiguredError("PayPal is not configured", service="paypal")

        items = [
            PayoutItemRequest(
                affiliate_id=a.id,
                receiver_email=a.paypal_email,
                amount=a.balance_owed,
                note=f"Affiliate commission payout - {a.referral_code}",
            )
            for a in affiliates
        ]
        sender_batch_id = f"affiliate_{uuid.uuid4().hex}"

        try:
            submission = await self.processor.create_batch(
                sender_batch_id, items, PAYOUT_EMAIL_SUBJECT, PAYOUT_EMAIL_MESSAGE
            )
        except PaymentProcessorError as e:
            await self.session.commit()
            if e.context.get("outcome_unknown"):
                await self.diagnostics.record(
                    "Payout batch submission outcome unknown; check processor before retrying",
                    error_type=ErrorType.PAYOUT_ERROR,
                    severity=ErrorSeverity.CRITICAL,
                    source="payout_orchestrator",
                    exc=e,
                    details={
                        "sender_batch_id": sender_batch_id,
                        "items": _items_snapshot(items),
                    },
                )
            raise

        result.batch_id = submission.batch_id
        now = utc_now()
        try:
            for affiliate, item in zip(affiliates, items, strict=True):
                payout = await self.payout_repo.create(
                    affiliate_id=affiliate.id,
                    amount=item.amount,
                    method=PayoutMethod.PAYPAL,
                    paypal_email=item.receiver_email,
                    paypal_batch_id=submission.batch_id,
                    status=PayoutStatus.PROCESSING,
                    processed_at=now,
                    created_by=created_by,
                    notes=notes,
                )
                result.payouts.append(payout)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            result.payouts.clear()
            await self.diagnostics.record(
                "Payout batch submitted but payout rows could not be saved",
                error_type=ErrorType.PAYOUT_ERROR,
                severity=ErrorSeverity.CRITICAL,
                source="payout_orchestrator",
                exc=e,
                details={
                    "batch_id": submission.batch_id,
                    "sender_batch_id": sender_batch_id,
                    "items": _items_snapshot(items),
                    "created_by": created_by,
                },
            )
            raise PartialWriteError(
                "Payout batch was sent but could not be recorded; manual reconciliation required",
                batch_id=submission.batch_id,
            ) from e

    async def _record_offline(
        self,
        affiliates: list[Affiliate],
        result: PayoutBatchResult,
        method: PayoutMethod,
        created_by: str | None,
        notes: str | None,
    ) -> None:
        for affiliate in affiliates:
            payout = await self.payout_repo.create(
                affiliate_id=affiliate.id,
                amount=affiliate.balance_owed,
                method=method,
                paypal_email=affiliate.paypal_email,
                status=PayoutStatus.PENDING,
                created_by=created_by,
                notes=notes,
            )
            result.payouts.append(payout)
        await self.session.commit()


def _items_snapshot(items: list[PayoutItemRequest]) -> list[dict]:
    return [
        {
            "affiliate_id": item.affiliate_id,
            "receiver": item.receiver_email,
            "amount": str(item.amount),
        }
        for item in items
    ]
