"""
Referral recorder.

The shared tail of every attributed order: commission, fraud check,
the referral insert, then best-effort side effects. Once the insert is
committed nothing that follows can turn the delivery into a failure.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.affiliate import Affiliate
from app.models.enums import ErrorSeverity, ErrorType, OrderSource, ReferralStatus
from app.models.referral import Referral
from app.models.referred_customer import ReferredCustomer
from app.repositories.referral_repository import ReferralRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.audit.diagnostics import DiagnosticSink
from app.services.commission.calculator import calculate_commission
from app.services.fraud.fraud_service import FraudCheckService
from app.services.fraud.signals import FraudAssessment
from app.services.integrations.notifier import AffiliateNotifier
from app.services.ledger.stats_service import AffiliateStatsService
from app.services.webhooks.results import WebhookOutcome, WebhookResult
from app.utils.datetime_utils import utc_now
from app.utils.email_utils import emails_match
from app.utils.exceptions import is_duplicate_key_error
from app.utils.request_context import RequestMeta
from app.utils.security import mask_email


@dataclass(frozen=True)
class AttributedOrder:
    """Normalized order or charge, ready to be recorded."""

    order_id: str
    source: OrderSource
    subtotal: Decimal
    total: Decimal
    is_recurring: bool = False
    order_number: str | None = None
    order_date: datetime | None = None


@dataclass
class HandlerDeps:
    """Collaborators shared by the ingestion handlers."""

    notifier: AffiliateNotifier
    activity: ActivityLogger
    diagnostics: DiagnosticSink


class ReferralRecorder:
    """Writes one referral and runs its follow-up steps."""

    def __init__(self, session: AsyncSession, deps: HandlerDeps) -> None:
        self.session = session
        self.deps = deps
        self.referral_repo = ReferralRepository(session)
        self.fraud = FraudCheckService(session)
        self.stats = AffiliateStatsService(session)

    async def record(
        self,
        affiliate: Affiliate,
        customer: ReferredCustomer | None,
        order: AttributedOrder,
        meta: RequestMeta | None = None,
    ) -> WebhookResult:
        """
        Insert the referral and trigger side effects.

        A duplicate-key error on the insert means a concurrent or earlier
        delivery already recorded the event; it is reported as DUPLICATE.

        Returns:
            WebhookResult with RECORDED or DUPLICATE
        """
        affiliate_id = affiliate.id
        rate = affiliate.commission_rate
        commission = calculate_commission(order.subtotal, rate)
        assessment = await self.fraud.check_referral(affiliate_id, order.total, utc_now())

        try:
            referral = await self.referral_repo.create(
                affiliate_id=affiliate_id,
                customer_id=customer.id if customer else None,
                order_id=order.order_id,
                order_source=order.source,
                order_number=order.order_number,
                order_date=order.order_date,
                order_subtotal=order.subtotal,
                order_total=order.total,
                commission_rate=rate,
                commission_amount=commission,
                status=ReferralStatus.PENDING,
                is_recurring=order.is_recurring,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            if is_duplicate_key_error(e):
                logger.info(f"Order {order.order_id} recorded concurrently, treating as duplicate")
                return WebhookResult(WebhookOutcome.DUPLICATE, {"order_id": order.order_id})
            raise

        logger.info(
            f"Referral {referral.id} recorded: order {order.order_id}, affiliate {affiliate_id}, "
            f"commission {commission}",
            extra={"source": order.source, "is_recurring": order.is_recurring},
        )

        await self._after_commit(affiliate_id, referral, assessment, meta)
        return WebhookResult(
            WebhookOutcome.RECORDED,
            {
                "referral_id": referral.id,
                "commission_amount": str(commission),
                "fraud_flagged": assessment.flagged,
            },
        )

    async def _after_commit(
        self,
        affiliate_id: int,
        referral: Referral,
        assessment: FraudAssessment,
        meta: RequestMeta | None,
    ) -> None:
        if assessment.flagged:
            action = (
                "recurring_referral_fraud_flagged" if referral.is_recurring
                else "referral_fraud_flagged"
            )
            await self.deps.activity.log(
                action,
                affiliate_id=affiliate_id,
                details={"order_id": referral.order_id, **assessment.to_dict()},
                meta=meta,
            )

        try:
            stats = await self.stats.recalculate(affiliate_id)
            await self.session.commit()
        except Exception as e:
            await self.session.rollback()
            await self.deps.diagnostics.record(
                f"Stats recalculation failed after referral {referral.order_id}",
                error_type=ErrorType.DATABASE_ERROR,
                severity=ErrorSeverity.WARNING,
                source="referral_recorder",
                exc=e,
                affiliate_id=affiliate_id,
                order_id=referral.order_id,
            )
            return

        if stats is None:
            return
        await self.deps.notifier.referral(stats.affiliate, referral)
        if stats.tier_change is not None:
            await self.deps.notifier.tier_upgrade(stats.affiliate, stats.tier_change)
            await self.deps.activity.log(
                "tier_upgraded",
                affiliate_id=affiliate_id,
                details={
                    "from": stats.tier_change.previous_slug,
                    "to": stats.tier_change.new_slug,
                    "commission_rate": str(stats.tier_change.new_commission_rate),
                },
            )

    async def block_self_referral(
        self,
        affiliate: Affiliate,
        customer_email: str | None,
        order_id: str,
        meta: RequestMeta | None = None,
    ) -> WebhookResult | None:
        """
        Return SELF_REFERRAL when the purchaser is the affiliate.

        Returns:
            WebhookResult to acknowledge with, or None to continue
        """
        if not emails_match(customer_email, affiliate.email):
            return None
        logger.warning(
            f"Self-referral blocked: order {order_id}, affiliate {affiliate.id}",
            extra={"email": mask_email(customer_email)},
        )
        await self.deps.activity.log(
            "self_referral_blocked",
            affiliate_id=affiliate.id,
            details={"order_id": order_id},
            meta=meta,
        )
        return WebhookResult(WebhookOutcome.SELF_REFERRAL, {"order_id": order_id})
