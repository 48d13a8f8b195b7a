"""
Refund handling shared by the storefront and subscription sources.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralStatus, ReviewKind
from app.repositories.manual_review_repository import ManualReviewRepository
from app.repositories.referral_repository import ReferralRepository
from app.services.audit.review_queue import ManualReviewQueue
from app.services.base_service import BaseService
from app.services.ledger.stats_service import AffiliateStatsService
from app.services.webhooks.referral_recorder import HandlerDeps
from app.services.webhooks.results import WebhookOutcome, WebhookResult
from app.utils.request_context import RequestMeta


_ALREADY_CLOSED = (ReferralStatus.REFUNDED, ReferralStatus.REJECTED)


class RefundProcessor(BaseService):
    """Marks referrals refunded, or queues paid ones for manual review."""

    def __init__(self, session: AsyncSession, deps: HandlerDeps) -> None:
        super().__init__(session)
        self.deps = deps
        self.referral_repo = ReferralRepository(session)
        self.review_repo = ManualReviewRepository(session)
        self.stats = AffiliateStatsService(session)

    async def refund(
        self, order_id: str, source: str, meta: RequestMeta | None = None
    ) -> WebhookResult:
        """
        Apply a refund event to the referral for order_id.

        A paid referral keeps its status: the commission already left,
        so the refund becomes a manual review item instead.

        Args:
            order_id: External order or charge id
            source: Event source label for logs
            meta: Request context

        Returns:
            WebhookResult
        """
        referral = await self.referral_repo.get_by_order_id(order_id)
        if referral is None:
            self.logger.info(f"No referral found for refunded {source} order {order_id}")
            return WebhookResult(WebhookOutcome.REFUND_NOT_FOUND, {"order_id": order_id})

        referral_id = referral.id
        affiliate_id = referral.affiliate_id

        if referral.status == ReferralStatus.PAID:
            details = {
                "order_id": order_id,
                "source": source,
                "commission_amount": str(referral.commission_amount),
                "payout_id": referral.payout_id,
            }
            already_open = await self.review_repo.exists(
                kind=ReviewKind.REFUND_ON_PAID_REFERRAL, referral_id=referral_id, resolved=False
            )
            if not already_open:
                await ManualReviewQueue(self.session).enqueue(
                    ReviewKind.REFUND_ON_PAID_REFERRAL,
                    affiliate_id=affiliate_id,
                    referral_id=referral_id,
                    payout_id=referral.payout_id,
                    details=details,
                )
            await self.session.commit()
            self.logger.warning(
                f"Refund on paid referral {referral_id} (order {order_id}) queued for review"
            )
            await self.deps.activity.log(
                "refund_on_paid_referral",
                affiliate_id=affiliate_id,
                details={"referral_id": referral_id, **details},
                meta=meta,
            )
            return WebhookResult(
                WebhookOutcome.REFUND_QUEUED_FOR_REVIEW, {"referral_id": referral_id}
            )

        if referral.status in _ALREADY_CLOSED:
            return WebhookResult(
                WebhookOutcome.REFUND_NOOP,
                {"referral_id": referral_id, "status": str(referral.status)},
            )

        referral.status = ReferralStatus.REFUNDED
        await self.session.flush()
        await self.stats.recalculate(affiliate_id)
        await self.session.commit()

        self.logger.info(f"Referral {referral_id} marked refunded ({source} order {order_id})")
        await self.deps.activity.log(
            "refund_processed",
            affiliate_id=affiliate_id,
            details={"referral_id": referral_id, "order_id": order_id, "source": source},
            meta=meta,
        )
        return WebhookResult(WebhookOutcome.REFUNDED, {"referral_id": referral_id})
