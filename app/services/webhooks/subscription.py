"""
Subscription billing webhook handler.

Renewal charges are attributed through the customer that the original
storefront order linked to an affiliate; they carry no discount code.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import OrderSource
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.referral_repository import ReferralRepository
from app.services.attribution.customer_resolver import CustomerKeys, CustomerResolver
from app.services.base_service import BaseService
from app.services.commission.calculator import commission_base
from app.services.webhooks.referral_recorder import (
    AttributedOrder,
    HandlerDeps,
    ReferralRecorder,
)
from app.services.webhooks.refunds import RefundProcessor
from app.services.webhooks.results import WebhookOutcome, WebhookResult
from app.utils.datetime_utils import parse_iso_datetime, utc_now
from app.utils.money import to_money
from app.utils.request_context import RequestMeta


PAID_STATUSES = ("SUCCESS", "PAID")
REFUNDED_STATUS = "REFUNDED"


class SubscriptionWebhookHandler(BaseService):
    """Handles verified subscription charge deliveries."""

    def __init__(self, session: AsyncSession, deps: HandlerDeps) -> None:
        super().__init__(session)
        self.deps = deps
        self.affiliate_repo = AffiliateRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.resolver = CustomerResolver(session)
        self.recorder = ReferralRecorder(session, deps)
        self.refunds = RefundProcessor(session, deps)

    async def handle(self, payload: dict, meta: RequestMeta | None = None) -> WebhookResult:
        """Dispatch by charge status. The charge may be wrapped in "charge"."""
        charge = payload.get("charge") or payload
        status = str(charge.get("status") or "").upper()
        charge_id = str(charge["id"]) if charge.get("id") not in (None, "") else None

        if charge_id is None:
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "charge without id"})
        if status in PAID_STATUSES:
            return await self.handle_charge(charge_id, charge, meta)
        if status == REFUNDED_STATUS:
            return await self.refunds.refund(charge_id, source=OrderSource.SUBSCRIPTION, meta=meta)
        return WebhookResult(WebhookOutcome.IGNORED, {"status": status or None})

    async def handle_charge(
        self, charge_id: str, charge: dict, meta: RequestMeta | None = None
    ) -> WebhookResult:
        """Record a recurring referral for a paid charge."""
        if await self.referral_repo.exists_for_order(charge_id):
            self.logger.info(f"Charge {charge_id} already processed")
            return WebhookResult(WebhookOutcome.DUPLICATE, {"order_id": charge_id})

        email = charge.get("email")
        keys = CustomerKeys(
            subscription_id=_optional_str(charge.get("customer_id")),
            storefront_id=_optional_str(charge.get("shopify_customer_id")),
            email=email,
        )
        resolution = await self.resolver.resolve(keys)
        if not resolution.found:
            self.logger.info(f"No referred customer for charge {charge_id}")
            return WebhookResult(WebhookOutcome.NOT_AFFILIATE, {"order_id": charge_id})

        customer = resolution.customer
        affiliate = await self.affiliate_repo.get_by_id(customer.affiliate_id)
        if affiliate is None or not affiliate.is_approved:
            # Commit any key backfill even though no referral is written
            await self.session.commit()
            return WebhookResult(WebhookOutcome.NOT_AFFILIATE, {"order_id": charge_id})

        blocked = await self.recorder.block_self_referral(affiliate, email, charge_id, meta)
        if blocked is not None:
            await self.session.commit()
            return blocked

        order = AttributedOrder(
            order_id=charge_id,
            source=OrderSource.SUBSCRIPTION,
            subtotal=commission_base(charge),
            total=to_money(charge.get("total_price")),
            is_recurring=True,
            order_number=_optional_str(charge.get("shopify_order_id")) or charge_id,
            order_date=parse_iso_datetime(charge.get("created_at")) or utc_now(),
        )
        return await self.recorder.record(affiliate, customer, order, meta)


def _optional_str(value) -> str | None:
    return str(value) if value not in (None, "") else None
