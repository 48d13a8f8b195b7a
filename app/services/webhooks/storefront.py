"""
Storefront webhook handler.

Topics:
    orders/paid, orders/create: attribute the order by discount code
    refunds/create: refund the referral for the order
"""

from typing import Any

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
from app.utils.datetime_utils import parse_iso_datetime
from app.utils.money import to_money
from app.utils.request_context import RequestMeta


ORDER_TOPICS = ("orders/paid", "orders/create")
REFUND_TOPIC = "refunds/create"


def _str_id(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


class StorefrontWebhookHandler(BaseService):
    """Handles verified storefront deliveries."""

    def __init__(self, session: AsyncSession, deps: HandlerDeps) -> None:
        super().__init__(session)
        self.deps = deps
        self.affiliate_repo = AffiliateRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.resolver = CustomerResolver(session)
        self.recorder = ReferralRecorder(session, deps)
        self.refunds = RefundProcessor(session, deps)

    async def handle(
        self, topic: str | None, payload: dict, meta: RequestMeta | None = None
    ) -> WebhookResult:
        """Dispatch by topic header."""
        if topic in ORDER_TOPICS:
            return await self.handle_order(payload, meta)
        if topic == REFUND_TOPIC:
            order_id = _str_id(payload.get("order_id"))
            if order_id is None:
                return WebhookResult(WebhookOutcome.IGNORED, {"reason": "refund without order_id"})
            return await self.refunds.refund(order_id, source=OrderSource.STOREFRONT, meta=meta)
        self.logger.debug(f"Ignoring storefront topic {topic!r}")
        return WebhookResult(WebhookOutcome.IGNORED, {"topic": topic})

    async def handle_order(self, order: dict, meta: RequestMeta | None = None) -> WebhookResult:
        """
        Attribute a paid order to an affiliate.

        Dedup runs first so a redelivered order never reaches the
        affiliate lookup or the fraud check a second time.
        """
        order_id = _str_id(order.get("id"))
        if order_id is None:
            return WebhookResult(WebhookOutcome.IGNORED, {"reason": "order without id"})

        if await self.referral_repo.exists_for_order(order_id):
            self.logger.info(f"Order {order_id} already processed")
            return WebhookResult(WebhookOutcome.DUPLICATE, {"order_id": order_id})

        discount_codes = order.get("discount_codes") or []
        code = (discount_codes[0].get("code") or "").strip().upper() if discount_codes else ""
        if not code:
            return WebhookResult(WebhookOutcome.NO_CODE, {"order_id": order_id})

        affiliate = await self.affiliate_repo.find_approved_by_code(code)
        if affiliate is None:
            self.logger.info(f"No approved affiliate for discount code {code}")
            return WebhookResult(WebhookOutcome.NOT_AFFILIATE, {"order_id": order_id, "code": code})

        customer_data = order.get("customer") or {}
        customer_email = customer_data.get("email") or order.get("email")

        blocked = await self.recorder.block_self_referral(affiliate, customer_email, order_id, meta)
        if blocked is not None:
            return blocked

        attributed = AttributedOrder(
            order_id=order_id,
            source=OrderSource.STOREFRONT,
            subtotal=commission_base(order),
            total=to_money(order.get("total_price")),
            order_number=order.get("name") or _str_id(order.get("order_number")),
            order_date=parse_iso_datetime(order.get("created_at")),
        )

        resolution = await self.resolver.resolve_or_create(
            CustomerKeys(
                storefront_id=_str_id(customer_data.get("id")),
                email=customer_email,
            ),
            affiliate_id=affiliate.id,
            order_id=order_id,
            order_date=attributed.order_date,
            order_total=attributed.total,
        )

        return await self.recorder.record(affiliate, resolution.customer, attributed, meta)
