"""
Integration tests for storefront order and refund ingestion.

Tests cover:
- Commission recording and deduplication
- Attribution failures (no code, unknown code, self-referral)
- Tier upgrade side effects
- Refunds before and after payout
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from app.models import (
    AffiliateStatus,
    ManualReviewItem,
    OrderSource,
    Referral,
    ReferralStatus,
    ReferredCustomer,
    ReviewKind,
)
from app.services.webhooks.referral_recorder import AttributedOrder, ReferralRecorder
from app.services.webhooks.results import WebhookOutcome
from app.services.webhooks.storefront import StorefrontWebhookHandler


def _order(order_id=1001, code="JANDOE1A2B", email="buyer@example.com", **overrides) -> dict:
    order = {
        "id": order_id,
        "name": f"#{order_id}",
        "email": email,
        "created_at": "2026-02-01T10:00:00Z",
        "subtotal_price": "100.00",
        "total_price": "108.00",
        "discount_codes": [{"code": code}] if code else [],
        "customer": {"id": 5550001, "email": email},
    }
    order.update(overrides)
    return order


@pytest.fixture
def handler(session, deps):
    return StorefrontWebhookHandler(session, deps)


@pytest_asyncio.fixture
async def jane(make_affiliate, tiers):
    return await make_affiliate(
        email="jane@example.com",
        first_name="Jane",
        last_name="Doe",
        referral_code="JANDOE1A2B",
        commission_rate=Decimal("0.15"),
    )


async def _referral_count(session) -> int:
    return (await session.execute(select(func.count(Referral.id)))).scalar()


class TestOrderIngestion:
    """Test orders/paid handling."""

    @pytest.mark.asyncio
    async def test_records_commission_on_subtotal(self, session, handler, jane, notification_client):
        """$100 subtotal at 15% records a pending $15.00 referral."""
        result = await handler.handle("orders/paid", _order())

        assert result.outcome == WebhookOutcome.RECORDED
        referral = (await session.execute(select(Referral))).scalar_one()
        assert referral.order_id == "1001"
        assert referral.order_subtotal == Decimal("100.00")
        assert referral.order_total == Decimal("108.00")
        assert referral.commission_rate == Decimal("0.15")
        assert referral.commission_amount == Decimal("15.00")
        assert referral.status == ReferralStatus.PENDING
        assert referral.is_recurring is False

        await session.refresh(jane)
        assert jane.total_referrals == 1
        assert jane.total_revenue == Decimal("108.00")
        assert jane.balance_owed == Decimal("0.00")
        notification_client.track.assert_awaited()

    @pytest.mark.asyncio
    async def test_links_customer(self, session, handler, jane):
        """First attributed order creates the referred customer."""
        await handler.handle("orders/paid", _order())

        customer = (await session.execute(select(ReferredCustomer))).scalar_one()
        referral = (await session.execute(select(Referral))).scalar_one()
        assert customer.affiliate_id == jane.id
        assert customer.storefront_customer_id == "5550001"
        assert referral.customer_id == customer.id

    @pytest.mark.asyncio
    async def test_code_is_case_insensitive(self, handler, jane):
        result = await handler.handle("orders/paid", _order(code="jandoe1a2b"))

        assert result.outcome == WebhookOutcome.RECORDED

    @pytest.mark.asyncio
    async def test_duplicate_delivery(self, session, handler, jane):
        """The same order twice leaves exactly one referral."""
        first = await handler.handle("orders/paid", _order())
        second = await handler.handle("orders/create", _order())

        assert first.outcome == WebhookOutcome.RECORDED
        assert second.outcome == WebhookOutcome.DUPLICATE
        assert await _referral_count(session) == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_reports_duplicate(self, session, deps, jane):
        """A race past the existence check is caught by the unique order id."""
        recorder = ReferralRecorder(session, deps)
        order = AttributedOrder(
            order_id="race-1",
            source=OrderSource.STOREFRONT,
            subtotal=Decimal("40.00"),
            total=Decimal("40.00"),
        )

        first = await recorder.record(jane, None, order)
        second = await recorder.record(jane, None, order)

        assert first.outcome == WebhookOutcome.RECORDED
        assert second.outcome == WebhookOutcome.DUPLICATE
        assert await _referral_count(session) == 1

    @pytest.mark.asyncio
    async def test_no_code(self, session, handler, jane):
        result = await handler.handle("orders/paid", _order(code=None))

        assert result.outcome == WebhookOutcome.NO_CODE
        assert await _referral_count(session) == 0

    @pytest.mark.asyncio
    async def test_unknown_code(self, session, handler, jane):
        result = await handler.handle("orders/paid", _order(code="SUMMER10"))

        assert result.outcome == WebhookOutcome.NOT_AFFILIATE
        assert await _referral_count(session) == 0

    @pytest.mark.asyncio
    async def test_unapproved_affiliate(self, session, handler, make_affiliate, tiers):
        """Pending affiliates do not earn."""
        await make_affiliate(referral_code="PENDING01", status=AffiliateStatus.PENDING)

        result = await handler.handle("orders/paid", _order(code="PENDING01"))

        assert result.outcome == WebhookOutcome.NOT_AFFILIATE

    @pytest.mark.asyncio
    async def test_self_referral_blocked(self, session, handler, jane, activity_actions):
        """An affiliate buying with their own code earns nothing."""
        result = await handler.handle("orders/paid", _order(email="Jane@Example.com"))

        assert result.outcome == WebhookOutcome.SELF_REFERRAL
        assert await _referral_count(session) == 0
        assert await activity_actions(jane.id) == ["self_referral_blocked"]

    @pytest.mark.asyncio
    async def test_missing_order_id_ignored(self, handler, jane):
        result = await handler.handle("orders/paid", _order(order_id=None))

        assert result.outcome == WebhookOutcome.IGNORED

    @pytest.mark.asyncio
    async def test_unknown_topic_ignored(self, handler):
        result = await handler.handle("products/update", {"id": 1})

        assert result.outcome == WebhookOutcome.IGNORED

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_fail_delivery(self, session, handler, jane, notification_client):
        """A broken marketing client never affects the referral."""
        notification_client.track.side_effect = RuntimeError("marketing down")

        result = await handler.handle("orders/paid", _order())

        assert result.outcome == WebhookOutcome.RECORDED
        assert await _referral_count(session) == 1


class TestTierUpgrade:
    """Test the sixth-referral upgrade."""

    @pytest.mark.asyncio
    async def test_sixth_referral_upgrades_once(
        self, session, handler, make_affiliate, make_referral, tiers, tracked_events, activity_actions
    ):
        """Referral six is earned at the old rate, then the tier moves up."""
        affiliate = await make_affiliate(referral_code="UPGRADE01")
        for _ in range(5):
            await make_referral(affiliate.id)
        await session.refresh(affiliate)

        result = await handler.handle("orders/paid", _order(order_id=6006, code="UPGRADE01"))

        assert result.outcome == WebhookOutcome.RECORDED
        referral = (
            await session.execute(select(Referral).where(Referral.order_id == "6006"))
        ).scalar_one()
        assert referral.commission_amount == Decimal("10.00")

        await session.refresh(affiliate)
        assert affiliate.total_referrals == 6
        assert affiliate.tier == "adept"
        assert affiliate.commission_rate == Decimal("0.15")
        assert tracked_events().count("Affiliate Tier Upgrade") == 1
        assert "tier_upgraded" in await activity_actions(affiliate.id)


class TestRefunds:
    """Test refunds/create handling."""

    @pytest.mark.asyncio
    async def test_refund_before_payout(self, session, handler, jane):
        """A pending referral is refunded and stops counting."""
        await handler.handle("orders/paid", _order())

        result = await handler.handle("refunds/create", {"id": 1, "order_id": 1001})

        assert result.outcome == WebhookOutcome.REFUNDED
        referral = (await session.execute(select(Referral))).scalar_one()
        await session.refresh(referral)
        assert referral.status == ReferralStatus.REFUNDED
        await session.refresh(jane)
        assert jane.total_referrals == 0

    @pytest.mark.asyncio
    async def test_refund_after_payout_queued(self, session, handler, jane, make_referral):
        """A paid referral keeps its status and lands in manual review."""
        referral = await make_referral(jane.id, order_id="7007", status=ReferralStatus.PAID)

        first = await handler.handle("refunds/create", {"order_id": "7007"})
        second = await handler.handle("refunds/create", {"order_id": "7007"})

        assert first.outcome == WebhookOutcome.REFUND_QUEUED_FOR_REVIEW
        assert second.outcome == WebhookOutcome.REFUND_QUEUED_FOR_REVIEW
        await session.refresh(referral)
        assert referral.status == ReferralStatus.PAID
        items = (await session.execute(select(ManualReviewItem))).scalars().all()
        assert len(items) == 1
        assert items[0].kind == ReviewKind.REFUND_ON_PAID_REFERRAL
        assert items[0].referral_id == referral.id

    @pytest.mark.asyncio
    async def test_refund_of_refunded_is_noop(self, handler, jane, make_referral):
        await make_referral(jane.id, order_id="8008", status=ReferralStatus.REFUNDED)

        result = await handler.handle("refunds/create", {"order_id": "8008"})

        assert result.outcome == WebhookOutcome.REFUND_NOOP

    @pytest.mark.asyncio
    async def test_refund_for_unknown_order(self, handler):
        result = await handler.handle("refunds/create", {"order_id": "9999"})

        assert result.outcome == WebhookOutcome.REFUND_NOT_FOUND

    @pytest.mark.asyncio
    async def test_refund_without_order_id(self, handler):
        result = await handler.handle("refunds/create", {"id": 1})

        assert result.outcome == WebhookOutcome.IGNORED
