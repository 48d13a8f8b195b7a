"""
Integration tests for subscription charge ingestion.

Renewals carry no discount code: attribution goes through the customer
linked by the original storefront order.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select

from app.models import OrderSource, Referral, ReferralStatus, ReferredCustomer
from app.services.webhooks.results import WebhookOutcome
from app.services.webhooks.subscription import SubscriptionWebhookHandler


def _charge(charge_id=90001, status="SUCCESS", **overrides) -> dict:
    charge = {
        "id": charge_id,
        "status": status,
        "customer_id": 3300,
        "shopify_customer_id": "5550001",
        "email": "buyer@example.com",
        "subtotal_price": "40.00",
        "total_price": "44.00",
        "created_at": "2026-03-01T09:00:00",
    }
    charge.update(overrides)
    return charge


@pytest.fixture
def handler(session, deps):
    return SubscriptionWebhookHandler(session, deps)


@pytest_asyncio.fixture
async def referred(session, make_affiliate, tiers):
    """Affiliate plus the customer their storefront order brought in."""
    affiliate = await make_affiliate(referral_code="JANDOE1A2B", commission_rate=Decimal("0.15"))
    customer = ReferredCustomer(
        affiliate_id=affiliate.id,
        storefront_customer_id="5550001",
        email="buyer@example.com",
        first_order_id="1001",
    )
    session.add(customer)
    await session.commit()
    return affiliate, customer


class TestSubscriptionCharges:
    """Test charge handling."""

    @pytest.mark.asyncio
    async def test_recurring_referral_recorded(self, session, handler, referred):
        """A paid renewal earns a recurring commission and links the billing id."""
        affiliate, customer = referred

        result = await handler.handle({"charge": _charge()})

        assert result.outcome == WebhookOutcome.RECORDED
        referral = (await session.execute(select(Referral))).scalar_one()
        assert referral.order_id == "90001"
        assert referral.order_source == OrderSource.SUBSCRIPTION
        assert referral.is_recurring is True
        assert referral.commission_amount == Decimal("6.00")
        assert referral.customer_id == customer.id
        assert referral.status == ReferralStatus.PENDING

        await session.refresh(customer)
        assert customer.subscription_customer_id == "3300"

    @pytest.mark.asyncio
    async def test_unwrapped_payload(self, handler, referred):
        """The charge may arrive at the top level."""
        result = await handler.handle(_charge(status="paid"))

        assert result.outcome == WebhookOutcome.RECORDED

    @pytest.mark.asyncio
    async def test_duplicate_charge(self, session, handler, referred):
        await handler.handle(_charge())
        result = await handler.handle(_charge())

        assert result.outcome == WebhookOutcome.DUPLICATE

    @pytest.mark.asyncio
    async def test_unknown_customer(self, session, handler, referred):
        """A subscriber nobody referred is not attributed."""
        result = await handler.handle(
            _charge(customer_id=1, shopify_customer_id=None, email="stranger@example.com")
        )

        assert result.outcome == WebhookOutcome.NOT_AFFILIATE
        assert (await session.execute(select(Referral))).first() is None

    @pytest.mark.asyncio
    async def test_inactive_affiliate(self, session, handler, referred):
        """Customers of a deactivated affiliate no longer earn."""
        affiliate, _ = referred
        affiliate.status = "inactive"
        await session.commit()

        result = await handler.handle(_charge())

        assert result.outcome == WebhookOutcome.NOT_AFFILIATE

    @pytest.mark.asyncio
    async def test_refunded_charge(self, session, handler, referred):
        """A refunded status refunds the recurring referral."""
        await handler.handle(_charge())

        result = await handler.handle(_charge(status="REFUNDED"))

        assert result.outcome == WebhookOutcome.REFUNDED
        referral = (await session.execute(select(Referral))).scalar_one()
        await session.refresh(referral)
        assert referral.status == ReferralStatus.REFUNDED

    @pytest.mark.asyncio
    async def test_other_status_ignored(self, handler, referred):
        result = await handler.handle(_charge(status="QUEUED"))

        assert result.outcome == WebhookOutcome.IGNORED

    @pytest.mark.asyncio
    async def test_charge_without_id(self, handler):
        result = await handler.handle({"status": "SUCCESS"})

        assert result.outcome == WebhookOutcome.IGNORED
