"""
Integration tests for referral-time fraud checks.

Tests cover:
- Activity windows read from the ledger
- Flagged referrals are still recorded as pending
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select

from app.models import ActivityLog, Referral, ReferralStatus, ReferredCustomer
from app.services.fraud.fraud_service import FraudCheckService
from app.services.webhooks.results import WebhookOutcome
from app.services.webhooks.storefront import StorefrontWebhookHandler
from app.services.webhooks.subscription import SubscriptionWebhookHandler


NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def jane(make_affiliate, tiers):
    return await make_affiliate(
        email="jane@example.com",
        referral_code="JANDOE1A2B",
        commission_rate=Decimal("0.15"),
    )


async def _seed_burst(make_referral, affiliate_id: int, count: int = 10) -> None:
    """Referrals created in the last few minutes."""
    now = datetime.now(UTC)
    for i in range(count):
        await make_referral(affiliate_id, created_at=now - timedelta(minutes=i + 1))


async def _flag_entries(session, action: str) -> list[ActivityLog]:
    result = await session.execute(select(ActivityLog).where(ActivityLog.action == action))
    return list(result.scalars().all())


class TestReferralSnapshot:
    """Test the counts gathered for scoring."""

    @pytest.mark.asyncio
    async def test_window_boundaries(self, session, jane, make_affiliate, make_referral):
        """Hour, day and prior-30-day windows split at their edges."""
        ages = [
            timedelta(minutes=30),
            timedelta(hours=2),
            timedelta(hours=23),
            timedelta(days=1),  # first instant of the trailing day
            timedelta(days=1, hours=1),
            timedelta(days=10),
            timedelta(days=31, hours=1),  # before the prior window
        ]
        for age in ages:
            await make_referral(jane.id, created_at=NOW - age)
        await make_referral(jane.id, created_at=NOW + timedelta(minutes=5))
        other = await make_affiliate()
        await make_referral(other.id, created_at=NOW - timedelta(hours=3))

        snapshot = await FraudCheckService(session).referral_snapshot(jane.id, Decimal("100.00"), NOW)

        # Rows after NOW are still inside the open-ended windows
        assert snapshot.affiliate_last_hour == 2
        assert snapshot.affiliate_last_24h == 5
        assert snapshot.affiliate_prior_30d == 2
        assert snapshot.global_last_24h == 6
        assert snapshot.order_total == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_burst_flags_referral(self, session, jane, make_referral):
        """Ten referrals within the hour plus no history reaches the threshold."""
        for i in range(10):
            await make_referral(jane.id, created_at=NOW - timedelta(minutes=i + 1))
        service = FraudCheckService(session)

        first = await service.check_referral(jane.id, Decimal("100.00"), NOW)
        second = await service.check_referral(jane.id, Decimal("100.00"), NOW)

        assert first.flagged is True
        assert first.score == 30 + 25
        assert first.to_dict() == second.to_dict()

    @pytest.mark.asyncio
    async def test_quiet_affiliate_not_flagged(self, session, jane, make_referral):
        for days in range(1, 31):
            await make_referral(jane.id, created_at=NOW - timedelta(days=days, hours=2))

        result = await FraudCheckService(session).check_referral(jane.id, Decimal("100.00"), NOW)

        assert result.score == 0
        assert result.flagged is False


class TestFlaggedReferralRecorded:
    """A fraud flag adds an audit entry and never drops the commission."""

    @pytest.mark.asyncio
    async def test_storefront_order_flagged(self, session, deps, jane, make_referral):
        await _seed_burst(make_referral, jane.id)
        handler = StorefrontWebhookHandler(session, deps)
        order = {
            "id": 7001,
            "name": "#7001",
            "email": "buyer@example.com",
            "subtotal_price": "100.00",
            "total_price": "100.00",
            "discount_codes": [{"code": "JANDOE1A2B"}],
            "customer": {"id": 5550001, "email": "buyer@example.com"},
        }

        result = await handler.handle("orders/paid", order)

        assert result.outcome == WebhookOutcome.RECORDED
        assert result.detail["fraud_flagged"] is True
        referral = (
            await session.execute(select(Referral).where(Referral.order_id == "7001"))
        ).scalar_one()
        assert referral.status == ReferralStatus.PENDING
        assert referral.commission_amount == Decimal("15.00")

        entries = await _flag_entries(session, "referral_fraud_flagged")
        assert len(entries) == 1
        assert entries[0].affiliate_id == jane.id
        assert entries[0].details["order_id"] == "7001"
        assert entries[0].details["flagged"] is True
        assert await _flag_entries(session, "recurring_referral_fraud_flagged") == []

    @pytest.mark.asyncio
    async def test_subscription_charge_flagged(self, session, deps, jane, make_referral):
        session.add(
            ReferredCustomer(
                affiliate_id=jane.id,
                storefront_customer_id="5550001",
                email="buyer@example.com",
                first_order_id="1001",
            )
        )
        await session.commit()
        await _seed_burst(make_referral, jane.id)
        handler = SubscriptionWebhookHandler(session, deps)
        charge = {
            "id": 90001,
            "status": "SUCCESS",
            "customer_id": 3300,
            "shopify_customer_id": "5550001",
            "email": "buyer@example.com",
            "subtotal_price": "40.00",
            "total_price": "44.00",
        }

        result = await handler.handle({"charge": charge})

        assert result.outcome == WebhookOutcome.RECORDED
        referral = (
            await session.execute(select(Referral).where(Referral.order_id == "90001"))
        ).scalar_one()
        assert referral.status == ReferralStatus.PENDING
        assert referral.is_recurring is True

        entries = await _flag_entries(session, "recurring_referral_fraud_flagged")
        assert len(entries) == 1
        assert entries[0].details["order_id"] == "90001"
        assert await _flag_entries(session, "referral_fraud_flagged") == []
