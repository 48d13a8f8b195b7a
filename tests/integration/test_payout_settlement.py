"""
Integration tests for payout settlement.

Tests cover:
- Completion side effects (referrals paid, balance, notification)
- Idempotence and the lost-race path
- Failure handling
- Conflicting terminal statuses queued for review
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select

from app.models import ManualReviewItem, Payout, PayoutStatus, Referral, ReferralStatus, ReviewKind
from app.services.payout.settlement import PayoutSettlementService
from app.services.payout.transitions import RemoteResult
from app.utils.datetime_utils import utc_now


@pytest.fixture
def settlement(session, notifier, activity):
    return PayoutSettlementService(session, notifier, activity)


@pytest_asyncio.fixture
async def payable(session, tiers, make_affiliate, make_referral, make_payout):
    """Affiliate owed $50.00 with a processing payout for it."""
    affiliate = await make_affiliate()
    await make_referral(affiliate.id, status=ReferralStatus.APPROVED, commission_amount=Decimal("30.00"))
    await make_referral(affiliate.id, status=ReferralStatus.APPROVED, commission_amount=Decimal("20.00"))
    await make_referral(affiliate.id, status=ReferralStatus.PENDING, commission_amount=Decimal("9.00"))
    affiliate.balance_owed = Decimal("50.00")
    affiliate.total_commission_earned = Decimal("50.00")
    await session.commit()
    payout = await make_payout(affiliate.id, amount=Decimal("50.00"))
    return affiliate, payout


async def _statuses(session, affiliate_id) -> list[str]:
    rows = await session.execute(
        select(Referral.status).where(Referral.affiliate_id == affiliate_id).order_by(Referral.id)
    )
    return list(rows.scalars())


class TestComplete:
    """Test completing a payout."""

    @pytest.mark.asyncio
    async def test_completion_pays_referrals(self, session, settlement, payable, tracked_events, activity_actions):
        """Approved referrals become paid and the balance drops to zero."""
        affiliate, payout = payable

        result = await settlement.settle(
            payout, RemoteResult("completed", utc_now(), item_id="ITEM-1"), source="poller"
        )

        assert result.applied is True
        assert result.completed is True
        assert result.referrals_paid == 2
        assert payout.status == PayoutStatus.COMPLETED
        assert payout.paypal_payout_item_id == "ITEM-1"
        assert payout.completed_at is not None
        assert await _statuses(session, affiliate.id) == ["paid", "paid", "pending"]

        await session.refresh(affiliate)
        assert affiliate.total_commission_paid == Decimal("50.00")
        assert affiliate.balance_owed == Decimal("0.00")
        assert tracked_events() == ["Affiliate Payout Sent"]
        assert await activity_actions(affiliate.id) == ["payout_completed"]

        referral = (
            await session.execute(select(Referral).where(Referral.status == ReferralStatus.PAID).limit(1))
        ).scalar_one()
        await session.refresh(referral)
        assert referral.payout_id == payout.id

    @pytest.mark.asyncio
    async def test_second_completion_is_noop(self, session, settlement, payable, tracked_events):
        """Applying the same result twice changes nothing the second time."""
        _, payout = payable
        remote = RemoteResult("completed", utc_now(), item_id="ITEM-1")

        await settlement.settle(payout, remote, source="poller")
        again = await settlement.settle(payout, remote, source="webhook")

        assert again.applied is False
        assert again.referrals_paid == 0
        assert tracked_events() == ["Affiliate Payout Sent"]

    @pytest.mark.asyncio
    async def test_stale_payout_loses_race(self, session, session_factory, notifier, settlement, payable, tracked_events):
        """A path holding a stale row does not repeat the side effects."""
        _, payout = payable
        remote = RemoteResult("completed", utc_now(), item_id="ITEM-1")

        async with session_factory() as other:
            fresh = await other.get(Payout, payout.id)
            first = await PayoutSettlementService(other, notifier).settle(fresh, remote, source="webhook")
        assert first.applied is True
        assert payout.status == PayoutStatus.PROCESSING

        second = await settlement.settle(payout, remote, source="poller")

        assert second.applied is False
        assert tracked_events() == ["Affiliate Payout Sent"]


class TestFail:
    """Test failing a payout."""

    @pytest.mark.asyncio
    async def test_failure_leaves_referrals_approved(self, session, settlement, payable, activity_actions):
        """A failed payout keeps the balance owed."""
        affiliate, payout = payable

        result = await settlement.settle(
            payout, RemoteResult("failed", utc_now(), failure_reason="RECEIVER_UNREGISTERED"), source="poller"
        )

        assert result.failed is True
        assert payout.status == PayoutStatus.FAILED
        assert payout.failure_reason == "RECEIVER_UNREGISTERED"
        assert await _statuses(session, affiliate.id) == ["approved", "approved", "pending"]
        await session.refresh(affiliate)
        assert affiliate.balance_owed == Decimal("50.00")
        assert await activity_actions(affiliate.id) == ["payout_failed"]

    @pytest.mark.asyncio
    async def test_processing_result_is_noop(self, settlement, payable):
        _, payout = payable

        result = await settlement.settle(payout, RemoteResult("processing", utc_now()), source="poller")

        assert result.applied is False
        assert payout.status == PayoutStatus.PROCESSING


class TestConflicts:
    """Test contradicting terminal statuses."""

    @pytest.mark.asyncio
    async def test_completed_after_failed_queued_once(self, session, settlement, payable):
        """Success reported for a failed payout goes to manual review."""
        _, payout = payable
        await settlement.settle(payout, RemoteResult("failed", utc_now()), source="poller")

        first = await settlement.settle(payout, RemoteResult("completed", utc_now()), source="webhook")
        second = await settlement.settle(payout, RemoteResult("completed", utc_now()), source="poller")

        assert first.applied is False
        assert first.transition.conflict is True
        assert second.applied is False
        assert payout.status == PayoutStatus.FAILED
        items = (await session.execute(select(ManualReviewItem))).scalars().all()
        assert len(items) == 1
        assert items[0].kind == ReviewKind.CONFLICTING_PAYOUT_STATUS
        assert items[0].details["local_status"] == "failed"
        assert items[0].details["remote_status"] == "completed"
