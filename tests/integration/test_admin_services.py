"""
Integration tests for admin operations.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import select

from app.models import (
    AffiliateStatus,
    ErrorType,
    ManualReviewItem,
    Payout,
    PayoutStatus,
    Referral,
    ReferralStatus,
    ReviewKind,
    SystemErrorLog,
)
from app.services.admin import (
    AffiliateAdminService,
    OperationsAdminService,
    PayoutAdminService,
    ReferralAdminService,
    TierAdminService,
)
from app.services.payout.orchestrator import PayoutOrchestrator
from app.services.payout.settlement import PayoutSettlementService
from app.utils.exceptions import (
    ExternalServiceError,
    InvalidRequestError,
    InvalidStatusTransitionError,
    NotFoundError,
    PayoutImmutableError,
)


@pytest.fixture
def provisioner():
    mock = AsyncMock()
    mock.create_discount_code = AsyncMock(return_value="gid://shopify/DiscountCodeNode/42")
    return mock


class TestAffiliateAdmin:
    """Test affiliate status changes."""

    @pytest.fixture
    def service(self, session, notifier, activity, diagnostics, provisioner):
        return AffiliateAdminService(session, notifier, activity, diagnostics, provisioner)

    @pytest.mark.asyncio
    async def test_approve_provisions_code_and_notifies(
        self, session, service, provisioner, make_affiliate, tiers, tracked_events, activity_actions
    ):
        """Approval stamps the date, creates the discount code and sends the event."""
        affiliate = await make_affiliate(status=AffiliateStatus.PENDING, referral_code="JANDOE1A2B")

        updated = await service.set_status(affiliate.id, "approved", changed_by="user_admin")

        assert updated.status == AffiliateStatus.APPROVED
        assert updated.approved_at is not None
        assert updated.discount_code == "JANDOE1A2B"
        assert updated.storefront_discount_id == "gid://shopify/DiscountCodeNode/42"
        assert provisioner.create_discount_code.await_args.args[0] == "JANDOE1A2B"
        assert tracked_events() == ["Affiliate Approved"]
        assert await activity_actions(affiliate.id) == ["approved"]

    @pytest.mark.asyncio
    async def test_provisioning_failure_does_not_block(
        self, session, service, provisioner, make_affiliate, tiers, tracked_events
    ):
        """A storefront error is recorded; the approval stands."""
        provisioner.create_discount_code.side_effect = ExternalServiceError(
            "storefront down", service="shopify", status=502
        )
        affiliate = await make_affiliate(status=AffiliateStatus.PENDING)

        updated = await service.set_status(affiliate.id, "approved", changed_by="user_admin")

        assert updated.status == AffiliateStatus.APPROVED
        assert updated.discount_code is None
        assert tracked_events() == ["Affiliate Approved"]
        error = (await session.execute(select(SystemErrorLog))).scalar_one()
        assert error.error_type == ErrorType.STOREFRONT_ERROR
        assert error.affiliate_id == affiliate.id

    @pytest.mark.asyncio
    async def test_reapproval_is_quiet(self, service, provisioner, make_affiliate, tiers, tracked_events):
        affiliate = await make_affiliate(discount_code="AFFCODE001")

        await service.set_status(affiliate.id, "approved", changed_by="user_admin")

        provisioner.create_discount_code.assert_not_awaited()
        assert tracked_events() == []

    @pytest.mark.asyncio
    async def test_deactivate(self, service, make_affiliate, tiers, activity_actions):
        affiliate = await make_affiliate()

        updated = await service.set_status(affiliate.id, "inactive", changed_by="user_admin")

        assert updated.status == AffiliateStatus.INACTIVE
        assert await activity_actions(affiliate.id) == ["status_changed_inactive"]

    @pytest.mark.asyncio
    async def test_invalid_status_and_missing(self, service, make_affiliate, tiers):
        affiliate = await make_affiliate()

        with pytest.raises(InvalidRequestError):
            await service.set_status(affiliate.id, "vip", changed_by="user_admin")
        with pytest.raises(NotFoundError):
            await service.set_status(9999, "approved", changed_by="user_admin")

    @pytest.mark.asyncio
    async def test_bulk_approve(self, session, service, make_affiliate, tiers, tracked_events, activity_actions):
        """Only affiliates not yet approved get the approval side effects."""
        first = await make_affiliate(status=AffiliateStatus.PENDING)
        second = await make_affiliate(status=AffiliateStatus.PENDING)
        already = await make_affiliate(discount_code="AFFCODE003")

        updated = await service.bulk_set_status(
            [first.id, second.id, already.id, 9999], "approved", changed_by="user_admin"
        )

        assert updated == 3
        assert tracked_events() == ["Affiliate Approved", "Affiliate Approved"]
        assert await activity_actions() == ["bulk_status_change"]

    @pytest.mark.asyncio
    async def test_bulk_requires_ids(self, service):
        with pytest.raises(InvalidRequestError):
            await service.bulk_set_status([], "approved", changed_by="user_admin")

    @pytest.mark.asyncio
    async def test_recalculate(self, session, service, make_affiliate, make_referral, tiers):
        affiliate = await make_affiliate()
        await make_referral(affiliate.id, status=ReferralStatus.APPROVED, commission_amount=Decimal("12.50"))

        result = await service.recalculate(affiliate.id)

        assert result.affiliate.balance_owed == Decimal("12.50")
        with pytest.raises(NotFoundError):
            await service.recalculate(9999)


class TestReferralAdmin:
    """Test referral state machine enforcement."""

    @pytest.fixture
    def service(self, session, activity):
        return ReferralAdminService(session, activity)

    @pytest.mark.asyncio
    async def test_approve_updates_balance(self, session, service, make_affiliate, make_referral, tiers, activity_actions):
        affiliate = await make_affiliate()
        referral = await make_referral(affiliate.id, commission_amount=Decimal("15.00"))

        updated = await service.set_status(referral.id, "approved", changed_by="user_admin")

        assert updated.status == ReferralStatus.APPROVED
        assert updated.approved_at is not None
        await session.refresh(affiliate)
        assert affiliate.balance_owed == Decimal("15.00")
        assert await activity_actions(affiliate.id) == ["referral_approved"]

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, service, make_affiliate, make_referral, tiers, activity_actions):
        affiliate = await make_affiliate()
        referral = await make_referral(affiliate.id)

        await service.set_status(referral.id, "pending", changed_by="user_admin")

        assert await activity_actions(affiliate.id) == []

    @pytest.mark.asyncio
    async def test_paid_is_not_settable(self, service, make_affiliate, make_referral, tiers):
        """Referrals become paid only through a completed payout."""
        affiliate = await make_affiliate()
        referral = await make_referral(affiliate.id, status=ReferralStatus.APPROVED)

        with pytest.raises(InvalidStatusTransitionError):
            await service.set_status(referral.id, "paid", changed_by="user_admin")

    @pytest.mark.asyncio
    async def test_terminal_statuses_are_final(self, service, make_affiliate, make_referral, tiers):
        affiliate = await make_affiliate()
        refunded = await make_referral(affiliate.id, status=ReferralStatus.REFUNDED)

        with pytest.raises(InvalidStatusTransitionError):
            await service.set_status(refunded.id, "approved", changed_by="user_admin")

    @pytest.mark.asyncio
    async def test_bulk_rejects_whole_batch(self, session, service, make_affiliate, make_referral, tiers):
        """One disallowed transition leaves every referral untouched."""
        affiliate = await make_affiliate()
        ok = await make_referral(affiliate.id)
        paid = await make_referral(affiliate.id, status=ReferralStatus.PAID)
        ids = [ok.id, paid.id]

        with pytest.raises(InvalidStatusTransitionError):
            await service.bulk_set_status(ids, "rejected", changed_by="user_admin")

        rows = await session.execute(select(Referral.status).where(Referral.id.in_(ids)).order_by(Referral.id))
        assert list(rows.scalars()) == ["pending", "paid"]

    @pytest.mark.asyncio
    async def test_bulk_approve(self, session, service, make_affiliate, make_referral, tiers):
        affiliate = await make_affiliate()
        referrals = [await make_referral(affiliate.id) for _ in range(3)]

        changed = await service.bulk_set_status([r.id for r in referrals], "approved", changed_by="user_admin")

        assert changed == 3
        await session.refresh(affiliate)
        assert affiliate.balance_owed == Decimal("30.00")


class TestPayoutAdmin:
    """Test admin payout overrides."""

    @pytest_asyncio.fixture
    async def service(self, session, notifier, activity, diagnostics):
        settlement = PayoutSettlementService(session, notifier, activity)
        orchestrator = PayoutOrchestrator(session, diagnostics, activity=activity, minimum_balance=Decimal("25.00"))
        return PayoutAdminService(session, settlement, orchestrator, activity)

    @pytest_asyncio.fixture
    async def owed_payout(self, session, make_affiliate, make_referral, make_payout, tiers):
        affiliate = await make_affiliate()
        await make_referral(affiliate.id, status=ReferralStatus.APPROVED, commission_amount=Decimal("30.00"))
        payout = await make_payout(affiliate.id, status=PayoutStatus.PENDING, method="manual", paypal_batch_id=None)
        return affiliate, payout

    @pytest.mark.asyncio
    async def test_mark_completed_pays_referrals(self, session, service, owed_payout, tracked_events, activity_actions):
        """A manual completion goes through settlement."""
        affiliate, payout = owed_payout

        updated = await service.set_status(payout.id, "completed", changed_by="user_admin")

        assert updated.status == PayoutStatus.COMPLETED
        rows = await session.execute(select(Referral.status).where(Referral.affiliate_id == affiliate.id))
        assert list(rows.scalars()) == ["paid"]
        assert tracked_events() == ["Affiliate Payout Sent"]
        assert await activity_actions(affiliate.id) == ["payout_completed", "payout_completed"]

    @pytest.mark.asyncio
    async def test_mark_processing(self, session, service, owed_payout):
        _, payout = owed_payout

        updated = await service.set_status(payout.id, "processing", changed_by="user_admin")

        assert updated.status == PayoutStatus.PROCESSING
        assert updated.processed_at is not None

    @pytest.mark.asyncio
    async def test_completed_is_immutable(self, service, owed_payout):
        _, payout = owed_payout
        await service.set_status(payout.id, "completed", changed_by="user_admin")

        with pytest.raises(PayoutImmutableError):
            await service.set_status(payout.id, "failed", changed_by="user_admin")

    @pytest.mark.asyncio
    async def test_failed_cannot_complete(self, session, service, owed_payout):
        _, payout = owed_payout
        payout_id = payout.id
        await service.set_status(payout_id, "failed", changed_by="user_admin", failure_reason="Bank rejected")

        with pytest.raises(InvalidStatusTransitionError):
            await service.set_status(payout_id, "completed", changed_by="user_admin")

        status = (await session.execute(select(Payout.status).where(Payout.id == payout_id))).scalar_one()
        assert status == PayoutStatus.FAILED

    @pytest.mark.asyncio
    async def test_unknown_status_and_payout(self, service, owed_payout):
        _, payout = owed_payout

        with pytest.raises(InvalidRequestError):
            await service.set_status(payout.id, "lost", changed_by="user_admin")
        with pytest.raises(NotFoundError):
            await service.set_status(9999, "completed", changed_by="user_admin")

    @pytest.mark.asyncio
    async def test_create_requires_ids(self, service):
        with pytest.raises(InvalidRequestError):
            await service.create_payouts([], "manual", created_by="user_admin")


class TestTierAdmin:
    """Test tier edits."""

    @pytest.mark.asyncio
    async def test_rate_propagates_to_current_members(
        self, session, activity, tiers, make_affiliate, make_referral, activity_actions
    ):
        """Affiliates in the tier get the new rate; recorded referrals keep theirs."""
        initiate, _ = tiers
        member = await make_affiliate()
        other = await make_affiliate(tier="adept", commission_rate=Decimal("0.15"))
        referral = await make_referral(member.id)
        service = TierAdminService(session, activity)

        tier, affected = await service.update_tier(
            initiate.id, "Initiate", 0, Decimal("0.12"), updated_by="user_admin", perks=["Starter kit"]
        )

        assert affected == 1
        assert tier.commission_rate == Decimal("0.12")
        assert tier.perks == ["Starter kit"]
        await session.refresh(member)
        await session.refresh(other)
        await session.refresh(referral)
        assert member.commission_rate == Decimal("0.12")
        assert other.commission_rate == Decimal("0.15")
        assert referral.commission_rate == Decimal("0.10")
        assert await activity_actions() == ["tier_updated"]

    @pytest.mark.asyncio
    async def test_validation(self, session, activity, tiers):
        initiate, _ = tiers
        service = TierAdminService(session, activity)

        with pytest.raises(InvalidRequestError):
            await service.update_tier(initiate.id, "Initiate", 0, Decimal("1.5"), updated_by="user_admin")
        with pytest.raises(InvalidRequestError):
            await service.update_tier(initiate.id, "", 0, Decimal("0.1"), updated_by="user_admin")
        with pytest.raises(NotFoundError):
            await service.update_tier(9999, "Ghost", 0, Decimal("0.1"), updated_by="user_admin")


class TestOperationsAdmin:
    """Test diagnostic and review queues."""

    @pytest.mark.asyncio
    async def test_resolve_error(self, session, diagnostics):
        await diagnostics.record("Storefront timeout", error_type=ErrorType.STOREFRONT_ERROR)
        service = OperationsAdminService(session)

        errors = await service.list_errors()
        assert len(errors) == 1

        resolved = await service.resolve_error(errors[0].id, "user_admin", notes="Retried by hand")

        assert resolved.resolved is True
        assert resolved.resolved_by == "user_admin"
        assert await service.list_errors() == []

    @pytest.mark.asyncio
    async def test_resolve_review_item(self, session):
        session.add(ManualReviewItem(kind=ReviewKind.NEGATIVE_BALANCE, affiliate_id=1, details={"paid": "5.00"}))
        session.add(ManualReviewItem(kind=ReviewKind.REFUND_ON_PAID_REFERRAL, referral_id=2))
        await session.commit()
        service = OperationsAdminService(session)

        negative = await service.list_review_items(kind=ReviewKind.NEGATIVE_BALANCE)
        assert len(negative) == 1

        await service.resolve_review_item(negative[0].id, "user_admin", notes="Clawed back")

        remaining = await service.list_review_items()
        assert [item.kind for item in remaining] == [ReviewKind.REFUND_ON_PAID_REFERRAL]

    @pytest.mark.asyncio
    async def test_resolve_missing(self, session):
        service = OperationsAdminService(session)

        with pytest.raises(NotFoundError):
            await service.resolve_error(404, "user_admin")
        with pytest.raises(NotFoundError):
            await service.resolve_review_item(404, "user_admin")
