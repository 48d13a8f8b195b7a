"""
Referral administration.

Admins move referrals along the state machine. paid is reached only
through payout completion.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralStatus
from app.models.referral import Referral
from app.repositories.referral_repository import ReferralRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.base_service import BaseService
from app.services.ledger.stats_service import AffiliateStatsService
from app.utils.datetime_utils import utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import (
    InvalidRequestError,
    InvalidStatusTransitionError,
    NotFoundError,
)


ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    ReferralStatus.PENDING: frozenset(
        {ReferralStatus.APPROVED, ReferralStatus.REFUNDED, ReferralStatus.REJECTED}
    ),
    ReferralStatus.APPROVED: frozenset(
        {ReferralStatus.PENDING, ReferralStatus.REFUNDED, ReferralStatus.REJECTED}
    ),
}


def check_referral_transition(current: str, target: ReferralStatus) -> bool:
    """
    Validate an admin referral status change.

    Returns:
        False when the referral is already in the target status

    Raises:
        InvalidStatusTransitionError: Change not allowed
    """
    if target == ReferralStatus.PAID:
        raise InvalidStatusTransitionError(
            "Referrals are marked paid only by a completed payout", status=target.value
        )
    if current == target:
        return False
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidStatusTransitionError(
            f"Cannot change referral from {current} to {target}",
            current=current,
            target=target.value,
        )
    return True


def parse_referral_status(value: str) -> ReferralStatus:
    try:
        return ReferralStatus(value)
    except ValueError as e:
        raise InvalidRequestError(f"Invalid status: {value}") from e


class ReferralAdminService(BaseService):
    """Admin-driven referral status changes."""

    def __init__(self, session: AsyncSession, activity: ActivityLogger) -> None:
        super().__init__(session)
        self.activity = activity
        self.referral_repo = ReferralRepository(session)
        self.stats = AffiliateStatsService(session)

    def _apply(self, referral: Referral, target: ReferralStatus) -> bool:
        if not check_referral_transition(referral.status, target):
            return False
        referral.status = target
        if target == ReferralStatus.APPROVED:
            referral.approved_at = utc_now()
        return True

    @with_rollback_on_error
    async def set_status(self, referral_id: int, status: str, changed_by: str) -> Referral:
        """
        Change one referral's status and recalculate its affiliate.

        Raises:
            InvalidRequestError: Unknown status
            NotFoundError: Referral does not exist
            InvalidStatusTransitionError: Change not allowed
        """
        target = parse_referral_status(status)
        referral = await self.referral_repo.get_by_id(referral_id)
        if referral is None:
            raise NotFoundError("Referral not found", referral_id=referral_id)

        changed = self._apply(referral, target)
        if changed:
            await self.session.flush()
            await self.stats.recalculate(referral.affiliate_id)
        await self.session.commit()

        if changed:
            await self.activity.log(
                f"referral_{target}",
                affiliate_id=referral.affiliate_id,
                details={
                    "changed_by": changed_by,
                    "referral_id": referral.id,
                    "new_status": target.value,
                },
            )
        return referral

    @with_rollback_on_error
    async def bulk_set_status(
        self, referral_ids: list[int], status: str, changed_by: str
    ) -> int:
        """
        Change several referrals in one transaction.

        Any disallowed transition rejects the whole request.

        Returns:
            Number of referrals changed
        """
        if not referral_ids:
            raise InvalidRequestError("Missing required fields")
        target = parse_referral_status(status)

        stmt = select(Referral).where(Referral.id.in_(referral_ids)).order_by(Referral.id)
        referrals = list((await self.session.execute(stmt)).scalars().all())

        changed = [r for r in referrals if self._apply(r, target)]

        await self.session.flush()
        for affiliate_id in dict.fromkeys(r.affiliate_id for r in changed):
            await self.stats.recalculate(affiliate_id)
        await self.session.commit()

        await self.activity.log(
            "bulk_referral_status_change",
            details={
                "changed_by": changed_by,
                "new_status": target.value,
                "referral_count": len(changed),
                "referral_ids": [r.id for r in changed],
            },
        )
        return len(changed)
