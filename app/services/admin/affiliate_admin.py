"""
Affiliate administration: status changes and on-demand recalculation.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import DEFAULT_DISCOUNT_PERCENT
from app.models.affiliate import Affiliate
from app.models.enums import AffiliateStatus, ErrorSeverity, ErrorType
from app.repositories.affiliate_repository import AffiliateRepository
from app.services.audit.activity_logger import ActivityLogger
from app.services.audit.diagnostics import DiagnosticSink
from app.services.base_service import BaseService
from app.services.integrations.interfaces import DiscountProvisioner
from app.services.integrations.notifier import AffiliateNotifier
from app.services.ledger.stats_service import AffiliateStatsService, StatsResult
from app.utils.datetime_utils import utc_now
from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import ExternalServiceError, InvalidRequestError, NotFoundError


def parse_affiliate_status(value: str) -> AffiliateStatus:
    try:
        return AffiliateStatus(value)
    except ValueError as e:
        raise InvalidRequestError(f"Invalid status: {value}") from e


class AffiliateAdminService(BaseService):
    """Admin-driven affiliate changes."""

    def __init__(
        self,
        session: AsyncSession,
        notifier: AffiliateNotifier,
        activity: ActivityLogger,
        diagnostics: DiagnosticSink,
        provisioner: DiscountProvisioner | None = None,
    ) -> None:
        super().__init__(session)
        self.notifier = notifier
        self.activity = activity
        self.diagnostics = diagnostics
        self.provisioner = provisioner
        self.affiliate_repo = AffiliateRepository(session)
        self.stats = AffiliateStatsService(session)

    @with_rollback_on_error
    async def set_status(self, affiliate_id: int, status: str, changed_by: str) -> Affiliate:
        """
        Change one affiliate's status.

        Approval stamps approved_at, provisions the storefront discount
        code when missing and sends the approval notification.

        Raises:
            InvalidRequestError: Unknown status
            NotFoundError: Affiliate does not exist
        """
        new_status = parse_affiliate_status(status)
        affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
        if affiliate is None:
            raise NotFoundError("Affiliate not found", affiliate_id=affiliate_id)

        was_approved = affiliate.is_approved
        self._apply_status(affiliate, new_status)
        await self.session.commit()

        await self.activity.log(
            "approved" if new_status == AffiliateStatus.APPROVED else f"status_changed_{new_status}",
            affiliate_id=affiliate.id,
            details={"changed_by": changed_by, "new_status": new_status.value},
        )
        if new_status == AffiliateStatus.APPROVED and not was_approved:
            await self._on_approved(affiliate)
        return affiliate

    @with_rollback_on_error
    async def bulk_set_status(
        self, affiliate_ids: list[int], status: str, changed_by: str
    ) -> int:
        """
        Change the status of several affiliates in one transaction.

        Returns:
            Number of affiliates updated
        """
        if not affiliate_ids:
            raise InvalidRequestError("Missing required fields")
        new_status = parse_affiliate_status(status)

        newly_approved: list[Affiliate] = []
        updated = 0
        for affiliate_id in dict.fromkeys(affiliate_ids):
            affiliate = await self.affiliate_repo.get_by_id(affiliate_id)
            if affiliate is None:
                continue
            if new_status == AffiliateStatus.APPROVED and not affiliate.is_approved:
                newly_approved.append(affiliate)
            self._apply_status(affiliate, new_status)
            updated += 1
        await self.session.commit()

        await self.activity.log(
            "bulk_status_change",
            details={
                "changed_by": changed_by,
                "new_status": new_status.value,
                "affiliate_count": updated,
                "affiliate_ids": list(affiliate_ids),
            },
        )
        for affiliate in newly_approved:
            await self._on_approved(affiliate)
        return updated

    async def recalculate(self, affiliate_id: int) -> StatsResult:
        """Re-derive an affiliate's aggregates from raw rows."""
        result = await self.stats.recalculate(affiliate_id)
        if result is None:
            raise NotFoundError("Affiliate not found", affiliate_id=affiliate_id)
        await self.session.commit()
        if result.tier_change is not None:
            await self.notifier.tier_upgrade(result.affiliate, result.tier_change)
        return result

    @staticmethod
    def _apply_status(affiliate: Affiliate, status: AffiliateStatus) -> None:
        affiliate.status = status
        if status == AffiliateStatus.APPROVED:
            affiliate.approved_at = utc_now()

    async def _on_approved(self, affiliate: Affiliate) -> None:
        await self._ensure_discount_code(affiliate)
        await self.notifier.approved(affiliate)

    async def _ensure_discount_code(self, affiliate: Affiliate) -> None:
        """Provision the storefront code once; a failure never blocks approval."""
        if affiliate.discount_code or self.provisioner is None:
            return
        code = affiliate.referral_code
        try:
            discount_id = await self.provisioner.create_discount_code(
                code, DEFAULT_DISCOUNT_PERCENT, title=f"Affiliate {code}"
            )
        except ExternalServiceError as e:
            await self.diagnostics.record(
                f"Failed to create discount code {code}",
                error_type=ErrorType.STOREFRONT_ERROR,
                severity=ErrorSeverity.ERROR,
                source="affiliate_approval",
                exc=e,
                affiliate_id=affiliate.id,
                details=e.context,
            )
            return

        affiliate.discount_code = code
        affiliate.storefront_discount_id = discount_id
        await self.session.commit()
        self.logger.info(f"Discount code {code} provisioned for affiliate {affiliate.id}")
