"""
Fraud check service.

Gathers ledger snapshots at an explicit "now" and hands them to the
pure scoring functions in signals.py.
"""

from datetime import datetime, timedelta
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import constants as c
from app.config.settings import settings
from app.repositories.activity_log_repository import ActivityLogRepository
from app.repositories.affiliate_repository import AffiliateRepository
from app.repositories.referral_repository import ReferralRepository
from app.services.fraud.signals import (
    ApplicationSnapshot,
    FraudAssessment,
    ReferralActivitySnapshot,
    score_application,
    score_referral,
)


class FraudCheckService:
    """Snapshot gathering plus scoring for referral and application checks."""

    def __init__(self, session: AsyncSession, threshold: int | None = None) -> None:
        """
        Initialize fraud check service.

        Args:
            session: Async database session
            threshold: Flag threshold override (defaults to settings)
        """
        self.session = session
        self.referral_repo = ReferralRepository(session)
        self.affiliate_repo = AffiliateRepository(session)
        self.activity_repo = ActivityLogRepository(session)
        self.threshold = threshold if threshold is not None else settings.fraud_flag_threshold

    async def referral_snapshot(
        self, affiliate_id: int, order_total: Decimal, now: datetime
    ) -> ReferralActivitySnapshot:
        """
        Collect referral activity counts relative to now.

        The prior window covers days 1-31 before now, so it does not
        overlap the trailing 24 hours.
        """
        hour_ago = now - timedelta(hours=1)
        day_ago = now - timedelta(days=1)
        history_start = day_ago - timedelta(days=c.SPIKE_HISTORY_DAYS)

        return ReferralActivitySnapshot(
            affiliate_last_hour=await self.referral_repo.count_for_affiliate_between(
                affiliate_id, hour_ago
            ),
            affiliate_last_24h=await self.referral_repo.count_for_affiliate_between(
                affiliate_id, day_ago
            ),
            affiliate_prior_30d=await self.referral_repo.count_for_affiliate_between(
                affiliate_id, history_start, day_ago
            ),
            global_last_24h=await self.referral_repo.count_all_since(day_ago),
            order_total=order_total,
        )

    async def check_referral(
        self, affiliate_id: int, order_total: Decimal, now: datetime
    ) -> FraudAssessment:
        """
        Score a referral before it is written.

        A flag never blocks creation; the caller only records an audit entry.
        """
        snapshot = await self.referral_snapshot(affiliate_id, order_total, now)
        assessment = score_referral(snapshot, self.threshold)
        if assessment.flagged:
            logger.warning(
                f"Referral for affiliate {affiliate_id} flagged (score {assessment.score})",
                extra={"affiliate_id": affiliate_id, "reasons": assessment.reasons},
            )
        return assessment

    async def check_application(
        self,
        affiliate_id: int,
        email: str,
        ip_address: str | None,
        now: datetime,
    ) -> FraudAssessment:
        """
        Score a new affiliate application.

        Args:
            affiliate_id: Newly created affiliate (excluded from comparisons)
            email: Applicant email
            ip_address: Signup IP, if known
            now: Reference time for the IP window
        """
        existing = await self.affiliate_repo.list_emails(exclude_id=affiliate_id)

        sharing = 0
        if ip_address:
            sharing = await self.activity_repo.count_affiliates_sharing_ip(
                ip_address,
                since=now - timedelta(days=c.IP_CLUSTER_WINDOW_DAYS),
                exclude_affiliate_id=affiliate_id,
            )

        assessment = score_application(
            ApplicationSnapshot(
                email=email,
                existing_emails=tuple(existing),
                affiliates_sharing_ip=sharing,
            ),
            self.threshold,
        )
        if assessment.flagged:
            logger.warning(
                f"Affiliate application {affiliate_id} flagged (score {assessment.score})",
                extra={"affiliate_id": affiliate_id, "reasons": assessment.reasons},
            )
        return assessment
