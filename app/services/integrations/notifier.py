"""
Affiliate notifier.

Builds the outbound affiliate events and sends them through a
NotificationClient. Every method is best-effort: exceptions are logged
and never reach the caller.
"""

from typing import Any

from loguru import logger

from app.config import constants as c
from app.models.affiliate import Affiliate
from app.models.payout import Payout
from app.models.referral import Referral
from app.services.commission.tier_evaluator import TierChange
from app.services.integrations.interfaces import NotificationClient


class AffiliateNotifier:
    """Event builders for the marketing platform."""

    def __init__(self, client: NotificationClient | None) -> None:
        self.client = client

    async def _send(self, event_name: str, affiliate: Affiliate, properties: dict[str, Any]) -> bool:
        if self.client is None:
            return False
        try:
            return await self.client.track(event_name, affiliate.email, properties)
        except Exception as e:
            logger.warning(
                f"Notification {event_name!r} for affiliate {affiliate.id} failed: {e}"
            )
            return False

    async def signed_up(self, affiliate: Affiliate) -> bool:
        return await self._send(
            c.EVENT_AFFILIATE_SIGNED_UP,
            affiliate,
            {"first_name": affiliate.first_name, "referral_code": affiliate.referral_code},
        )

    async def approved(self, affiliate: Affiliate) -> bool:
        return await self._send(
            c.EVENT_AFFILIATE_APPROVED,
            affiliate,
            {
                "first_name": affiliate.first_name,
                "referral_code": affiliate.referral_code,
                "discount_code": affiliate.discount_code,
                "tier": affiliate.tier,
                "commission_rate": float(affiliate.commission_rate),
            },
        )

    async def referral(self, affiliate: Affiliate, referral: Referral) -> bool:
        return await self._send(
            c.EVENT_AFFILIATE_REFERRAL,
            affiliate,
            {
                "order_id": referral.order_id,
                "order_number": referral.order_number,
                "order_source": referral.order_source,
                "order_total": float(referral.order_total),
                "commission_amount": float(referral.commission_amount),
                "is_recurring": referral.is_recurring,
                "total_referrals": affiliate.total_referrals,
                "balance_owed": float(affiliate.balance_owed),
            },
        )

    async def tier_upgrade(self, affiliate: Affiliate, change: TierChange) -> bool:
        return await self._send(
            c.EVENT_AFFILIATE_TIER_UPGRADE,
            affiliate,
            {
                "previous_tier": change.previous_slug,
                "new_tier": change.new_slug,
                "new_tier_name": change.new_name,
                "new_commission_rate": float(change.new_commission_rate),
            },
        )

    async def payout_sent(self, affiliate: Affiliate, payout: Payout) -> bool:
        return await self._send(
            c.EVENT_AFFILIATE_PAYOUT_SENT,
            affiliate,
            {
                "payout_id": payout.id,
                "amount": float(payout.amount),
                "method": payout.method,
            },
        )
