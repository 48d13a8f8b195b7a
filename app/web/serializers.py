"""JSON views of ledger rows for admin responses."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from app.models.affiliate import Affiliate
from app.models.manual_review_item import ManualReviewItem
from app.models.payout import Payout
from app.models.referral import Referral
from app.models.system_error import SystemErrorLog
from app.models.tier import Tier


def _value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _pick(obj: Any, *names: str) -> dict[str, Any]:
    return {name: _value(getattr(obj, name)) for name in names}


def affiliate_to_dict(affiliate: Affiliate) -> dict[str, Any]:
    return _pick(
        affiliate,
        "id", "email", "first_name", "last_name", "status", "tier", "commission_rate",
        "referral_code", "discount_code", "paypal_email", "total_referrals", "total_revenue",
        "total_commission_earned", "total_commission_paid", "balance_owed", "approved_at",
    )


def referral_to_dict(referral: Referral) -> dict[str, Any]:
    return _pick(
        referral,
        "id", "affiliate_id", "order_id", "order_source", "order_number", "order_subtotal",
        "order_total", "commission_rate", "commission_amount", "status", "is_recurring",
        "approved_at", "paid_at", "payout_id",
    )


def payout_to_dict(payout: Payout) -> dict[str, Any]:
    return _pick(
        payout,
        "id", "affiliate_id", "amount", "method", "status", "paypal_email", "paypal_batch_id",
        "paypal_payout_item_id", "failure_reason", "notes", "processed_at", "completed_at",
    )


def tier_to_dict(tier: Tier) -> dict[str, Any]:
    return _pick(tier, "id", "name", "slug", "min_referrals", "commission_rate", "description", "perks")


def system_error_to_dict(record: SystemErrorLog) -> dict[str, Any]:
    return _pick(
        record,
        "id", "error_type", "severity", "message", "source", "endpoint", "affiliate_id",
        "order_id", "payout_id", "http_status", "details", "resolved", "created_at",
    )


def review_item_to_dict(item: ManualReviewItem) -> dict[str, Any]:
    return _pick(
        item,
        "id", "kind", "affiliate_id", "referral_id", "payout_id", "details", "resolved",
        "resolved_by", "created_at",
    )
