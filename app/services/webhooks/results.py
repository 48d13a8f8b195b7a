"""
Webhook handler results.
"""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class WebhookOutcome(StrEnum):
    """What a handler did with an event. All are acknowledged with 2xx."""

    RECORDED = "recorded"
    DUPLICATE = "duplicate"
    NO_CODE = "no_code"
    NOT_AFFILIATE = "not_affiliate"
    SELF_REFERRAL = "self_referral"
    IGNORED = "ignored"

    REFUNDED = "refunded"
    REFUND_NOT_FOUND = "refund_not_found"
    REFUND_NOOP = "refund_noop"
    REFUND_QUEUED_FOR_REVIEW = "refund_queued_for_review"

    PAYOUT_UPDATED = "payout_updated"
    PAYOUT_NOTED = "payout_noted"

    AFFILIATE_CREATED = "affiliate_created"
    AFFILIATE_LINKED = "affiliate_linked"
    ALREADY_EXISTS = "already_exists"


@dataclass
class WebhookResult:
    """Handler result returned to the HTTP layer."""

    outcome: WebhookOutcome
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"received": True, "outcome": self.outcome.value, **self.detail}
