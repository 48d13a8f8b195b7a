"""
Enum definitions for models.
"""

from enum import StrEnum


class AffiliateStatus(StrEnum):
    """Affiliate account status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    INACTIVE = "inactive"


class ReferralStatus(StrEnum):
    """
    Referral status.

    pending -> approved -> paid
    pending/approved -> refunded | rejected
    """

    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REFUNDED = "refunded"
    REJECTED = "rejected"


class OrderSource(StrEnum):
    """Where a referral's order originated."""

    STOREFRONT = "storefront"
    SUBSCRIPTION = "subscription"


class PayoutStatus(StrEnum):
    """Payout status. completed and failed are terminal."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class PayoutMethod(StrEnum):
    """Disbursement method."""

    PAYPAL = "paypal"
    MANUAL = "manual"
    STORE_CREDIT = "store_credit"


class ErrorSeverity(StrEnum):
    """Diagnostic record severity."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorType(StrEnum):
    """Diagnostic record category."""

    WEBHOOK_ERROR = "webhook_error"
    API_ERROR = "api_error"
    PAYOUT_ERROR = "payout_error"
    STOREFRONT_ERROR = "storefront_error"
    SUBSCRIPTION_ERROR = "subscription_error"
    DISBURSEMENT_ERROR = "disbursement_error"
    DATABASE_ERROR = "database_error"
    VALIDATION_ERROR = "validation_error"
    AUTH_ERROR = "auth_error"
    RATE_LIMIT_ERROR = "rate_limit_error"
    UNKNOWN_ERROR = "unknown_error"


class ReviewKind(StrEnum):
    """Manual review queue item kinds."""

    REFUND_ON_PAID_REFERRAL = "refund_on_paid_referral"
    CONFLICTING_PAYOUT_STATUS = "conflicting_payout_status"
    NEGATIVE_BALANCE = "negative_balance"


# Referral statuses that count toward earned commission
EARNED_REFERRAL_STATUSES = (ReferralStatus.APPROVED, ReferralStatus.PAID)

# Referral statuses that count toward referral totals and revenue
COUNTED_REFERRAL_STATUSES = (
    ReferralStatus.PENDING,
    ReferralStatus.APPROVED,
    ReferralStatus.PAID,
)

# Payout statuses that mean money is (or may be) in flight
IN_FLIGHT_PAYOUT_STATUSES = (PayoutStatus.PENDING, PayoutStatus.PROCESSING)
