"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.activity_log import ActivityLog
from app.models.affiliate import Affiliate
from app.models.base import Base
from app.models.enums import (
    AffiliateStatus,
    ErrorSeverity,
    ErrorType,
    OrderSource,
    PayoutMethod,
    PayoutStatus,
    ReferralStatus,
    ReviewKind,
)
from app.models.manual_review_item import ManualReviewItem
from app.models.payout import Payout
from app.models.referral import Referral
from app.models.referred_customer import ReferredCustomer
from app.models.system_error import SystemErrorLog
from app.models.tier import Tier


__all__ = [
    "Base",
    # Ledger
    "Affiliate",
    "Tier",
    "ReferredCustomer",
    "Referral",
    "Payout",
    # Audit / diagnostics
    "ActivityLog",
    "ManualReviewItem",
    "SystemErrorLog",
    # Enums
    "AffiliateStatus",
    "ErrorSeverity",
    "ErrorType",
    "OrderSource",
    "PayoutMethod",
    "PayoutStatus",
    "ReferralStatus",
    "ReviewKind",
]
