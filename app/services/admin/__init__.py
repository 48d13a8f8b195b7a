"""
Admin operations.

Every operation expects an already-authorized admin subject; the web
layer checks it with AdminAuthorizer.
"""

from app.services.admin.affiliate_admin import AffiliateAdminService
from app.services.admin.authorizer import AdminAuthorizer
from app.services.admin.diagnostics_admin import OperationsAdminService
from app.services.admin.payout_admin import PayoutAdminService
from app.services.admin.referral_admin import ReferralAdminService
from app.services.admin.tier_admin import TierAdminService


__all__ = [
    "AdminAuthorizer",
    "AffiliateAdminService",
    "OperationsAdminService",
    "PayoutAdminService",
    "ReferralAdminService",
    "TierAdminService",
]
