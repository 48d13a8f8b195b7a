"""
Application constants.

Centralized constants for the application.
"""

from decimal import Decimal

# ========================================================================
# MONEY
# ========================================================================

CURRENCY = "USD"
MONEY_QUANTUM = Decimal("0.01")  # currency precision
PAYOUT_MINIMUM_BALANCE = Decimal("25.00")
DEFAULT_COMMISSION_RATE = Decimal("0.10")
DEFAULT_DISCOUNT_PERCENT = Decimal("10")

# ========================================================================
# FRAUD HEURISTICS
# ========================================================================

FRAUD_FLAG_THRESHOLD = 30

# Referral-time signals
REFERRALS_PER_HOUR_LIMIT = 10
REFERRAL_VELOCITY_SCORE = 30
CODE_USES_PER_DAY_LIMIT = 20  # counted globally, not per code
CODE_USAGE_SCORE = 20
SPIKE_RECENT_MIN = 5
SPIKE_HISTORICAL_DAILY_AVG_MAX = 1
SPIKE_HISTORY_DAYS = 30
SPIKE_SCORE = 25
HIGH_ORDER_TOTAL = Decimal("1000")
HIGH_ORDER_SCORE = 10
LOW_ORDER_TOTAL = Decimal("10")
LOW_ORDER_SCORE = 15

# Application-time signals
SIMILAR_EMAILS_MANY = 3
SIMILAR_EMAILS_MANY_SCORE = 40
SIMILAR_EMAILS_SOME_SCORE = 15
IP_CLUSTER_WINDOW_DAYS = 7
IP_CLUSTER_MANY = 3
IP_CLUSTER_MANY_SCORE = 35
IP_CLUSTER_SOME_SCORE = 10

DISPOSABLE_EMAIL_DOMAINS = frozenset({
    "10minutemail.com",
    "guerrillamail.com",
    "mailinator.com",
    "tempmail.com",
    "temp-mail.org",
    "throwaway.email",
    "yopmail.com",
    "trashmail.com",
    "sharklasers.com",
    "getnada.com",
    "dispostable.com",
    "maildrop.cc",
    "fakeinbox.com",
})

# ========================================================================
# REFERRAL CODES
# ========================================================================

REFERRAL_CODE_FALLBACK_PREFIX = "AFF"
REFERRAL_CODE_SUFFIX_BYTES = 2  # 4 hex chars
REFERRAL_CODE_MAX_ATTEMPTS = 5

# ========================================================================
# OUTBOUND HTTP
# ========================================================================

DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
PROCESSOR_MAX_ATTEMPTS = 3
PROCESSOR_BACKOFF_BASE_SECONDS = 0.5
PROCESSOR_BACKOFF_MAX_SECONDS = 8.0
TOKEN_EXPIRY_BUFFER_SECONDS = 60

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}
PAYPAL_CERT_URL_PREFIXES = (
    "https://api.paypal.com/",
    "https://api.sandbox.paypal.com/",
)

KLAVIYO_EVENTS_URL = "https://a.klaviyo.com/api/events/"
KLAVIYO_REVISION = "2024-02-15"

# ========================================================================
# PROCESSOR STATUS MAPS
# ========================================================================

# Batch header status -> local payout status
PAYPAL_BATCH_STATUS_MAP = {
    "SUCCESS": "completed",
    "DENIED": "failed",
    "CANCELED": "failed",
}

# Item transaction status -> local payout status
PAYPAL_ITEM_STATUS_MAP = {
    "SUCCESS": "completed",
    "FAILED": "failed",
    "RETURNED": "failed",
    "BLOCKED": "failed",
    "REFUNDED": "failed",
    "REVERSED": "failed",
    "UNCLAIMED": "processing",
    "ONHOLD": "processing",
    "PENDING": "processing",
}

# ========================================================================
# NOTIFICATION EVENT NAMES
# ========================================================================

EVENT_AFFILIATE_SIGNED_UP = "Affiliate Signed Up"
EVENT_AFFILIATE_APPROVED = "Affiliate Approved"
EVENT_AFFILIATE_REFERRAL = "Affiliate Referral"
EVENT_AFFILIATE_TIER_UPGRADE = "Affiliate Tier Upgrade"
EVENT_AFFILIATE_PAYOUT_SENT = "Affiliate Payout Sent"
