"""
Webhook ingestion handlers.

One handler per external source. Handlers return a WebhookResult for
every benign outcome and let unexpected errors propagate to the web
layer, which records a diagnostic and answers 5xx.
"""

from app.services.webhooks.disbursement import (
    DisbursementWebhookHandler,
    verify_disbursement_webhook,
)
from app.services.webhooks.identity import IdentityWebhookHandler
from app.services.webhooks.referral_recorder import (
    AttributedOrder,
    HandlerDeps,
    ReferralRecorder,
)
from app.services.webhooks.refunds import RefundProcessor
from app.services.webhooks.results import WebhookOutcome, WebhookResult
from app.services.webhooks.signature import WebhookVerifier
from app.services.webhooks.storefront import StorefrontWebhookHandler
from app.services.webhooks.subscription import SubscriptionWebhookHandler


__all__ = [
    "AttributedOrder",
    "DisbursementWebhookHandler",
    "HandlerDeps",
    "IdentityWebhookHandler",
    "ReferralRecorder",
    "RefundProcessor",
    "StorefrontWebhookHandler",
    "SubscriptionWebhookHandler",
    "WebhookOutcome",
    "WebhookResult",
    "WebhookVerifier",
    "verify_disbursement_webhook",
]
