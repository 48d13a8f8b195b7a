"""
External integrations package.

- interfaces: collaborator protocols and value types
- paypal_client: payout processor (OAuth, batches, webhook verification)
- klaviyo_client: notification events
- shopify_client: discount code provisioning
- notifier: affiliate event builders (best effort)
"""

from app.services.integrations.expiring_token import ExpiringToken
from app.services.integrations.interfaces import (
    BatchSubmission,
    DiscountProvisioner,
    NotificationClient,
    PayoutItemRequest,
    PayoutProcessor,
    RemoteBatch,
    RemoteItem,
)
from app.services.integrations.klaviyo_client import KlaviyoClient
from app.services.integrations.notifier import AffiliateNotifier
from app.services.integrations.paypal_client import PayPalClient
from app.services.integrations.shopify_client import ShopifyClient


__all__ = [
    "AffiliateNotifier",
    "BatchSubmission",
    "DiscountProvisioner",
    "ExpiringToken",
    "KlaviyoClient",
    "NotificationClient",
    "PayPalClient",
    "PayoutItemRequest",
    "PayoutProcessor",
    "RemoteBatch",
    "RemoteItem",
    "ShopifyClient",
]
