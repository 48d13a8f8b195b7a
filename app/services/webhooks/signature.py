"""
Webhook signature verification.

Each source signs the raw body with a per-source shared secret. A
source without a configured secret is accepted unverified (local/test
mode) and a warning is logged on every delivery.
"""

from collections.abc import Mapping

from loguru import logger

from app.config.settings import settings
from app.utils.exceptions import SignatureVerificationError
from app.utils.security import verify_base64_hmac, verify_hex_hmac, verify_signed_message


STOREFRONT_SIGNATURE_HEADER = "x-shopify-hmac-sha256"
STOREFRONT_TOPIC_HEADER = "x-shopify-topic"
SUBSCRIPTION_SIGNATURE_HEADER = "x-recharge-hmac-sha256"
IDENTITY_ID_HEADER = "svix-id"
IDENTITY_TIMESTAMP_HEADER = "svix-timestamp"
IDENTITY_SIGNATURE_HEADER = "svix-signature"


class WebhookVerifier:
    """Per-source signature checks over raw request bodies."""

    def __init__(
        self,
        storefront_secret: str | None = None,
        subscription_secret: str | None = None,
        identity_secret: str | None = None,
    ) -> None:
        self.storefront_secret = storefront_secret
        self.subscription_secret = subscription_secret
        self.identity_secret = identity_secret

    @classmethod
    def from_settings(cls) -> "WebhookVerifier":
        return cls(
            storefront_secret=settings.storefront_webhook_secret,
            subscription_secret=settings.subscription_webhook_secret,
            identity_secret=settings.identity_webhook_secret,
        )

    @staticmethod
    def _unverified(source: str) -> None:
        logger.warning(f"{source} webhook secret not configured, skipping signature verification")

    def verify_storefront(self, body: bytes, headers: Mapping[str, str]) -> None:
        """Base64 HMAC-SHA256 of the body."""
        if not self.storefront_secret:
            self._unverified("Storefront")
            return
        if not verify_base64_hmac(
            self.storefront_secret, body, headers.get(STOREFRONT_SIGNATURE_HEADER)
        ):
            raise SignatureVerificationError("Invalid storefront webhook signature")

    def verify_subscription(self, body: bytes, headers: Mapping[str, str]) -> None:
        """Hex HMAC-SHA256 of the body."""
        if not self.subscription_secret:
            self._unverified("Subscription")
            return
        if not verify_hex_hmac(
            self.subscription_secret, body, headers.get(SUBSCRIPTION_SIGNATURE_HEADER)
        ):
            raise SignatureVerificationError("Invalid subscription webhook signature")

    def verify_identity(self, body: bytes, headers: Mapping[str, str]) -> None:
        """Signed "{id}.{timestamp}.{body}" message."""
        if not self.identity_secret:
            self._unverified("Identity")
            return
        if not verify_signed_message(
            self.identity_secret,
            headers.get(IDENTITY_ID_HEADER),
            headers.get(IDENTITY_TIMESTAMP_HEADER),
            body,
            headers.get(IDENTITY_SIGNATURE_HEADER),
        ):
            raise SignatureVerificationError("Invalid identity webhook signature")
