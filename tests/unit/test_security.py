"""
Unit tests for webhook signature verification and masking helpers.
"""

import base64
import hashlib
import hmac

import pytest

from app.services.webhooks.signature import WebhookVerifier
from app.utils.exceptions import SignatureVerificationError
from app.utils.security import (
    mask_email,
    verify_base64_hmac,
    verify_hex_hmac,
    verify_signed_message,
)


BODY = b'{"id": 1001, "subtotal_price": "100.00"}'


def _b64(secret: bytes, message: bytes) -> str:
    return base64.b64encode(hmac.new(secret, message, hashlib.sha256).digest()).decode()


class TestHmacHelpers:
    """Test the raw HMAC checks."""

    def test_base64_valid(self):
        """Correct base64 signature verifies."""
        assert verify_base64_hmac("shh", BODY, _b64(b"shh", BODY)) is True

    def test_base64_tampered_body(self):
        """Any body change breaks the signature."""
        assert verify_base64_hmac("shh", BODY + b" ", _b64(b"shh", BODY)) is False

    def test_base64_missing(self):
        """Missing header never verifies."""
        assert verify_base64_hmac("shh", BODY, None) is False
        assert verify_base64_hmac("shh", BODY, "") is False

    def test_hex_valid_case_insensitive(self):
        """Hex digests compare case-insensitively."""
        digest = hmac.new(b"shh", BODY, hashlib.sha256).hexdigest()

        assert verify_hex_hmac("shh", BODY, digest) is True
        assert verify_hex_hmac("shh", BODY, digest.upper()) is True
        assert verify_hex_hmac("other", BODY, digest) is False

    def test_non_ascii_signature_rejected(self):
        """A header with non-ASCII characters is a mismatch, not an error."""
        assert verify_base64_hmac("shh", BODY, "s\u00efgnature") is False
        assert verify_hex_hmac("shh", BODY, "ab\u00fc") is False


class TestSignedMessage:
    """Test identity-provider message signatures."""

    KEY = b"identity-signing-key"
    SECRET = "whsec_" + base64.b64encode(KEY).decode()

    def _signature(self, msg_id: str, timestamp: str, body: bytes) -> str:
        return "v1," + _b64(self.KEY, f"{msg_id}.{timestamp}.".encode() + body)

    def test_valid(self):
        """Signature over id, timestamp and body verifies."""
        header = self._signature("msg_1", "1700000000", BODY)

        assert verify_signed_message(self.SECRET, "msg_1", "1700000000", BODY, header) is True

    def test_any_listed_signature_matches(self):
        """The header may carry several signatures."""
        header = "v1,bogus " + self._signature("msg_1", "1700000000", BODY)

        assert verify_signed_message(self.SECRET, "msg_1", "1700000000", BODY, header) is True

    def test_wrong_timestamp(self):
        """Timestamp is part of the signed content."""
        header = self._signature("msg_1", "1700000000", BODY)

        assert verify_signed_message(self.SECRET, "msg_1", "1700000001", BODY, header) is False

    def test_missing_headers(self):
        """All three headers are required."""
        assert verify_signed_message(self.SECRET, None, "1", BODY, "v1,x") is False

    def test_non_ascii_signature_rejected(self):
        header = "v1,\u00e9t\u00e9"

        assert verify_signed_message(self.SECRET, "msg_1", "1700000000", BODY, header) is False


class TestWebhookVerifier:
    """Test per-source verification."""

    def test_storefront_valid(self):
        """Valid storefront signature passes silently."""
        verifier = WebhookVerifier(storefront_secret="shh")

        verifier.verify_storefront(BODY, {"x-shopify-hmac-sha256": _b64(b"shh", BODY)})

    def test_storefront_invalid(self):
        """Invalid storefront signature raises."""
        verifier = WebhookVerifier(storefront_secret="shh")

        with pytest.raises(SignatureVerificationError) as exc_info:
            verifier.verify_storefront(BODY, {"x-shopify-hmac-sha256": "nope"})
        assert exc_info.value.http_status == 401

    def test_storefront_non_ascii_header_is_unauthorized(self):
        verifier = WebhookVerifier(storefront_secret="shh")

        with pytest.raises(SignatureVerificationError):
            verifier.verify_storefront(BODY, {"x-shopify-hmac-sha256": "\u00ff" * 44})

    def test_subscription_uses_hex(self):
        """Subscription deliveries carry hex digests."""
        verifier = WebhookVerifier(subscription_secret="sub")
        digest = hmac.new(b"sub", BODY, hashlib.sha256).hexdigest()

        verifier.verify_subscription(BODY, {"x-recharge-hmac-sha256": digest})
        with pytest.raises(SignatureVerificationError):
            verifier.verify_subscription(BODY, {})

    def test_unconfigured_source_is_accepted(self):
        """Without a secret every source is accepted unverified."""
        verifier = WebhookVerifier()

        verifier.verify_storefront(BODY, {})
        verifier.verify_subscription(BODY, {})
        verifier.verify_identity(BODY, {})


class TestMaskEmail:
    """Test email masking for logs."""

    def test_masks_local_part(self):
        assert mask_email("john.doe@example.com") == "jo***@example.com"

    def test_invalid_input(self):
        assert mask_email("nobody") == "***"
        assert mask_email(None) == "***"
