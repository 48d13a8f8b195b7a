"""
Security utilities.

Webhook signature checks and masking of personal data in logs.
"""

import base64
import hashlib
import hmac


def compute_hmac_sha256(secret: str | bytes, body: bytes) -> bytes:
    """
    Compute raw HMAC-SHA256 digest of a request body.

    Args:
        secret: Shared secret
        body: Raw request body

    Returns:
        Digest bytes
    """
    key = secret.encode() if isinstance(secret, str) else secret
    return hmac.new(key, body, hashlib.sha256).digest()


def verify_base64_hmac(secret: str, body: bytes, signature: str | None) -> bool:
    """
    Verify a base64-encoded HMAC-SHA256 signature (storefront style).

    Examples:
        >>> sig = base64.b64encode(compute_hmac_sha256("s", b"{}")).decode()
        >>> verify_base64_hmac("s", b"{}", sig)
        True
        >>> verify_base64_hmac("s", b"{}", None)
        False
    """
    if not signature:
        return False
    expected = base64.b64encode(compute_hmac_sha256(secret, body)).decode()
    return hmac.compare_digest(expected.encode(), signature.strip().encode())


def verify_hex_hmac(secret: str, body: bytes, signature: str | None) -> bool:
    """Verify a hex-encoded HMAC-SHA256 signature (subscription billing style)."""
    if not signature:
        return False
    expected = compute_hmac_sha256(secret, body).hex()
    return hmac.compare_digest(expected.encode(), signature.strip().lower().encode())


def verify_signed_message(
    secret: str,
    message_id: str | None,
    timestamp: str | None,
    body: bytes,
    signature_header: str | None,
) -> bool:
    """
    Verify an identity-provider signed message.

    The signed content is "{id}.{timestamp}.{body}"; the secret carries a
    "whsec_" prefix followed by base64 key bytes. The header may list
    several space-separated "v1,<sig>" entries.
    """
    if not (message_id and timestamp and signature_header):
        return False

    raw_secret = secret[len("whsec_"):] if secret.startswith("whsec_") else secret
    try:
        key = base64.b64decode(raw_secret)
    except (ValueError, TypeError):
        return False

    signed = f"{message_id}.{timestamp}.".encode() + body
    expected = base64.b64encode(compute_hmac_sha256(key, signed)).decode()

    for entry in signature_header.split():
        _, _, candidate = entry.partition(",")
        if candidate and hmac.compare_digest(expected.encode(), candidate.encode()):
            return True
    return False


def mask_email(email: str | None) -> str:
    """
    Mask email for logging: jo***@example.com

    Examples:
        >>> mask_email("john.doe@example.com")
        'jo***@example.com'
        >>> mask_email(None)
        '***'
    """
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"
