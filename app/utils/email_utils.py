"""
Email hygiene helpers.

Normalization for similar-email detection, disposable-domain and
plus-addressing checks used by the application fraud check.
"""

import re

from app.config.constants import DISPOSABLE_EMAIL_DOMAINS


_PLUS_TAG = re.compile(r"\+.*$")
_SEPARATORS = re.compile(r"[._-]")


def normalize_email(email: str) -> str:
    """
    Normalize an email for similarity comparison.

    Lowercases, strips a "+tag" suffix and removes dots, underscores and
    hyphens from the local part.

    Examples:
        >>> normalize_email("John.Doe+promo@Example.com")
        'johndoe@example.com'
        >>> normalize_email("j_o-h.n@example.com")
        'john@example.com'
    """
    email = email.strip().lower()
    if "@" not in email:
        return email
    local, domain = email.rsplit("@", 1)
    local = _SEPARATORS.sub("", _PLUS_TAG.sub("", local))
    return f"{local}@{domain}"


def email_domain(email: str) -> str:
    """Lowercased domain part, or empty string."""
    return email.rsplit("@", 1)[1].lower() if "@" in email else ""


def is_disposable_email(email: str) -> bool:
    """Check the domain against the known disposable-mail providers."""
    return email_domain(email) in DISPOSABLE_EMAIL_DOMAINS


def has_plus_addressing(email: str) -> bool:
    """Check for a "+tag" in the local part."""
    local = email.split("@", 1)[0]
    return "+" in local


def emails_match(a: str | None, b: str | None) -> bool:
    """Case-insensitive email equality; missing values never match."""
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()
