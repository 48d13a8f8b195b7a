"""
Request metadata extraction for audit and diagnostic records.
"""

from collections.abc import Mapping
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestMeta:
    """Client metadata attached to activity and diagnostic records."""

    ip_address: str | None = None
    user_agent: str | None = None
    endpoint: str | None = None


def client_ip(headers: Mapping[str, str]) -> str | None:
    """
    Resolve the client IP from proxy headers.

    Order: first hop of X-Forwarded-For, X-Real-IP, CF-Connecting-IP.
    """
    forwarded = headers.get("x-forwarded-for") or headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for name in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(name) or headers.get(name.title())
        if value:
            return value.strip()
    return None


def request_meta(headers: Mapping[str, str], endpoint: str | None = None) -> RequestMeta:
    """Build RequestMeta from request headers."""
    return RequestMeta(
        ip_address=client_ip(headers),
        user_agent=headers.get("user-agent") or headers.get("User-Agent"),
        endpoint=endpoint,
    )
