"""
Expiring access token value object.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ExpiringToken:
    """
    OAuth access token with an absolute expiry on a monotonic clock.

    Examples:
        >>> token = ExpiringToken("abc", expires_at=1000.0)
        >>> token.is_usable(now=900.0, buffer_seconds=60)
        True
        >>> token.is_usable(now=950.0, buffer_seconds=60)
        False
    """

    value: str
    expires_at: float

    @classmethod
    def issued(cls, value: str, expires_in: float, now: float) -> "ExpiringToken":
        """Build a token from an expires_in answer received at now."""
        return cls(value=value, expires_at=now + expires_in)

    def is_usable(self, now: float, buffer_seconds: float) -> bool:
        """Still valid for at least buffer_seconds."""
        return now < self.expires_at - buffer_seconds
