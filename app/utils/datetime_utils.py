"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes (SQLite returns naive values).

    Args:
        value: Datetime that may be naive

    Returns:
        Timezone-aware datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_iso_datetime(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp from a third-party payload.

    Args:
        value: Timestamp string, possibly with a trailing "Z"

    Returns:
        Aware datetime or None when missing or unparseable
    """
    if not value:
        return None
    try:
        return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return None
