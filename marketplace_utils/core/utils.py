"""Shared time helpers.

All timestamps written by hooks (log lines, journal records, session
records) are UTC with second precision, e.g. ``2025-01-15T10:30:00Z``.
"""

from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware).

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def utc_timestamp(dt: datetime | None = None) -> str:
    """Format a datetime as a second-precision UTC timestamp.

    Args:
        dt: Datetime to format.  Naive values are assumed to be UTC.
            Defaults to now.

    Example:
        >>> from datetime import datetime, timezone
        >>> utc_timestamp(datetime(2024, 1, 15, 10, 30, 5, 999, tzinfo=timezone.utc))
        '2024-01-15T10:30:05Z'
    """
    if dt is None:
        dt = utc_now()
    return to_aware_utc(dt).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime | None:
    """Parse a timestamp written by :func:`utc_timestamp`.

    Returns:
        A timezone-aware datetime, or ``None`` if *value* is not a valid
        timestamp.
    """
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


def to_aware_utc(dt: datetime) -> datetime:
    """Convert any datetime to timezone-aware UTC.

    - If naive: assumes UTC, adds tzinfo
    - If aware: converts to UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
