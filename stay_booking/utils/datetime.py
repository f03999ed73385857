"""UTC date and time helpers."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Use this instead of datetime.now() or datetime.utcnow() so every stored
    timestamp is timezone-aware and in UTC.

    Example:
        >>> utc_now().tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current calendar date in UTC; the booking engine's notion of "today"."""
    return utc_now().date()
