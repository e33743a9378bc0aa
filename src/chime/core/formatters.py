"""
Chime Formatters

Datetime parsing and formatting shared by the store, the CLI and the
notification engine.
"""

from datetime import datetime, timezone
from typing import Optional


def parse_datetime(dt_str: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO 8601 datetime string to an aware datetime.

    Accepts a trailing "Z", fractional seconds, and explicit offsets.
    Naive values are assumed to be UTC.

    Args:
        dt_str: ISO format datetime string

    Returns:
        datetime object, or None if parsing fails

    Examples:
        >>> parse_datetime("2026-01-15T12:30:00Z")
        datetime.datetime(2026, 1, 15, 12, 30, tzinfo=datetime.timezone.utc)
    """
    if not dt_str:
        return None

    value = dt_str.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(dt: datetime) -> str:
    """
    Format datetime as a UTC ISO string.

    Args:
        dt: datetime object (naive values are taken as UTC)

    Returns:
        ISO format string like "2026-01-15T12:30:00Z"
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_datetime_precise(dt: datetime) -> str:
    """Format datetime as a UTC ISO string with milliseconds."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def get_utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime with UTC timezone
    """
    return datetime.now(timezone.utc)


def get_utc_timestamp() -> str:
    """
    Get current UTC timestamp string.

    Returns:
        ISO format timestamp like "2026-01-15T12:30:00Z"
    """
    return format_datetime(get_utc_now())


def time_until(target: datetime, now: Optional[datetime] = None) -> float:
    """
    Calculate seconds until target datetime.

    Returns:
        Seconds until target (negative if in past)
    """
    now = now or get_utc_now()
    return (target - now).total_seconds()
