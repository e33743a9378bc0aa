"""
Mute Expiration.

Turns mute duration tokens into absolute expiration instants and decides
whether a stored expiration has elapsed.
"""

from __future__ import annotations

from datetime import datetime, timezone

from .errors import InvalidMuteDurationError
from .types import MUTE_DURATION_OFFSETS, MuteDuration


def _utc(now: datetime | None) -> datetime:
    """Normalize an optional reference time to an aware UTC datetime."""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def parse_mute_duration(value: MuteDuration | str) -> MuteDuration:
    """
    Parse a mute duration token.

    Args:
        value: MuteDuration member or one of "15m", "1h", "8h", "24h", "forever"

    Returns:
        MuteDuration

    Raises:
        InvalidMuteDurationError: If the token is not recognized
    """
    if isinstance(value, MuteDuration):
        return value
    try:
        return MuteDuration(value)
    except ValueError:
        raise InvalidMuteDurationError(value) from None


def calculate_mute_expiration(
    duration: MuteDuration | str,
    now: datetime | None = None,
) -> datetime | None:
    """
    Calculate when a mute of the given duration expires.

    Args:
        duration: Mute duration token
        now: Reference time (defaults to current UTC time)

    Returns:
        Expiration instant, or None for "forever" (no expiration)
    """
    duration = parse_mute_duration(duration)
    if duration is MuteDuration.FOREVER:
        return None
    return _utc(now) + MUTE_DURATION_OFFSETS[duration]


def is_mute_expired(muted_until: datetime | None, now: datetime | None = None) -> bool:
    """
    Check whether a mute expiration has elapsed.

    No expiration means muted until explicitly removed, so it never expires.
    The mute is still active at the exact expiration instant.

    Args:
        muted_until: Stored expiration, or None
        now: Reference time (defaults to current UTC time)

    Returns:
        True if muted_until is strictly before now
    """
    if muted_until is None:
        return False
    return _utc(muted_until) < _utc(now)
