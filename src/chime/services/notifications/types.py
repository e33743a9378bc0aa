"""
Shared Type Definitions for Notification Policy.

Enums and lookup tables used by the resolver, classifier, gate and
payload builder. Kept free of imports from sibling modules to avoid
circular imports.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Union


class NotificationLevel(Enum):
    """
    How much a user wants to hear about.

    Ordered by permissiveness: ALL includes MENTIONS includes NOTHING.
    """

    ALL = "all"
    MENTIONS = "mentions"
    NOTHING = "nothing"


class MuteDuration(Enum):
    """Mute duration tokens accepted by mute operations."""

    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    EIGHT_HOURS = "8h"
    ONE_DAY = "24h"
    FOREVER = "forever"


class EventType(Enum):
    """Semantic classification of a message-like event for one recipient."""

    DM = "dm"
    MENTION = "mention"
    THREAD_REPLY = "thread_reply"
    MESSAGE = "message"


class OverrideScope(Enum):
    """Which override map an override lives in."""

    SERVER = "server"
    CHANNEL = "channel"
    CONVERSATION = "conversation"


# A stored level that failed to parse stays a raw string so the gate can
# reject it instead of the decode layer guessing a value.
LevelValue = Union[NotificationLevel, str]

# Offsets for finite mute durations; FOREVER has no expiration
MUTE_DURATION_OFFSETS: dict[MuteDuration, timedelta] = {
    MuteDuration.FIFTEEN_MINUTES: timedelta(minutes=15),
    MuteDuration.ONE_HOUR: timedelta(hours=1),
    MuteDuration.EIGHT_HOURS: timedelta(hours=8),
    MuteDuration.ONE_DAY: timedelta(hours=24),
}

# Event types each level lets through (levels not listed allow nothing)
LEVEL_ALLOWED_EVENTS: dict[NotificationLevel, frozenset[EventType]] = {
    NotificationLevel.ALL: frozenset(EventType),
    NotificationLevel.MENTIONS: frozenset(
        {EventType.DM, EventType.MENTION, EventType.THREAD_REPLY}
    ),
    NotificationLevel.NOTHING: frozenset(),
}

# Payload body limits
MAX_BODY_CHARS = 100
ELLIPSIS = "..."

# Defaults for mute operations when the caller does not choose
DEFAULT_MUTE_DURATION = MuteDuration.FOREVER
DEFAULT_MUTE_LEVEL = NotificationLevel.NOTHING


def parse_level(value: LevelValue | None) -> LevelValue:
    """
    Parse a stored level into a NotificationLevel.

    Unknown strings are returned unchanged rather than raising, so schema
    drift reaches the gate (which rejects them) instead of crashing a decision.

    Args:
        value: Enum member, its string value, or None

    Returns:
        NotificationLevel, or the raw string if it is not a known level
    """
    if isinstance(value, NotificationLevel):
        return value
    if value is None:
        return NotificationLevel.ALL
    try:
        return NotificationLevel(value)
    except ValueError:
        return value


def level_name(level: LevelValue) -> str:
    """Return the wire string for a level, known or not."""
    if isinstance(level, NotificationLevel):
        return level.value
    return str(level)
