"""
Notification Trigger Evaluation.

Classifies an event for one recipient and decides whether a notification
level lets that kind of event through.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .types import LEVEL_ALLOWED_EVENTS, EventType, LevelValue, NotificationLevel

if TYPE_CHECKING:
    from .models import NotificationContext

# <@userId> with an alphanumeric id
MENTION_PATTERN = re.compile(r"<@([a-zA-Z0-9]+)>")


def determine_event_type(context: NotificationContext) -> EventType:
    """
    Classify an event from the recipient's point of view.

    First match wins: direct message, mention, reply to the recipient,
    plain message. A direct message is never reclassified as a mention.
    """
    if context.conversation_id:
        return EventType.DM

    if context.recipient_id in context.mentioned_user_ids:
        return EventType.MENTION

    if context.is_reply_to_recipient:
        return EventType.THREAD_REPLY

    return EventType.MESSAGE


def is_event_allowed_by_level(level: LevelValue, event_type: EventType) -> bool:
    """
    Check if a notification level permits an event type.

    Unknown levels permit nothing.
    """
    if not isinstance(level, NotificationLevel):
        return False
    return event_type in LEVEL_ALLOWED_EVENTS.get(level, frozenset())


def extract_mentioned_user_ids(message_content: str) -> list[str]:
    """
    Extract user ids from <@id> mention tokens.

    Order is preserved and repeated mentions are kept.

    Args:
        message_content: Raw message text

    Returns:
        List of mentioned user ids
    """
    return MENTION_PATTERN.findall(message_content or "")


def is_reply_to_user(reply_to_author_id: str | None, user_id: str) -> bool:
    """Check if a message replies to a message written by user_id."""
    return reply_to_author_id is not None and reply_to_author_id == user_id
