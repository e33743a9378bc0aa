"""
Notification Payload Formatter.

Formats accepted events as title/body/url/icon payloads for the delivery
layer. Pure functions with no side effects.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .models import NotificationPayload, PayloadData
from .types import ELLIPSIS, MAX_BODY_CHARS, EventType


def truncate_content(content: str, limit: int = MAX_BODY_CHARS) -> str:
    """
    Truncate message content for display.

    Content longer than the limit keeps its first (limit - 3) characters
    followed by "...", so the result is exactly limit characters long.

    Examples:
        >>> truncate_content("short")
        'short'
        >>> len(truncate_content("a" * 150))
        100
    """
    if len(content) <= limit:
        return content
    return content[: limit - len(ELLIPSIS)] + ELLIPSIS


def _channel_url(data: PayloadData, include_message: bool) -> str:
    """Deep link to a channel (optionally to a message), or "/" without ids."""
    if not (data.server_id and data.channel_id):
        return "/"
    url = f"/servers/{data.server_id}/channels/{data.channel_id}"
    if include_message and data.message_id:
        url += f"?message={data.message_id}"
    return url


def _title_and_url(event_type: EventType, data: PayloadData) -> tuple[str, str]:
    sender = data.sender_name
    channel = data.channel_name

    if event_type is EventType.DM:
        url = f"/dm/{data.conversation_id}" if data.conversation_id else "/"
        return sender, url

    if event_type is EventType.MENTION:
        title = f"{sender} mentioned you in #{channel}" if channel else f"{sender} mentioned you"
        return title, _channel_url(data, include_message=True)

    if event_type is EventType.THREAD_REPLY:
        title = f"{sender} replied in #{channel}" if channel else f"{sender} replied"
        return title, _channel_url(data, include_message=False)

    if channel and data.server_name:
        title = f"#{channel} in {data.server_name}"
    elif channel:
        title = f"#{channel}"
    else:
        title = sender
    return title, _channel_url(data, include_message=True)


def build_notification_payload(
    event_type: EventType | str,
    data: PayloadData | Mapping[str, Any],
) -> NotificationPayload:
    """
    Build the display payload for an accepted event.

    Args:
        event_type: Classified event type
        data: Sender, content and location details (PayloadData or wire dict)

    Returns:
        NotificationPayload with truncated body and deep-link url
    """
    if not isinstance(data, PayloadData):
        data = PayloadData.from_dict(data)
    event_type = EventType(event_type)

    content = truncate_content(data.message_content)
    title, url = _title_and_url(event_type, data)

    if event_type is EventType.MESSAGE:
        body = f"{data.sender_name}: {content}"
    else:
        body = content

    return NotificationPayload(
        type=event_type,
        title=title,
        body=body,
        url=url,
        icon=data.sender_avatar_url,
        data={
            "messageId": data.message_id,
            "channelId": data.channel_id,
            "serverId": data.server_id,
            "conversationId": data.conversation_id,
        },
    )
