"""
Notification Data Model.

Per-user settings documents, their overrides, and the ephemeral context,
result and payload objects passed through a single evaluation.

Wire dictionaries (to_dict/from_dict) use the camelCase keys of the stored
settings document; snake_case keys are accepted on input as well.
"""

from __future__ import annotations

import copy
import re
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any
from zoneinfo import available_timezones

from ...core.formatters import format_datetime_precise, get_utc_now, parse_datetime
from .errors import InvalidOverrideScopeError, InvalidSettingsError
from .mute import is_mute_expired
from .types import (
    EventType,
    LevelValue,
    NotificationLevel,
    OverrideScope,
    level_name,
    parse_level,
)

# 24-hour HH:MM
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")

# Settings attribute holding each scope's override map
OVERRIDE_FIELDS: dict[OverrideScope, str] = {
    OverrideScope.SERVER: "server_overrides",
    OverrideScope.CHANNEL: "channel_overrides",
    OverrideScope.CONVERSATION: "conversation_overrides",
}

# Fields that are identity or bookkeeping and cannot be patched
_READ_ONLY_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})


def _get(data: Mapping[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    """Read a key accepting either its camelCase or snake_case spelling."""
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def parse_scope(value: OverrideScope | str) -> OverrideScope:
    """
    Parse an override scope name.

    Raises:
        InvalidOverrideScopeError: If the name is not a known scope
    """
    if isinstance(value, OverrideScope):
        return value
    try:
        return OverrideScope(value)
    except ValueError:
        raise InvalidOverrideScopeError(value) from None


# =============================================================================
# Overrides and Settings
# =============================================================================


@dataclass
class NotificationOverride:
    """
    A scoped exception to the global notification level.

    Without muted_until the override never expires on its own; with one it
    is ignored once the expiration has passed.
    """

    level: LevelValue = NotificationLevel.NOTHING
    muted_until: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        """Check whether the override still applies at the given time."""
        return not is_mute_expired(self.muted_until, now)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NotificationOverride:
        """
        Create from a wire dictionary.

        Raises:
            ValueError: If mutedUntil is present but not a valid timestamp
        """
        raw_until = _get(data, "mutedUntil", "muted_until")
        muted_until: datetime | None
        if raw_until is None or raw_until == "":
            muted_until = None
        elif isinstance(raw_until, datetime):
            muted_until = raw_until if raw_until.tzinfo else raw_until.replace(tzinfo=timezone.utc)
        else:
            muted_until = parse_datetime(str(raw_until))
            if muted_until is None:
                raise ValueError(f"Invalid mutedUntil timestamp: {raw_until!r}")

        return cls(
            level=parse_level(data.get("level", NotificationLevel.NOTHING.value)),
            muted_until=muted_until,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a wire dictionary (mutedUntil omitted when absent)."""
        result: dict[str, Any] = {"level": level_name(self.level)}
        if self.muted_until is not None:
            result["mutedUntil"] = format_datetime_precise(self.muted_until)
        return result


def _overrides_from_dict(data: Mapping[str, Any] | None) -> dict[str, NotificationOverride]:
    if not data:
        return {}
    return {key: NotificationOverride.from_dict(value) for key, value in data.items()}


def _overrides_to_dict(overrides: Mapping[str, NotificationOverride]) -> dict[str, Any]:
    return {key: override.to_dict() for key, override in overrides.items()}


@dataclass
class NotificationSettings:
    """
    Per-user notification preferences.

    Created lazily on first read (get-or-create), changed by mute/unmute and
    preference updates, never deleted. Quiet hours need both bounds; with
    either missing they are disabled.
    """

    id: str
    user_id: str
    global_notifications: LevelValue = NotificationLevel.ALL
    desktop_notifications: bool = True
    push_notifications: bool = True
    notification_sound: bool = True
    quiet_hours_start: str | None = None  # HH:MM
    quiet_hours_end: str | None = None  # HH:MM
    quiet_hours_timezone: str | None = None  # zoneinfo name
    server_overrides: dict[str, NotificationOverride] = field(default_factory=dict)
    channel_overrides: dict[str, NotificationOverride] = field(default_factory=dict)
    conversation_overrides: dict[str, NotificationOverride] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        user_id: str,
        data: Mapping[str, Any] | None = None,
        settings_id: str | None = None,
        now: datetime | None = None,
    ) -> NotificationSettings:
        """
        Build a new settings document with defaults.

        Args:
            user_id: Owning user
            data: Optional initial field values (same keys as apply_update)
            settings_id: Document id (a random uuid when omitted)
            now: Creation time (defaults to current UTC time)
        """
        timestamp = now or get_utc_now()
        settings = cls(
            id=settings_id or uuid.uuid4().hex,
            user_id=user_id,
            created_at=timestamp,
            updated_at=timestamp,
        )
        if data:
            settings = settings.apply_update(data)
        return settings

    @property
    def has_quiet_hours(self) -> bool:
        """Check if both quiet hours bounds are configured."""
        return bool(self.quiet_hours_start and self.quiet_hours_end)

    def overrides_for(self, scope: OverrideScope | str) -> dict[str, NotificationOverride]:
        """Get the override map for a scope (empty if unset)."""
        return getattr(self, OVERRIDE_FIELDS[parse_scope(scope)]) or {}

    def copy(self) -> NotificationSettings:
        """Return a deep copy that shares no mutable state with this one."""
        return copy.deepcopy(self)

    def apply_update(self, partial: Mapping[str, Any]) -> NotificationSettings:
        """
        Return a new settings object with a merge-patch applied.

        Top-level fields present in partial replace the current value; an
        override map supplied for a scope replaces that whole map.

        Args:
            partial: Field name -> new value (snake_case field names)

        Returns:
            Updated copy (self is not modified)

        Raises:
            InvalidSettingsError: For unknown or read-only fields
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}

        for key, value in partial.items():
            if key not in known:
                raise InvalidSettingsError(f"Unknown settings field: {key}", field=key)
            if key in _READ_ONLY_FIELDS:
                raise InvalidSettingsError(f"Field cannot be updated: {key}", field=key)

            if key in OVERRIDE_FIELDS.values():
                changes[key] = {
                    target: (
                        override
                        if isinstance(override, NotificationOverride)
                        else NotificationOverride.from_dict(override)
                    )
                    for target, override in (value or {}).items()
                }
            elif key == "global_notifications":
                changes[key] = parse_level(value)
            else:
                changes[key] = value

        return replace(copy.deepcopy(self), **changes)

    def validate(self) -> list[str]:
        """
        Validate the settings document.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if not isinstance(self.global_notifications, NotificationLevel):
            errors.append(
                f"Invalid globalNotifications value '{self.global_notifications}'. "
                "Must be 'all', 'mentions', or 'nothing'"
            )

        for name in ("quiet_hours_start", "quiet_hours_end"):
            value = getattr(self, name)
            if value and not TIME_PATTERN.match(value):
                errors.append(f"Invalid {name} format '{value}'. Must be HH:MM (24-hour)")

        if bool(self.quiet_hours_start) != bool(self.quiet_hours_end):
            errors.append("quiet_hours_start and quiet_hours_end must be set together")

        if self.quiet_hours_timezone and self.quiet_hours_timezone not in available_timezones():
            errors.append(f"Unknown quiet_hours_timezone '{self.quiet_hours_timezone}'")

        for scope, attr in OVERRIDE_FIELDS.items():
            for target, override in getattr(self, attr).items():
                if not isinstance(override.level, NotificationLevel):
                    errors.append(
                        f"Invalid level '{override.level}' in {scope.value} override '{target}'"
                    )

        return errors

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NotificationSettings:
        """Create from a wire dictionary."""
        return cls(
            id=str(_get(data, "id", "id", "")),
            user_id=str(_get(data, "userId", "user_id", "")),
            global_notifications=parse_level(
                _get(data, "globalNotifications", "global_notifications")
            ),
            desktop_notifications=bool(
                _get(data, "desktopNotifications", "desktop_notifications", True)
            ),
            push_notifications=bool(_get(data, "pushNotifications", "push_notifications", True)),
            notification_sound=bool(_get(data, "notificationSound", "notification_sound", True)),
            quiet_hours_start=_get(data, "quietHoursStart", "quiet_hours_start") or None,
            quiet_hours_end=_get(data, "quietHoursEnd", "quiet_hours_end") or None,
            quiet_hours_timezone=_get(data, "quietHoursTimezone", "quiet_hours_timezone") or None,
            server_overrides=_overrides_from_dict(_get(data, "serverOverrides", "server_overrides")),
            channel_overrides=_overrides_from_dict(
                _get(data, "channelOverrides", "channel_overrides")
            ),
            conversation_overrides=_overrides_from_dict(
                _get(data, "conversationOverrides", "conversation_overrides")
            ),
            created_at=parse_datetime(_get(data, "createdAt", "created_at")),
            updated_at=parse_datetime(_get(data, "updatedAt", "updated_at")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a wire dictionary."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "globalNotifications": level_name(self.global_notifications),
            "desktopNotifications": self.desktop_notifications,
            "pushNotifications": self.push_notifications,
            "notificationSound": self.notification_sound,
            "quietHoursStart": self.quiet_hours_start,
            "quietHoursEnd": self.quiet_hours_end,
            "quietHoursTimezone": self.quiet_hours_timezone,
            "serverOverrides": _overrides_to_dict(self.server_overrides),
            "channelOverrides": _overrides_to_dict(self.channel_overrides),
            "conversationOverrides": _overrides_to_dict(self.conversation_overrides),
            "createdAt": format_datetime_precise(self.created_at) if self.created_at else None,
            "updatedAt": format_datetime_precise(self.updated_at) if self.updated_at else None,
        }


# =============================================================================
# Evaluation Inputs and Outputs
# =============================================================================


@dataclass(frozen=True)
class NotificationContext:
    """
    One event as seen by one candidate recipient.

    Normally either conversation_id is set (direct message) or channel_id
    (optionally with server_id) is set.
    """

    sender_id: str
    recipient_id: str
    server_id: str | None = None
    channel_id: str | None = None
    conversation_id: str | None = None
    mentioned_user_ids: tuple[str, ...] = ()
    is_reply_to_recipient: bool = False

    def __post_init__(self) -> None:
        # Accept any iterable of ids but store an immutable tuple
        object.__setattr__(self, "mentioned_user_ids", tuple(self.mentioned_user_ids or ()))

    def for_recipient(
        self,
        recipient_id: str,
        is_reply_to_recipient: bool | None = None,
    ) -> NotificationContext:
        """Return the same event addressed to a different recipient."""
        return replace(
            self,
            recipient_id=recipient_id,
            is_reply_to_recipient=(
                self.is_reply_to_recipient
                if is_reply_to_recipient is None
                else is_reply_to_recipient
            ),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> NotificationContext:
        """Create from a wire dictionary."""
        mentioned: Iterable[str] = _get(data, "mentionedUserIds", "mentioned_user_ids") or ()
        return cls(
            sender_id=str(_get(data, "senderId", "sender_id")),
            recipient_id=str(_get(data, "recipientId", "recipient_id")),
            server_id=_get(data, "serverId", "server_id"),
            channel_id=_get(data, "channelId", "channel_id"),
            conversation_id=_get(data, "conversationId", "conversation_id"),
            mentioned_user_ids=tuple(mentioned),
            is_reply_to_recipient=bool(
                _get(data, "isReplyToRecipient", "is_reply_to_recipient", False)
            ),
        )


@dataclass(frozen=True)
class NotificationResult:
    """
    Outcome of evaluating one context.

    Rejections carry a machine-readable reason and all delivery flags off.
    Acceptances carry no reason and copy the user's delivery preferences.
    """

    should_notify: bool
    type: EventType
    reason: str | None = None
    play_sound: bool = False
    show_desktop: bool = False
    send_push: bool = False

    @classmethod
    def reject(cls, event_type: EventType, reason: str) -> NotificationResult:
        """Build a negative decision."""
        return cls(should_notify=False, type=event_type, reason=reason)

    @classmethod
    def accept(cls, event_type: EventType, settings: NotificationSettings) -> NotificationResult:
        """Build a positive decision with flags taken from settings."""
        return cls(
            should_notify=True,
            type=event_type,
            play_sound=settings.notification_sound,
            show_desktop=settings.desktop_notifications,
            send_push=settings.push_notifications,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a wire dictionary."""
        result: dict[str, Any] = {
            "shouldNotify": self.should_notify,
            "type": self.type.value,
            "playSound": self.play_sound,
            "showDesktop": self.show_desktop,
            "sendPush": self.send_push,
        }
        if self.reason is not None:
            result["reason"] = self.reason
        return result


@dataclass
class PayloadData:
    """Display data the delivery layer has about an accepted event."""

    sender_name: str
    message_content: str
    sender_avatar_url: str | None = None
    channel_name: str | None = None
    server_name: str | None = None
    message_id: str | None = None
    channel_id: str | None = None
    server_id: str | None = None
    conversation_id: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PayloadData:
        """Create from a wire dictionary."""
        return cls(
            sender_name=str(_get(data, "senderName", "sender_name", "")),
            message_content=str(_get(data, "messageContent", "message_content", "")),
            sender_avatar_url=_get(data, "senderAvatarUrl", "sender_avatar_url"),
            channel_name=_get(data, "channelName", "channel_name"),
            server_name=_get(data, "serverName", "server_name"),
            message_id=_get(data, "messageId", "message_id"),
            channel_id=_get(data, "channelId", "channel_id"),
            server_id=_get(data, "serverId", "server_id"),
            conversation_id=_get(data, "conversationId", "conversation_id"),
        )


@dataclass
class NotificationPayload:
    """Description of a notification for the delivery layer to render."""

    type: EventType
    title: str
    body: str
    url: str
    icon: str | None = None
    data: dict[str, str | None] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a wire dictionary."""
        return {
            "type": self.type.value,
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "url": self.url,
            "data": dict(self.data),
        }
