"""
Notification Settings Service.

Write-side operations on a user's notification settings: scoped mutes and
validated preference updates. Every write goes through the repository's
merge-patch update, so the next evaluation for the user sees it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import available_timezones

from ...core.formatters import format_datetime_precise, get_utc_now
from ...core.logging import get_logger
from .errors import InvalidSettingsError
from .models import (
    OVERRIDE_FIELDS,
    TIME_PATTERN,
    NotificationOverride,
    NotificationSettings,
    parse_scope,
)
from .mute import calculate_mute_expiration, parse_mute_duration
from .types import (
    DEFAULT_MUTE_DURATION,
    DEFAULT_MUTE_LEVEL,
    MuteDuration,
    NotificationLevel,
    OverrideScope,
    level_name,
    parse_level,
)

if TYPE_CHECKING:
    from ..settings_store.protocol import SettingsRepository

logger = get_logger(__name__)

# Preference fields a user may change directly
PREFERENCE_FIELDS = frozenset(
    {
        "global_notifications",
        "desktop_notifications",
        "push_notifications",
        "notification_sound",
        "quiet_hours_start",
        "quiet_hours_end",
        "quiet_hours_timezone",
    }
)

_BOOLEAN_FIELDS = ("desktop_notifications", "push_notifications", "notification_sound")


def validate_level(value: Any, field: str = "level") -> NotificationLevel:
    """
    Parse a level that must be one of the known values.

    Raises:
        InvalidSettingsError: For anything other than all/mentions/nothing
    """
    level = parse_level(value)
    if not isinstance(level, NotificationLevel):
        raise InvalidSettingsError(
            f"Invalid {field} '{value}'. Must be 'all', 'mentions', or 'nothing'",
            field=field,
        )
    return level


def validate_time(value: Any, field: str) -> str | None:
    """
    Validate an HH:MM quiet hours bound (None or "" clears it).

    Raises:
        InvalidSettingsError: If the value is not 24-hour HH:MM
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise InvalidSettingsError(
            f"Invalid {field} '{value}'. Must be HH:MM (24-hour)",
            field=field,
        )
    return value


def validate_timezone(value: Any) -> str | None:
    """
    Validate a zoneinfo name (None or "" clears it).

    Raises:
        InvalidSettingsError: If the zone is unknown
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str) or value not in available_timezones():
        raise InvalidSettingsError(
            f"Unknown timezone '{value}'",
            field="quiet_hours_timezone",
        )
    return value


def mute_status(
    settings: NotificationSettings,
    scope: OverrideScope | str,
    target_id: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Describe whether a target is muted for a user.

    An override whose expiration has passed is reported as not muted.
    """
    override = settings.overrides_for(scope).get(target_id)
    active = override is not None and override.is_active(now)
    return {
        "target_id": target_id,
        "muted": active,
        "muted_until": (
            format_datetime_precise(override.muted_until)
            if active and override is not None and override.muted_until
            else None
        ),
        "level": level_name(override.level) if active and override is not None else None,
    }


class NotificationSettingsService:
    """
    Mute and preference management for notification settings.

    Args:
        repository: Settings storage
        clock: Returns the current time (injectable for tests)
    """

    def __init__(
        self,
        repository: SettingsRepository,
        clock: Callable[[], datetime] = get_utc_now,
    ):
        self.repository = repository
        self.clock = clock

    async def get_settings(self, user_id: str) -> NotificationSettings:
        """Get a user's settings, creating defaults on first access."""
        return await self.repository.get_or_create_notification_settings(user_id)

    # -------------------------------------------------------------------------
    # Mutes
    # -------------------------------------------------------------------------

    async def mute(
        self,
        user_id: str,
        scope: OverrideScope | str,
        target_id: str,
        duration: MuteDuration | str = DEFAULT_MUTE_DURATION,
        level: NotificationLevel | str = DEFAULT_MUTE_LEVEL,
    ) -> NotificationSettings:
        """
        Add or replace an override for one target.

        Args:
            user_id: User whose settings change
            scope: "server", "channel" or "conversation"
            target_id: Id of the server, channel or conversation
            duration: "15m", "1h", "8h", "24h" or "forever"
            level: Level to apply while the override is active

        Returns:
            Updated settings

        Raises:
            InvalidSettingsError: For an unknown scope, duration or level
        """
        scope = parse_scope(scope)
        duration = parse_mute_duration(duration)
        override = NotificationOverride(
            level=validate_level(level),
            muted_until=calculate_mute_expiration(duration, self.clock()),
        )

        settings = await self.get_settings(user_id)
        overrides = dict(settings.overrides_for(scope))
        overrides[target_id] = override

        logger.info(
            "Muting %s %s for %s (duration=%s, level=%s)",
            scope.value,
            target_id,
            user_id,
            duration.value,
            level_name(override.level),
        )
        return await self.repository.update_notification_settings(
            settings.id, {OVERRIDE_FIELDS[scope]: overrides}
        )

    async def unmute(
        self,
        user_id: str,
        scope: OverrideScope | str,
        target_id: str,
    ) -> NotificationSettings:
        """
        Remove the override for one target.

        Unmuting a target that has no override leaves settings unchanged.
        """
        scope = parse_scope(scope)
        settings = await self.get_settings(user_id)
        overrides = dict(settings.overrides_for(scope))

        if target_id not in overrides:
            return settings

        del overrides[target_id]
        logger.info("Unmuting %s %s for %s", scope.value, target_id, user_id)
        return await self.repository.update_notification_settings(
            settings.id, {OVERRIDE_FIELDS[scope]: overrides}
        )

    async def mute_server(
        self,
        user_id: str,
        server_id: str,
        duration: MuteDuration | str = DEFAULT_MUTE_DURATION,
        level: NotificationLevel | str = DEFAULT_MUTE_LEVEL,
    ) -> NotificationSettings:
        return await self.mute(user_id, OverrideScope.SERVER, server_id, duration, level)

    async def unmute_server(self, user_id: str, server_id: str) -> NotificationSettings:
        return await self.unmute(user_id, OverrideScope.SERVER, server_id)

    async def mute_channel(
        self,
        user_id: str,
        channel_id: str,
        duration: MuteDuration | str = DEFAULT_MUTE_DURATION,
        level: NotificationLevel | str = DEFAULT_MUTE_LEVEL,
    ) -> NotificationSettings:
        return await self.mute(user_id, OverrideScope.CHANNEL, channel_id, duration, level)

    async def unmute_channel(self, user_id: str, channel_id: str) -> NotificationSettings:
        return await self.unmute(user_id, OverrideScope.CHANNEL, channel_id)

    async def mute_conversation(
        self,
        user_id: str,
        conversation_id: str,
        duration: MuteDuration | str = DEFAULT_MUTE_DURATION,
        level: NotificationLevel | str = DEFAULT_MUTE_LEVEL,
    ) -> NotificationSettings:
        return await self.mute(
            user_id, OverrideScope.CONVERSATION, conversation_id, duration, level
        )

    async def unmute_conversation(
        self, user_id: str, conversation_id: str
    ) -> NotificationSettings:
        return await self.unmute(user_id, OverrideScope.CONVERSATION, conversation_id)

    async def get_mute_status(
        self,
        user_id: str,
        scope: OverrideScope | str,
        target_id: str,
    ) -> dict[str, Any]:
        """Get {target_id, muted, muted_until, level} for one target."""
        settings = await self.get_settings(user_id)
        return mute_status(settings, parse_scope(scope), target_id, self.clock())

    # -------------------------------------------------------------------------
    # Preferences
    # -------------------------------------------------------------------------

    async def update_preferences(self, user_id: str, **changes: Any) -> NotificationSettings:
        """
        Update global preferences.

        Accepts any of PREFERENCE_FIELDS as keyword arguments. Quiet hours
        bounds must end up both set or both cleared.

        Returns:
            Updated settings

        Raises:
            InvalidSettingsError: If any change is invalid (nothing is written)
        """
        partial = self.validate_preferences(changes)
        settings = await self.get_settings(user_id)
        if not partial:
            return settings

        candidate = settings.apply_update(partial)
        if bool(candidate.quiet_hours_start) != bool(candidate.quiet_hours_end):
            raise InvalidSettingsError(
                "quiet_hours_start and quiet_hours_end must be set together",
                field="quiet_hours_start" if candidate.quiet_hours_end else "quiet_hours_end",
            )

        logger.info("Updating preferences for %s: %s", user_id, ", ".join(sorted(partial)))
        return await self.repository.update_notification_settings(settings.id, partial)

    @staticmethod
    def validate_preferences(changes: dict[str, Any]) -> dict[str, Any]:
        """
        Validate and normalize preference changes.

        Returns:
            Partial update ready for the repository

        Raises:
            InvalidSettingsError: On the first invalid field
        """
        partial: dict[str, Any] = {}

        for key, value in changes.items():
            if key not in PREFERENCE_FIELDS:
                raise InvalidSettingsError(f"Unknown preference: {key}", field=key)

            if key == "global_notifications":
                partial[key] = validate_level(value, field=key)
            elif key in _BOOLEAN_FIELDS:
                if not isinstance(value, bool):
                    raise InvalidSettingsError(f"{key} must be a boolean", field=key)
                partial[key] = value
            elif key == "quiet_hours_timezone":
                partial[key] = validate_timezone(value)
            else:
                partial[key] = validate_time(value, key)

        return partial

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    async def import_settings(
        self,
        user_id: str,
        document: Mapping[str, Any],
    ) -> NotificationSettings:
        """
        Apply an exported settings document to a user.

        Keys present in the document replace the current values (override
        maps wholesale); absent keys are left alone. Identity and timestamp
        keys are ignored so documents can be copied between users.

        Raises:
            InvalidSettingsError: If any value is invalid (nothing is written)
        """
        preferences: dict[str, Any] = {}
        overrides: dict[str, dict[str, NotificationOverride]] = {}

        for key, value in document.items():
            name = _DOCUMENT_KEYS.get(key, key)
            if name in _IGNORED_DOCUMENT_KEYS:
                continue
            if name in OVERRIDE_FIELDS.values():
                overrides[name] = _parse_override_map(name, value)
            else:
                preferences[name] = value

        partial = {**self.validate_preferences(preferences), **overrides}
        settings = await self.get_settings(user_id)
        if not partial:
            return settings

        candidate = settings.apply_update(partial)
        if bool(candidate.quiet_hours_start) != bool(candidate.quiet_hours_end):
            raise InvalidSettingsError(
                "quiet_hours_start and quiet_hours_end must be set together",
                field="quiet_hours_start",
            )

        logger.info("Importing settings for %s: %s", user_id, ", ".join(sorted(partial)))
        return await self.repository.update_notification_settings(settings.id, partial)


# Exported (camelCase) document keys -> settings fields
_DOCUMENT_KEYS = {
    "globalNotifications": "global_notifications",
    "desktopNotifications": "desktop_notifications",
    "pushNotifications": "push_notifications",
    "notificationSound": "notification_sound",
    "quietHoursStart": "quiet_hours_start",
    "quietHoursEnd": "quiet_hours_end",
    "quietHoursTimezone": "quiet_hours_timezone",
    "serverOverrides": "server_overrides",
    "channelOverrides": "channel_overrides",
    "conversationOverrides": "conversation_overrides",
    "userId": "user_id",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}

_IGNORED_DOCUMENT_KEYS = frozenset({"id", "user_id", "created_at", "updated_at"})


def _parse_override_map(name: str, value: Any) -> dict[str, NotificationOverride]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidSettingsError(f"{name} must be a mapping of id to override", field=name)

    parsed = {}
    for target_id, entry in value.items():
        if not isinstance(entry, Mapping):
            raise InvalidSettingsError(f"Invalid {name} entry '{target_id}'", field=name)
        try:
            override = NotificationOverride.from_dict(entry)
        except ValueError as e:
            raise InvalidSettingsError(
                f"Invalid {name} entry '{target_id}': {e}", field=name
            ) from e
        validate_level(override.level, field=name)
        parsed[str(target_id)] = override
    return parsed
