"""
Settings Row Codec.

Decodes stored settings rows into typed NotificationSettings, validating
override maps with pydantic on read. Malformed data is normalized rather
than raised: an unparseable map becomes empty and an invalid entry is
dropped, each with a warning.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..notifications.models import NotificationOverride, NotificationSettings
from ..notifications.types import parse_level

logger = logging.getLogger(__name__)


class OverrideRecord(BaseModel):
    """Stored shape of one override entry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    level: str = "nothing"
    muted_until: datetime | None = Field(default=None, alias="mutedUntil")

    @field_validator("muted_until", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        """Treat empty strings as no expiration."""
        if v == "":
            return None
        return v

    def to_override(self) -> NotificationOverride:
        """Convert to the engine's override type (naive times are UTC)."""
        muted_until = self.muted_until
        if muted_until is not None and muted_until.tzinfo is None:
            muted_until = muted_until.replace(tzinfo=timezone.utc)
        return NotificationOverride(level=parse_level(self.level), muted_until=muted_until)


def decode_overrides(
    raw: Any,
    field_name: str = "overrides",
    owner: str | None = None,
) -> dict[str, NotificationOverride]:
    """
    Decode a stored override map.

    Args:
        raw: JSON text, an already-parsed mapping, or None
        field_name: Column name for log messages
        owner: Settings id or user id for log messages

    Returns:
        Map of target id -> NotificationOverride (empty on malformed input)
    """
    if raw is None or raw == "":
        return {}

    data = raw
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding unparseable %s for %s: %s", field_name, owner, e)
            return {}

    if not isinstance(data, Mapping):
        logger.warning(
            "Discarding %s for %s: expected an object, got %s",
            field_name,
            owner,
            type(data).__name__,
        )
        return {}

    overrides: dict[str, NotificationOverride] = {}
    for target_id, value in data.items():
        if not isinstance(value, Mapping):
            logger.warning("Dropping malformed %s entry '%s' for %s", field_name, target_id, owner)
            continue
        try:
            record = OverrideRecord.model_validate(value)
        except ValidationError as e:
            logger.warning(
                "Dropping invalid %s entry '%s' for %s: %s",
                field_name,
                target_id,
                owner,
                e.errors()[0].get("msg", "invalid"),
            )
            continue
        overrides[str(target_id)] = record.to_override()

    return overrides


def encode_overrides(overrides: Mapping[str, NotificationOverride]) -> str:
    """Serialize an override map to JSON text for storage."""
    return json.dumps({key: override.to_dict() for key, override in overrides.items()})


def decode_settings_row(row: Mapping[str, Any]) -> NotificationSettings:
    """
    Build NotificationSettings from a database row.

    Args:
        row: Mapping with the notification_settings column names

    Returns:
        Fully populated NotificationSettings
    """
    settings_id = str(row["id"])
    keys = set(row.keys())

    def column(name: str, default: Any = None) -> Any:
        return row[name] if name in keys else default

    def flag(name: str) -> bool:
        value = column(name)
        return True if value is None else bool(value)

    return NotificationSettings(
        id=settings_id,
        user_id=str(row["user_id"]),
        global_notifications=parse_level(column("global_notifications") or "all"),
        desktop_notifications=flag("desktop_notifications"),
        push_notifications=flag("push_notifications"),
        notification_sound=flag("notification_sound"),
        quiet_hours_start=column("quiet_hours_start") or None,
        quiet_hours_end=column("quiet_hours_end") or None,
        quiet_hours_timezone=column("quiet_hours_timezone") or None,
        server_overrides=decode_overrides(
            column("server_overrides"), "server_overrides", settings_id
        ),
        channel_overrides=decode_overrides(
            column("channel_overrides"), "channel_overrides", settings_id
        ),
        conversation_overrides=decode_overrides(
            column("conversation_overrides"), "conversation_overrides", settings_id
        ),
        created_at=_parse_stored_time(column("created_at")),
        updated_at=_parse_stored_time(column("updated_at")),
    )


def _parse_stored_time(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
