"""
SQLite implementation of the settings repository.

One row per user in notification_settings. Override maps are stored as JSON
text and decoded on every read, so a corrupted column degrades to an empty
map instead of failing the read.

Connection configuration:
    PRAGMA journal_mode=WAL
    PRAGMA busy_timeout=5000
    PRAGMA synchronous=NORMAL
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import aiosqlite

from ...core.formatters import format_datetime_precise, get_utc_now
from ..notifications.errors import SettingsNotFoundError
from ..notifications.models import NotificationSettings
from ..notifications.types import level_name
from .codec import decode_settings_row, encode_overrides
from .migrations import MigrationRunner

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "user_id",
    "global_notifications",
    "desktop_notifications",
    "push_notifications",
    "notification_sound",
    "quiet_hours_start",
    "quiet_hours_end",
    "quiet_hours_timezone",
    "server_overrides",
    "channel_overrides",
    "conversation_overrides",
    "created_at",
    "updated_at",
)


def _to_row(settings: NotificationSettings) -> tuple[Any, ...]:
    """Flatten settings into column order."""
    return (
        settings.id,
        settings.user_id,
        level_name(settings.global_notifications),
        int(settings.desktop_notifications),
        int(settings.push_notifications),
        int(settings.notification_sound),
        settings.quiet_hours_start,
        settings.quiet_hours_end,
        settings.quiet_hours_timezone,
        encode_overrides(settings.server_overrides),
        encode_overrides(settings.channel_overrides),
        encode_overrides(settings.conversation_overrides),
        format_datetime_precise(settings.created_at or get_utc_now()),
        format_datetime_precise(settings.updated_at or get_utc_now()),
    )


class SQLiteSettingsRepository:
    """
    SQLite-backed SettingsRepository.

    Call initialize() before use and close() when done, or use the
    repository as an async context manager.
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Args:
            db_path: Database file, or ":memory:". Defaults to the
                configured notifications database.
        """
        if db_path is None:
            from ...core.config import get_settings

            db_path = get_settings().notifications_db_path

        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and apply pending migrations."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA busy_timeout=5000")
        await self._db.execute("PRAGMA synchronous=NORMAL")

        await MigrationRunner(self._db).run_migrations()

        self._db.row_factory = aiosqlite.Row
        logger.info("Settings store initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close the connection."""
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Settings store closed")

    async def __aenter__(self) -> SQLiteSettingsRepository:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def db(self) -> aiosqlite.Connection:
        """Get the database connection, raising if not initialized."""
        if self._db is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self._db

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_notification_settings(self, user_id: str) -> NotificationSettings | None:
        cursor = await self.db.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM notification_settings WHERE user_id = ?",
            (user_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return decode_settings_row(row)

    async def _get_by_id(self, settings_id: str) -> NotificationSettings | None:
        cursor = await self.db.execute(
            f"SELECT {', '.join(_COLUMNS)} FROM notification_settings WHERE id = ?",
            (settings_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return decode_settings_row(row)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def get_or_create_notification_settings(self, user_id: str) -> NotificationSettings:
        existing = await self.get_notification_settings(user_id)
        if existing is not None:
            return existing

        settings = NotificationSettings.create(user_id)
        # Concurrent first reads for the same user race on the UNIQUE index;
        # the loser keeps the winner's row
        await self.db.execute(
            f"INSERT OR IGNORE INTO notification_settings ({', '.join(_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
            _to_row(settings),
        )
        await self.db.commit()

        stored = await self.get_notification_settings(user_id)
        if stored is None:
            raise RuntimeError(f"Failed to create notification settings for user '{user_id}'")
        if stored.id == settings.id:
            logger.debug("Created notification settings %s for user %s", settings.id, user_id)
        return stored

    async def create_notification_settings(
        self,
        user_id: str,
        data: Mapping[str, Any] | None = None,
    ) -> NotificationSettings:
        settings = NotificationSettings.create(user_id, data)
        try:
            await self.db.execute(
                f"INSERT INTO notification_settings ({', '.join(_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                _to_row(settings),
            )
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Settings already exist for user '{user_id}'") from e
        await self.db.commit()
        logger.debug("Created notification settings %s for user %s", settings.id, user_id)
        stored = await self._get_by_id(settings.id)
        return stored if stored is not None else settings

    async def update_notification_settings(
        self,
        settings_id: str,
        partial: Mapping[str, Any],
    ) -> NotificationSettings:
        current = await self._get_by_id(settings_id)
        if current is None:
            raise SettingsNotFoundError(settings_id)

        updated = current.apply_update(partial)
        updated.updated_at = get_utc_now()

        row = _to_row(updated)
        assignments = ", ".join(f"{column} = ?" for column in _COLUMNS[2:])
        await self.db.execute(
            f"UPDATE notification_settings SET {assignments} WHERE id = ?",
            (*row[2:], settings_id),
        )
        await self.db.commit()

        stored = await self._get_by_id(settings_id)
        return stored if stored is not None else updated
