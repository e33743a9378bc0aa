"""Tests for SQLiteSettingsRepository."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from chime.services.notifications import (
    NotificationLevel,
    NotificationOverride,
    SettingsNotFoundError,
)
from chime.services.settings_store import SettingsRepository, SQLiteSettingsRepository

pytestmark = pytest.mark.asyncio


class TestLifecycle:
    """Tests for initialization and connection handling."""

    async def test_satisfies_protocol(self, store: SQLiteSettingsRepository) -> None:
        """The store implements SettingsRepository."""
        assert isinstance(store, SettingsRepository)

    async def test_uninitialized_access_raises(self, temp_db_path: Path) -> None:
        """Using the store before initialize() raises."""
        store = SQLiteSettingsRepository(db_path=temp_db_path)

        with pytest.raises(RuntimeError):
            await store.get_notification_settings("bob")

    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """Missing parent directories are created."""
        db_path = tmp_path / "nested" / "dir" / "settings.db"

        async with SQLiteSettingsRepository(db_path=db_path):
            pass

        assert db_path.exists()

    async def test_in_memory_database(self) -> None:
        """:memory: databases are supported."""
        async with SQLiteSettingsRepository(db_path=":memory:") as store:
            settings = await store.get_or_create_notification_settings("bob")
            assert settings.user_id == "bob"

    async def test_default_path_from_config(self, tmp_path: Path) -> None:
        """Without a path the configured instance cache is used."""
        store = SQLiteSettingsRepository()
        assert store.db_path == tmp_path / "cache" / "notifications.db"

    async def test_reopen_is_idempotent(self, temp_db_path: Path) -> None:
        """Reopening a migrated database keeps its data."""
        async with SQLiteSettingsRepository(db_path=temp_db_path) as store:
            await store.create_notification_settings("bob", {"notification_sound": False})

        async with SQLiteSettingsRepository(db_path=temp_db_path) as store:
            settings = await store.get_notification_settings("bob")

        assert settings is not None
        assert settings.notification_sound is False


class TestReadsAndCreates:
    """Tests for reads and document creation."""

    async def test_get_missing_returns_none(self, store: SQLiteSettingsRepository) -> None:
        assert await store.get_notification_settings("nobody") is None

    async def test_get_or_create_defaults(self, store: SQLiteSettingsRepository) -> None:
        """First access creates default settings."""
        settings = await store.get_or_create_notification_settings("bob")

        assert settings.global_notifications is NotificationLevel.ALL
        assert settings.desktop_notifications is True
        assert settings.push_notifications is True
        assert settings.notification_sound is True
        assert settings.quiet_hours_start is None
        assert settings.server_overrides == {}
        assert settings.created_at is not None

    async def test_get_or_create_is_stable(self, store: SQLiteSettingsRepository) -> None:
        """The same document is returned on later calls."""
        first = await store.get_or_create_notification_settings("bob")
        second = await store.get_or_create_notification_settings("bob")

        assert first.id == second.id

    async def test_concurrent_get_or_create(self, store: SQLiteSettingsRepository) -> None:
        """Concurrent first reads agree on one document."""
        results = await asyncio.gather(
            *(store.get_or_create_notification_settings("bob") for _ in range(5))
        )

        assert len({r.id for r in results}) == 1

    async def test_create_with_data(self, store: SQLiteSettingsRepository) -> None:
        """Initial data is persisted."""
        created = await store.create_notification_settings(
            "bob",
            {
                "global_notifications": "mentions",
                "quiet_hours_start": "22:00",
                "quiet_hours_end": "07:00",
                "quiet_hours_timezone": "Europe/Berlin",
            },
        )
        loaded = await store.get_notification_settings("bob")

        assert loaded == created
        assert loaded.global_notifications is NotificationLevel.MENTIONS
        assert loaded.quiet_hours_timezone == "Europe/Berlin"

    async def test_create_duplicate_rejected(self, store: SQLiteSettingsRepository) -> None:
        """A second document for the same user is rejected."""
        await store.create_notification_settings("bob")

        with pytest.raises(ValueError):
            await store.create_notification_settings("bob")


class TestUpdates:
    """Tests for merge-patch updates."""

    async def test_override_round_trip(self, store: SQLiteSettingsRepository) -> None:
        """Override maps with expirations survive storage."""
        settings = await store.get_or_create_notification_settings("bob")
        expires = datetime(2026, 1, 15, 13, 0, tzinfo=timezone.utc)

        await store.update_notification_settings(
            settings.id,
            {
                "conversation_overrides": {
                    "dm-1": NotificationOverride(NotificationLevel.NOTHING, expires),
                    "dm-2": NotificationOverride(NotificationLevel.MENTIONS),
                }
            },
        )
        loaded = await store.get_notification_settings("bob")

        assert loaded.conversation_overrides["dm-1"].muted_until == expires
        assert loaded.conversation_overrides["dm-2"].level is NotificationLevel.MENTIONS
        assert loaded.conversation_overrides["dm-2"].muted_until is None

    async def test_partial_update_keeps_other_fields(
        self, store: SQLiteSettingsRepository
    ) -> None:
        """Fields absent from the patch are untouched."""
        settings = await store.create_notification_settings(
            "bob", {"server_overrides": {"srv-1": {"level": "nothing"}}}
        )

        updated = await store.update_notification_settings(
            settings.id, {"push_notifications": False}
        )

        assert updated.push_notifications is False
        assert updated.server_overrides["srv-1"].level is NotificationLevel.NOTHING
        assert updated.user_id == "bob"
        assert updated.created_at == settings.created_at

    async def test_update_replaces_override_map(self, store: SQLiteSettingsRepository) -> None:
        """A supplied map replaces the stored map for that scope."""
        settings = await store.create_notification_settings(
            "bob", {"channel_overrides": {"a": {"level": "nothing"}}}
        )

        updated = await store.update_notification_settings(
            settings.id, {"channel_overrides": {}}
        )

        assert updated.channel_overrides == {}

    async def test_update_missing_raises(self, store: SQLiteSettingsRepository) -> None:
        """Unknown settings ids raise SettingsNotFoundError."""
        with pytest.raises(SettingsNotFoundError) as exc_info:
            await store.update_notification_settings("missing", {"notification_sound": False})

        assert exc_info.value.settings_id == "missing"

    async def test_expired_overrides_kept_in_storage(
        self, store: SQLiteSettingsRepository
    ) -> None:
        """Expired overrides are stored until removed."""
        settings = await store.get_or_create_notification_settings("bob")
        past = datetime.now(timezone.utc) - timedelta(days=1)

        await store.update_notification_settings(
            settings.id,
            {"server_overrides": {"srv-1": NotificationOverride(muted_until=past)}},
        )
        loaded = await store.get_notification_settings("bob")

        assert "srv-1" in loaded.server_overrides
        assert loaded.server_overrides["srv-1"].is_active() is False


class TestMalformedData:
    """Tests for decoding corrupted rows."""

    async def test_unparseable_override_column(
        self, store: SQLiteSettingsRepository, caplog
    ) -> None:
        """A corrupted override column reads as an empty map."""
        settings = await store.create_notification_settings(
            "bob", {"global_notifications": "mentions"}
        )
        await store.db.execute(
            "UPDATE notification_settings SET channel_overrides = ? WHERE id = ?",
            ("{{not json", settings.id),
        )
        await store.db.commit()

        with caplog.at_level(logging.WARNING, logger="chime"):
            loaded = await store.get_notification_settings("bob")

        assert loaded.channel_overrides == {}
        assert loaded.global_notifications is NotificationLevel.MENTIONS
        assert "channel_overrides" in caplog.text

    async def test_unknown_stored_level(self, store: SQLiteSettingsRepository) -> None:
        """Unknown stored levels are read back raw."""
        settings = await store.get_or_create_notification_settings("bob")
        await store.db.execute(
            "UPDATE notification_settings SET global_notifications = 'loud' WHERE id = ?",
            (settings.id,),
        )
        await store.db.commit()

        loaded = await store.get_notification_settings("bob")

        assert loaded.global_notifications == "loud"
