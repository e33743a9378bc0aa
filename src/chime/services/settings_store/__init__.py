"""
Settings Store - Persistent Notification Settings.

Storage for per-user notification settings behind the SettingsRepository
protocol. The notification engine depends only on the protocol; the backend
is chosen by the CHIME_SETTINGS_BACKEND setting.

Usage:
    from chime.services.settings_store import get_settings_repository

    repository = await get_settings_repository()
    settings = await repository.get_or_create_notification_settings("user-1")
"""

from __future__ import annotations

from .codec import OverrideRecord, decode_overrides, decode_settings_row, encode_overrides
from .memory import InMemorySettingsRepository
from .protocol import SettingsRepository
from .sqlite import SQLiteSettingsRepository

# =============================================================================
# Module-level singleton
# =============================================================================

_repository: SettingsRepository | None = None


async def get_settings_repository() -> SettingsRepository:
    """
    Get or create the configured settings repository.

    SQLite repositories are initialized (migrations applied) on creation.

    Returns:
        SettingsRepository instance
    """
    global _repository

    if _repository is None:
        from ...core.config import get_settings

        if get_settings().settings_backend == "memory":
            _repository = InMemorySettingsRepository()
        else:
            store = SQLiteSettingsRepository()
            await store.initialize()
            _repository = store

    return _repository


async def close_settings_repository() -> None:
    """Close the singleton repository if it holds a connection."""
    global _repository

    if isinstance(_repository, SQLiteSettingsRepository):
        await _repository.close()
    _repository = None


def reset_settings_repository() -> None:
    """Reset the repository singleton without closing it (for tests)."""
    global _repository
    _repository = None


__all__ = [
    # Protocol
    "SettingsRepository",
    # Implementations
    "InMemorySettingsRepository",
    "SQLiteSettingsRepository",
    # Codec
    "OverrideRecord",
    "decode_overrides",
    "decode_settings_row",
    "encode_overrides",
    # Singleton
    "get_settings_repository",
    "close_settings_repository",
    "reset_settings_repository",
]
