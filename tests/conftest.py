"""
Chime Test Suite - Shared Fixtures and Configuration

Provides singleton resets and factories for settings and contexts used
across the notification and settings store tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from chime.services.notifications import (
    NotificationContext,
    NotificationLevel,
    NotificationOverride,
    NotificationSettings,
)
from chime.services.settings_store import InMemorySettingsRepository

# Fixed reference instant used by time-sensitive tests
NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# =============================================================================
# Singleton Reset
# =============================================================================


@pytest.fixture(autouse=True)
def reset_all_singletons(monkeypatch, tmp_path):
    """
    Reset module-level singletons and isolate configuration between tests.

    Resets:
    - Settings cache (MUST be first - other modules read from settings)
    - Logging state (so caplog can capture chime.* records)
    - Settings repository singleton

    The instance root points at a temporary directory so the default SQLite
    database never touches the working tree.
    """
    for var in (
        "CHIME_LOG_LEVEL",
        "CHIME_DEBUG",
        "CHIME_LOG_JSON",
        "CHIME_DB_PATH",
        "CHIME_SETTINGS_BACKEND",
        "CHIME_QUIET_HOURS_TIMEZONE",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("CHIME_INSTANCE_ROOT", str(tmp_path))

    def do_reset():
        from chime.core.config import reset_settings
        from chime.core.logging import reset_logging
        from chime.services.settings_store import reset_settings_repository

        reset_settings()
        reset_logging()
        reset_settings_repository()

    do_reset()
    yield
    do_reset()


# =============================================================================
# Factories
# =============================================================================


def make_settings(user_id: str = "bob", **overrides: Any) -> NotificationSettings:
    """
    Build a settings document with defaults.

    Override maps may be given as {id: NotificationOverride} or as
    {id: level string} for brevity.
    """
    for name in ("server_overrides", "channel_overrides", "conversation_overrides"):
        if name in overrides:
            overrides[name] = {
                key: (
                    value
                    if isinstance(value, NotificationOverride)
                    else NotificationOverride(level=NotificationLevel(value))
                )
                for key, value in overrides[name].items()
            }
    return NotificationSettings(id=f"settings-{user_id}", user_id=user_id, **overrides)


def make_context(**overrides: Any) -> NotificationContext:
    """Build a channel message context from alice to bob."""
    values: dict[str, Any] = {
        "sender_id": "alice",
        "recipient_id": "bob",
        "server_id": "srv-1",
        "channel_id": "general",
    }
    values.update(overrides)
    return NotificationContext(**values)


@pytest.fixture
def settings_factory():
    """Fixture exposing make_settings."""
    return make_settings


@pytest.fixture
def context_factory():
    """Fixture exposing make_context."""
    return make_context


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant (2026-01-15 12:00 UTC)."""
    return NOW


@pytest.fixture
def memory_repository() -> InMemorySettingsRepository:
    """Empty in-memory settings repository."""
    return InMemorySettingsRepository()
