"""Fixtures for settings_store tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from chime.services.settings_store import SQLiteSettingsRepository


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database path."""
    return tmp_path / "test_settings.db"


@pytest_asyncio.fixture
async def store(temp_db_path: Path) -> AsyncGenerator[SQLiteSettingsRepository, None]:
    """Create and initialize a test store."""
    store = SQLiteSettingsRepository(db_path=temp_db_path)
    await store.initialize()
    yield store
    await store.close()
