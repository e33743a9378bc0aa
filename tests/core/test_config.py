"""
Tests for centralized configuration module.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from unittest import mock

import pytest
from pydantic import ValidationError

from chime.core.config import (
    ChimeSettings,
    get_settings,
    is_debug_enabled,
    is_json_logging,
    reset_settings,
)


@pytest.fixture(autouse=True)
def clean_settings():
    """Reset settings cache before and after each test."""
    reset_settings()
    yield
    reset_settings()


class TestChimeSettings:
    """Test ChimeSettings class."""

    def test_default_values(self):
        """Test that default values are correct."""
        with mock.patch.dict(os.environ, {}, clear=True):
            settings = ChimeSettings()

            assert settings.log_level == "WARNING"
            assert settings.debug is False
            assert settings.log_json is False
            assert settings.db_path is None
            assert settings.settings_backend == "sqlite"
            assert settings.quiet_hours_timezone is None

    def test_log_level_from_env(self):
        """Test log level parsing from environment."""
        with mock.patch.dict(os.environ, {"CHIME_LOG_LEVEL": "DEBUG"}, clear=True):
            settings = ChimeSettings()
            assert settings.log_level == "DEBUG"
            assert settings.effective_log_level == "DEBUG"

    def test_log_level_case_insensitive(self):
        """Test log level is case-insensitive."""
        with mock.patch.dict(os.environ, {"CHIME_LOG_LEVEL": "info"}, clear=True):
            settings = ChimeSettings()
            assert settings.log_level == "INFO"

    def test_debug_flag(self):
        """CHIME_DEBUG enables DEBUG when no explicit level is set."""
        with mock.patch.dict(os.environ, {"CHIME_DEBUG": "1"}, clear=True):
            settings = ChimeSettings()
            assert settings.effective_log_level == "DEBUG"

    def test_debug_does_not_override_explicit_level(self):
        """An explicit log level wins over CHIME_DEBUG."""
        env = {"CHIME_DEBUG": "1", "CHIME_LOG_LEVEL": "ERROR"}
        with mock.patch.dict(os.environ, env, clear=True):
            settings = ChimeSettings()
            assert settings.effective_log_level == "ERROR"

    def test_log_level_int(self):
        """log_level_int maps to logging constants."""
        with mock.patch.dict(os.environ, {"CHIME_LOG_LEVEL": "INFO"}, clear=True):
            assert ChimeSettings().log_level_int == logging.INFO

    def test_invalid_log_level_rejected(self):
        """Unknown log levels fail validation."""
        with mock.patch.dict(os.environ, {"CHIME_LOG_LEVEL": "LOUD"}, clear=True):
            with pytest.raises(ValidationError):
                ChimeSettings()

    def test_settings_backend_from_env(self):
        """Backend can be switched to memory."""
        with mock.patch.dict(os.environ, {"CHIME_SETTINGS_BACKEND": "memory"}, clear=True):
            assert ChimeSettings().settings_backend == "memory"

    def test_invalid_backend_rejected(self):
        """Only sqlite and memory backends exist."""
        with mock.patch.dict(os.environ, {"CHIME_SETTINGS_BACKEND": "redis"}, clear=True):
            with pytest.raises(ValidationError):
                ChimeSettings()


class TestDataPaths:
    """Test path-derived settings."""

    def test_default_db_path_under_instance_root(self, tmp_path: Path):
        """Database defaults to cache/notifications.db under the instance root."""
        with mock.patch.dict(os.environ, {"CHIME_INSTANCE_ROOT": str(tmp_path)}, clear=True):
            settings = ChimeSettings()
            assert settings.cache_dir == tmp_path / "cache"
            assert settings.notifications_db_path == tmp_path / "cache" / "notifications.db"

    def test_db_path_override(self, tmp_path: Path):
        """CHIME_DB_PATH replaces the default location."""
        custom = tmp_path / "elsewhere" / "settings.db"
        with mock.patch.dict(os.environ, {"CHIME_DB_PATH": str(custom)}, clear=True):
            assert ChimeSettings().notifications_db_path == custom


class TestQuietHoursTimezone:
    """Test the default quiet hours zone setting."""

    def test_valid_zone_accepted(self):
        """Known zone names are kept."""
        env = {"CHIME_QUIET_HOURS_TIMEZONE": "Europe/Berlin"}
        with mock.patch.dict(os.environ, env, clear=True):
            assert ChimeSettings().quiet_hours_timezone == "Europe/Berlin"

    def test_unknown_zone_rejected(self):
        """Unknown zone names fail validation."""
        env = {"CHIME_QUIET_HOURS_TIMEZONE": "Mars/Olympus_Mons"}
        with mock.patch.dict(os.environ, env, clear=True):
            with pytest.raises(ValidationError):
                ChimeSettings()


class TestSingleton:
    """Test the cached accessor."""

    def test_get_settings_returns_same_instance(self):
        """get_settings is cached."""
        assert get_settings() is get_settings()

    def test_reset_settings_clears_cache(self):
        """reset_settings forces a reload from the environment."""
        first = get_settings()
        reset_settings()
        assert get_settings() is not first

    def test_is_debug_enabled(self):
        """is_debug_enabled follows the effective level."""
        with mock.patch.dict(os.environ, {"CHIME_LOG_LEVEL": "DEBUG"}, clear=True):
            reset_settings()
            assert is_debug_enabled() is True

        with mock.patch.dict(os.environ, {}, clear=True):
            reset_settings()
            assert is_debug_enabled() is False

    def test_is_json_logging(self):
        """is_json_logging follows CHIME_LOG_JSON."""
        with mock.patch.dict(os.environ, {"CHIME_LOG_JSON": "true"}, clear=True):
            reset_settings()
            assert is_json_logging() is True
