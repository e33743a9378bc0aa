"""
Chime Centralized Configuration

Provides validated, type-safe access to all environment variables using Pydantic Settings.

Usage:
    from chime.core.config import get_settings

    settings = get_settings()
    if settings.log_level == "DEBUG":
        ...

Data Paths:
    All data is stored in {instance_root}/cache/:
    - cache/notifications.db: Notification settings store

Environment Variables:
    CHIME_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    CHIME_DEBUG: Debug flag (enables DEBUG level if set)
    CHIME_LOG_JSON: Output logs as JSON
    CHIME_INSTANCE_ROOT: Instance root directory override
    CHIME_DB_PATH: Notification settings database path
    CHIME_SETTINGS_BACKEND: Settings store backend (sqlite, memory)
    CHIME_QUIET_HOURS_TIMEZONE: Default zone for quiet hours evaluation
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional
from zoneinfo import available_timezones

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_project_root() -> Path | None:
    """
    Find the project root by searching upward for pyproject.toml.

    Returns:
        Project root directory, or None if not found
    """
    current = Path(__file__).resolve().parent

    for _ in range(10):  # Limit search depth
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def _find_env_file() -> Path | None:
    """Return the project .env file if one exists."""
    root = _find_project_root()
    if root is None:
        return None
    env_file = root / ".env"
    return env_file if env_file.exists() else None


def _find_instance_root() -> Path:
    """
    Find the instance root directory.

    Resolution order:
    1. CHIME_INSTANCE_ROOT environment variable (explicit override)
    2. Project root (directory containing pyproject.toml)
    3. Current working directory (fallback)
    """
    import os

    override = os.environ.get("CHIME_INSTANCE_ROOT")
    if override:
        return Path(override)

    return _find_project_root() or Path.cwd()


_ENV_FILE = _find_env_file()
_INSTANCE_ROOT = _find_instance_root()


class ChimeSettings(BaseSettings):
    """
    Chime configuration settings with validation.

    Environment variables are automatically loaded with the CHIME_ prefix.
    All settings have sensible defaults and validation.
    """

    model_config = SettingsConfigDict(
        env_prefix="CHIME_",
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Log level for Chime components",
    )

    debug: bool = Field(
        default=False,
        description="Debug flag (enables DEBUG level if set)",
    )

    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format for machine parsing",
    )

    # =========================================================================
    # Data Paths
    # =========================================================================

    instance_root: Path = Field(
        default=_INSTANCE_ROOT,
        description="Instance root directory (project root containing pyproject.toml)",
    )

    db_path: Optional[Path] = Field(
        default=None,
        description="Notification settings database (defaults to cache/notifications.db)",
    )

    settings_backend: Literal["sqlite", "memory"] = Field(
        default="sqlite",
        description="Backend used for the notification settings store",
    )

    # =========================================================================
    # Notification Policy
    # =========================================================================

    quiet_hours_timezone: Optional[str] = Field(
        default=None,
        description="Zone used for quiet hours when a user has none (None = server local time)",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    @field_validator("quiet_hours_timezone")
    @classmethod
    def check_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject zone names the zoneinfo database does not know."""
        if v and v not in available_timezones():
            raise ValueError(f"Unknown timezone: {v}")
        return v or None

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def effective_log_level(self) -> str:
        """
        Get effective log level, respecting CHIME_DEBUG.

        Priority:
        1. Explicit CHIME_LOG_LEVEL
        2. CHIME_DEBUG=1 -> DEBUG
        3. Default: WARNING
        """
        if self.debug and self.log_level == "WARNING":
            return "DEBUG"
        return self.log_level

    @property
    def log_level_int(self) -> int:
        """Get effective log level as logging constant."""
        return getattr(logging, self.effective_log_level)

    @property
    def cache_dir(self) -> Path:
        """Path to cache directory."""
        return self.instance_root / "cache"

    @property
    def notifications_db_path(self) -> Path:
        """Path to the notification settings database."""
        return self.db_path or self.cache_dir / "notifications.db"


# =============================================================================
# Singleton Accessor
# =============================================================================


@lru_cache(maxsize=1)
def get_settings() -> ChimeSettings:
    """
    Get the singleton settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    The settings are validated at first access.
    """
    return ChimeSettings()


def reset_settings() -> None:
    """
    Reset the settings cache (for testing).

    After calling this, the next get_settings() call will
    reload settings from environment variables.
    """
    get_settings.cache_clear()


def is_debug_enabled() -> bool:
    """Check if debug logging is enabled."""
    return get_settings().effective_log_level == "DEBUG"


def is_json_logging() -> bool:
    """Check if JSON logging is enabled."""
    return get_settings().log_json
