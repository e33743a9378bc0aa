"""
Chime core utilities: configuration, logging and time helpers.
"""

from .config import ChimeSettings, get_settings, reset_settings
from .formatters import (
    format_datetime,
    format_datetime_precise,
    get_utc_now,
    get_utc_timestamp,
    parse_datetime,
    time_until,
)
from .logging import get_logger, reset_logging, set_log_level

__all__ = [
    "ChimeSettings",
    "get_settings",
    "reset_settings",
    "get_logger",
    "reset_logging",
    "set_log_level",
    "format_datetime",
    "format_datetime_precise",
    "get_utc_now",
    "get_utc_timestamp",
    "parse_datetime",
    "time_until",
]
