"""
Chime Services.

Notification decision logic and the settings storage it reads from.
"""

from __future__ import annotations

__all__ = [
    # Decision engine and settings service
    "notifications",
    # Settings persistence
    "settings_store",
]
