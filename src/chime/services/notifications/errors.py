"""
Notification Service Errors.

Domain-specific exceptions for notification settings operations.
These errors are independent of the transport layer (CLI, HTTP, etc.).
Business-rule rejections during evaluation are reported through
NotificationResult.reason, never raised.
"""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for notification operations."""

    pass


class SettingsNotFoundError(NotificationError):
    """Raised when a settings document does not exist."""

    def __init__(self, settings_id: str):
        self.settings_id = settings_id
        super().__init__(f"Notification settings not found: {settings_id}")


class InvalidSettingsError(NotificationError, ValueError):
    """Raised when a settings change fails validation."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class InvalidMuteDurationError(InvalidSettingsError):
    """Raised when a mute duration token is not recognized."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Invalid duration '{value}'. Must be '15m', '1h', '8h', '24h', or 'forever'",
            field="duration",
        )


class InvalidOverrideScopeError(InvalidSettingsError):
    """Raised when an override scope is not server, channel or conversation."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(
            f"Invalid scope '{value}'. Must be 'server', 'channel', or 'conversation'",
            field="scope",
        )
