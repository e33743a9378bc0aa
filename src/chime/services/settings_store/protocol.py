"""
Settings Store Protocol Interface.

Defines the abstract interface the notification engine uses to read and
write per-user notification settings.

Implementations own all decoding and validation of stored data: the engine
only ever receives fully populated NotificationSettings with typed override
maps, never raw serialized blobs.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..notifications.models import NotificationSettings


@runtime_checkable
class SettingsRepository(Protocol):
    """
    Abstract interface for notification settings storage.

    Implementations must be async-compatible and keep read-your-writes
    consistency: a mute or unmute must be visible to the very next read
    for that user.
    """

    @abstractmethod
    async def get_notification_settings(self, user_id: str) -> NotificationSettings | None:
        """
        Get settings for a user.

        Returns None if the user has no settings yet.
        """
        ...

    @abstractmethod
    async def get_or_create_notification_settings(self, user_id: str) -> NotificationSettings:
        """
        Get settings for a user, creating defaults on first access.

        Defaults: global level "all", desktop/push/sound enabled,
        no quiet hours, empty override maps.
        """
        ...

    @abstractmethod
    async def create_notification_settings(
        self,
        user_id: str,
        data: Mapping[str, Any] | None = None,
    ) -> NotificationSettings:
        """
        Create settings for a user.

        Fields missing from data take their defaults.
        """
        ...

    @abstractmethod
    async def update_notification_settings(
        self,
        settings_id: str,
        partial: Mapping[str, Any],
    ) -> NotificationSettings:
        """
        Merge-patch a settings document.

        Override maps supplied in partial replace the stored map for that
        scope wholesale.

        Raises:
            SettingsNotFoundError: If settings_id does not exist
        """
        ...
