"""
In-memory settings repository.

Used for tests and for the "memory" settings backend. Stored documents are
copied on the way in and out so callers can never mutate repository state
through a returned object.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from ...core.formatters import get_utc_now
from ..notifications.errors import SettingsNotFoundError
from ..notifications.models import NotificationSettings

logger = logging.getLogger(__name__)


class InMemorySettingsRepository:
    """Dictionary-backed SettingsRepository."""

    def __init__(self, settings: list[NotificationSettings] | None = None):
        self._by_id: dict[str, NotificationSettings] = {}
        self._id_by_user: dict[str, str] = {}
        self._lock = asyncio.Lock()
        for item in settings or []:
            self._store(item)

    def _store(self, settings: NotificationSettings) -> None:
        self._by_id[settings.id] = settings.copy()
        self._id_by_user[settings.user_id] = settings.id

    def __len__(self) -> int:
        return len(self._by_id)

    async def get_notification_settings(self, user_id: str) -> NotificationSettings | None:
        settings_id = self._id_by_user.get(user_id)
        if settings_id is None:
            return None
        return self._by_id[settings_id].copy()

    async def get_or_create_notification_settings(self, user_id: str) -> NotificationSettings:
        async with self._lock:
            settings_id = self._id_by_user.get(user_id)
            if settings_id is not None:
                return self._by_id[settings_id].copy()
            return self._create(user_id, None)

    async def create_notification_settings(
        self,
        user_id: str,
        data: Mapping[str, Any] | None = None,
    ) -> NotificationSettings:
        async with self._lock:
            return self._create(user_id, data)

    def _create(self, user_id: str, data: Mapping[str, Any] | None) -> NotificationSettings:
        if user_id in self._id_by_user:
            raise ValueError(f"Settings already exist for user '{user_id}'")
        settings = NotificationSettings.create(user_id, data)
        self._store(settings)
        logger.debug("Created notification settings %s for user %s", settings.id, user_id)
        return settings.copy()

    async def update_notification_settings(
        self,
        settings_id: str,
        partial: Mapping[str, Any],
    ) -> NotificationSettings:
        async with self._lock:
            current = self._by_id.get(settings_id)
            if current is None:
                raise SettingsNotFoundError(settings_id)

            updated = current.apply_update(partial)
            updated.updated_at = get_utc_now()
            self._store(updated)
            return updated.copy()
