"""
Effective Level Resolution.

Walks a user's overrides from most to least specific and returns the
notification level that applies to one event.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from .types import LevelValue, OverrideScope

if TYPE_CHECKING:
    from .models import NotificationContext, NotificationOverride, NotificationSettings

# Most specific first; a new scope is added by inserting it here
OVERRIDE_PRECEDENCE: tuple[OverrideScope, ...] = (
    OverrideScope.CONVERSATION,
    OverrideScope.CHANNEL,
    OverrideScope.SERVER,
)


@dataclass(frozen=True)
class ResolvedLevel:
    """The effective level and where it came from (scope None means global)."""

    level: LevelValue
    scope: OverrideScope | None = None
    target_id: str | None = None
    override: NotificationOverride | None = None

    @property
    def is_global(self) -> bool:
        """Check if no override applied."""
        return self.scope is None


def _context_id(
    context: NotificationContext | Mapping[str, str | None],
    scope: OverrideScope,
) -> str | None:
    """Get the id a context carries for a scope."""
    attr = f"{scope.value}_id"
    if isinstance(context, Mapping):
        return context.get(attr)
    return getattr(context, attr, None)


def _scope_chain(
    settings: NotificationSettings,
    context: NotificationContext | Mapping[str, str | None],
) -> list[tuple[OverrideScope, str | None, Mapping[str, NotificationOverride]]]:
    """Pair each scope's context id with the matching override map, in precedence order."""
    return [
        (scope, _context_id(context, scope), settings.overrides_for(scope))
        for scope in OVERRIDE_PRECEDENCE
    ]


def resolve_override(
    settings: NotificationSettings,
    context: NotificationContext | Mapping[str, str | None],
    now: datetime | None = None,
) -> ResolvedLevel:
    """
    Resolve the effective level together with the override that produced it.

    The first scope whose id is present in the context and whose override is
    still active wins. Expired overrides fall through to the next scope.

    Args:
        settings: The recipient's settings
        context: Event context (or a mapping with server_id/channel_id/conversation_id)
        now: Reference time for mute expiration

    Returns:
        ResolvedLevel describing the winning scope, or the global level
    """
    for scope, target_id, overrides in _scope_chain(settings, context):
        if not target_id:
            continue
        override = overrides.get(target_id)
        if override is not None and override.is_active(now):
            return ResolvedLevel(
                level=override.level,
                scope=scope,
                target_id=target_id,
                override=override,
            )

    return ResolvedLevel(level=settings.global_notifications)


def get_effective_notification_level(
    settings: NotificationSettings,
    context: NotificationContext | Mapping[str, str | None],
    now: datetime | None = None,
) -> LevelValue:
    """
    Get the notification level that applies to an event.

    Precedence: conversation, then channel, then server, then global.
    """
    return resolve_override(settings, context, now).level
