"""
Notification Decision Evaluator.

Decides whether one event should notify one recipient. The pipeline is a
fixed sequence of early exits, each tagged with a stable reason string:

    sender_is_recipient
    failed_to_load_settings
    quiet_hours
    level_{level}_blocks_{event_type}

Quiet hours reject every event type, DMs and mentions included, before the
level gate is consulted. Settings are only read here, never written.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, tzinfo
from typing import TYPE_CHECKING

from ...core.formatters import get_utc_now
from ...core.logging import get_logger
from .models import NotificationContext, NotificationResult
from .quiet_hours import is_in_quiet_hours
from .resolver import resolve_override
from .triggers import determine_event_type, is_event_allowed_by_level, is_reply_to_user
from .types import EventType, LevelValue, level_name

if TYPE_CHECKING:
    from ..settings_store.protocol import SettingsRepository

logger = get_logger(__name__)

REASON_SENDER_IS_RECIPIENT = "sender_is_recipient"
REASON_FAILED_TO_LOAD_SETTINGS = "failed_to_load_settings"
REASON_QUIET_HOURS = "quiet_hours"


def level_block_reason(level: LevelValue, event_type: EventType) -> str:
    """Reason string for a level that does not allow an event type."""
    return f"level_{level_name(level)}_blocks_{event_type.value}"


class NotificationEvaluator:
    """
    Evaluates notification decisions against a settings repository.

    Holds no per-evaluation state, so one evaluator can serve any number of
    concurrent evaluations.
    """

    def __init__(
        self,
        repository: SettingsRepository,
        clock: Callable[[], datetime] = get_utc_now,
        timezone: str | tzinfo | None = None,
    ):
        """
        Initialize the evaluator.

        Args:
            repository: Source of recipient settings
            clock: Returns the current time (injectable for tests)
            timezone: Zone override for quiet hours (None uses the
                user's zone, then the configured default)
        """
        self.repository = repository
        self.clock = clock
        self.timezone = timezone

    async def evaluate(
        self,
        context: NotificationContext,
        now: datetime | None = None,
    ) -> NotificationResult:
        """
        Decide whether a context should produce a notification.

        Args:
            context: The event as seen by one recipient
            now: Reference time (defaults to the evaluator's clock)

        Returns:
            NotificationResult; rejections carry a reason and no flags
        """
        if context.sender_id == context.recipient_id:
            return self._reject(context, EventType.MESSAGE, REASON_SENDER_IS_RECIPIENT)

        try:
            settings = await self.repository.get_or_create_notification_settings(
                context.recipient_id
            )
        except Exception as e:
            logger.warning(
                "Failed to load notification settings for %s: %s",
                context.recipient_id,
                e,
                exc_info=True,
            )
            settings = None

        if settings is None:
            return self._reject(context, EventType.MESSAGE, REASON_FAILED_TO_LOAD_SETTINGS)

        event_type = determine_event_type(context)
        current = now or self.clock()

        if is_in_quiet_hours(settings, now=current, timezone=self.timezone):
            return self._reject(context, event_type, REASON_QUIET_HOURS)

        resolved = resolve_override(settings, context, now=current)
        if not is_event_allowed_by_level(resolved.level, event_type):
            return self._reject(context, event_type, level_block_reason(resolved.level, event_type))

        return NotificationResult.accept(event_type, settings)

    async def evaluate_recipients(
        self,
        event: NotificationContext,
        recipient_ids: Iterable[str],
        reply_to_author_id: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, NotificationResult]:
        """
        Evaluate one event for many recipients concurrently.

        Args:
            event: Event context (its recipient_id is replaced per recipient)
            recipient_ids: Candidate recipients; duplicates are evaluated once
            reply_to_author_id: Author of the message being replied to, used
                to set is_reply_to_recipient per recipient
            now: Reference time shared by every evaluation

        Returns:
            Map of recipient id -> NotificationResult
        """
        recipients = list(dict.fromkeys(recipient_ids))
        current = now or self.clock()

        contexts = [
            event.for_recipient(
                recipient_id,
                is_reply_to_recipient=(
                    is_reply_to_user(reply_to_author_id, recipient_id)
                    if reply_to_author_id is not None
                    else None
                ),
            )
            for recipient_id in recipients
        ]
        results = await asyncio.gather(*(self.evaluate(ctx, now=current) for ctx in contexts))
        return dict(zip(recipients, results))

    @staticmethod
    def _reject(
        context: NotificationContext,
        event_type: EventType,
        reason: str,
    ) -> NotificationResult:
        logger.debug(
            "Not notifying %s of %s from %s: %s",
            context.recipient_id,
            event_type.value,
            context.sender_id,
            reason,
        )
        return NotificationResult.reject(event_type, reason)


async def should_notify_user(
    context: NotificationContext,
    repository: SettingsRepository | None = None,
    *,
    now: datetime | None = None,
    timezone: str | tzinfo | None = None,
) -> NotificationResult:
    """
    Decide whether an event should notify its recipient.

    Args:
        context: The event as seen by the recipient
        repository: Settings source (defaults to the configured repository)
        now: Reference time (defaults to current UTC time)
        timezone: Zone override for quiet hours

    Returns:
        NotificationResult
    """
    if repository is None:
        from ..settings_store import get_settings_repository

        repository = await get_settings_repository()

    evaluator = NotificationEvaluator(repository, timezone=timezone)
    return await evaluator.evaluate(context, now=now)
