"""
Notification Decision Engine.

Per-recipient notification decisions for message events: scoped mutes with
expiration, daily quiet hours, level filtering by event type, and
notification payload construction.

Usage:
    from chime.services.notifications import (
        NotificationContext,
        NotificationEvaluator,
        NotificationSettingsService,
    )

    evaluator = NotificationEvaluator(repository)
    result = await evaluator.evaluate(context)
    if result.should_notify:
        payload = build_notification_payload(result.type, data)
"""

from .errors import (
    InvalidMuteDurationError,
    InvalidOverrideScopeError,
    InvalidSettingsError,
    NotificationError,
    SettingsNotFoundError,
)
from .evaluator import NotificationEvaluator, level_block_reason, should_notify_user
from .formatter import build_notification_payload, truncate_content
from .models import (
    NotificationContext,
    NotificationOverride,
    NotificationPayload,
    NotificationResult,
    NotificationSettings,
    PayloadData,
    parse_scope,
)
from .mute import calculate_mute_expiration, is_mute_expired, parse_mute_duration
from .quiet_hours import QuietHoursChecker, is_in_quiet_hours
from .resolver import ResolvedLevel, get_effective_notification_level, resolve_override
from .service import NotificationSettingsService, mute_status
from .triggers import (
    determine_event_type,
    extract_mentioned_user_ids,
    is_event_allowed_by_level,
    is_reply_to_user,
)
from .types import EventType, MuteDuration, NotificationLevel, OverrideScope

__all__ = [
    # Types
    "NotificationLevel",
    "MuteDuration",
    "EventType",
    "OverrideScope",
    # Models
    "NotificationSettings",
    "NotificationOverride",
    "NotificationContext",
    "NotificationResult",
    "NotificationPayload",
    "PayloadData",
    "parse_scope",
    # Mutes
    "calculate_mute_expiration",
    "is_mute_expired",
    "parse_mute_duration",
    # Quiet hours
    "QuietHoursChecker",
    "is_in_quiet_hours",
    # Resolution
    "ResolvedLevel",
    "resolve_override",
    "get_effective_notification_level",
    # Triggers
    "determine_event_type",
    "is_event_allowed_by_level",
    "extract_mentioned_user_ids",
    "is_reply_to_user",
    # Decisions
    "NotificationEvaluator",
    "should_notify_user",
    "level_block_reason",
    # Payloads
    "build_notification_payload",
    "truncate_content",
    # Settings service
    "NotificationSettingsService",
    "mute_status",
    # Errors
    "NotificationError",
    "SettingsNotFoundError",
    "InvalidSettingsError",
    "InvalidMuteDurationError",
    "InvalidOverrideScopeError",
]
