"""
Chime Notification Commands

Inspect and change per-user notification settings, and preview the
decisions and payloads the engine produces.
"""

import argparse
import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Optional

import yaml

from ..core import format_datetime, get_settings, get_utc_now, get_utc_timestamp, parse_datetime
from ..core.formatters import time_until
from ..services.notifications import (
    EventType,
    InvalidSettingsError,
    NotificationContext,
    NotificationEvaluator,
    NotificationSettingsService,
    PayloadData,
    QuietHoursChecker,
    SettingsNotFoundError,
    build_notification_payload,
    extract_mentioned_user_ids,
    mute_status,
)
from ..services.settings_store import (
    SettingsRepository,
    SQLiteSettingsRepository,
    get_settings_repository,
)

# =============================================================================
# Helpers
# =============================================================================


@asynccontextmanager
async def open_repository(args: argparse.Namespace) -> AsyncIterator[SettingsRepository]:
    """
    Open the settings repository for one command.

    An explicit --db path always uses SQLite. Otherwise the configured
    backend is used; SQLite connections are closed when the command ends.
    """
    db_path = getattr(args, "db", None)

    if db_path is None and get_settings().settings_backend == "memory":
        yield await get_settings_repository()
        return

    store = SQLiteSettingsRepository(db_path)
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()


def run_with_repository(
    args: argparse.Namespace,
    action: Callable[[SettingsRepository], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    """Run an async action against the command's repository."""

    async def runner() -> dict[str, Any]:
        async with open_repository(args) as repository:
            return await action(repository)

    return asyncio.run(runner())


def error_result(query_ts: str, error: str, message: str, **extra: Any) -> dict[str, Any]:
    """Build a standard error result."""
    return {
        "query_timestamp": query_ts,
        "status": "error",
        "error": error,
        "message": message,
        **extra,
    }


def _parse_at(value: Optional[str]):
    """Parse an --at argument (None means now)."""
    if value is None:
        return get_utc_now(), None
    parsed = parse_datetime(value)
    if parsed is None:
        return None, f"Invalid time '{value}'. Use ISO 8601, e.g. 2026-01-15T22:30:00Z"
    return parsed, None


# =============================================================================
# Settings Commands
# =============================================================================


def cmd_settings_show(args: argparse.Namespace) -> dict[str, Any]:
    """
    Show a user's notification settings.

    Settings are created with defaults if the user has none yet.

    Args:
        args: Parsed arguments with user

    Returns:
        Result dict with the settings document
    """
    query_ts = get_utc_timestamp()

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        settings = await repository.get_or_create_notification_settings(args.user)
        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "settings": settings.to_dict(),
        }

    return run_with_repository(args, action)


def cmd_settings_update(args: argparse.Namespace) -> dict[str, Any]:
    """
    Update a user's global preferences.

    Args:
        args: Parsed arguments with user and any preference flags

    Returns:
        Result dict with the updated settings
    """
    query_ts = get_utc_timestamp()

    changes: dict[str, Any] = {}
    if args.level is not None:
        changes["global_notifications"] = args.level
    if args.desktop is not None:
        changes["desktop_notifications"] = args.desktop
    if args.push is not None:
        changes["push_notifications"] = args.push
    if args.sound is not None:
        changes["notification_sound"] = args.sound
    if args.clear_quiet_hours:
        changes["quiet_hours_start"] = None
        changes["quiet_hours_end"] = None
    else:
        if args.quiet_start is not None:
            changes["quiet_hours_start"] = args.quiet_start
        if args.quiet_end is not None:
            changes["quiet_hours_end"] = args.quiet_end
    if args.timezone is not None:
        changes["quiet_hours_timezone"] = args.timezone

    if not changes:
        return error_result(query_ts, "no_changes", "No preference changes given")

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        service = NotificationSettingsService(repository)
        try:
            settings = await service.update_preferences(args.user, **changes)
        except InvalidSettingsError as e:
            return error_result(query_ts, "invalid", str(e), field=e.field)
        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "updated": sorted(changes),
            "settings": settings.to_dict(),
        }

    return run_with_repository(args, action)


def cmd_settings_export(args: argparse.Namespace) -> dict[str, Any]:
    """
    Export a user's settings as YAML.

    Writes to --output when given, otherwise returns the YAML text.

    Args:
        args: Parsed arguments with user and optional output

    Returns:
        Result dict with the export path or YAML content
    """
    query_ts = get_utc_timestamp()

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        settings = await repository.get_or_create_notification_settings(args.user)
        document = settings.to_dict()
        text = yaml.safe_dump(document, default_flow_style=False, sort_keys=False)

        if not args.output:
            return {
                "query_timestamp": query_ts,
                "status": "ok",
                "user_id": args.user,
                "yaml": text,
            }

        output = Path(args.output)
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(text)
        except OSError as e:
            return error_result(query_ts, "write_failed", f"Failed to write export: {e}")

        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "user_id": args.user,
            "path": str(output),
        }

    return run_with_repository(args, action)


def cmd_settings_import(args: argparse.Namespace) -> dict[str, Any]:
    """
    Import settings for a user from a YAML export.

    Args:
        args: Parsed arguments with user and file

    Returns:
        Result dict with the updated settings
    """
    query_ts = get_utc_timestamp()
    path = Path(args.file)

    try:
        with open(path) as f:
            document = yaml.safe_load(f)
    except FileNotFoundError:
        return error_result(query_ts, "not_found", f"File not found: {path}")
    except yaml.YAMLError as e:
        return error_result(query_ts, "invalid_yaml", f"Failed to parse {path}: {e}")

    if not isinstance(document, dict):
        return error_result(query_ts, "invalid", f"{path} does not contain a settings mapping")

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        service = NotificationSettingsService(repository)
        try:
            settings = await service.import_settings(args.user, document)
        except InvalidSettingsError as e:
            return error_result(query_ts, "invalid", str(e), field=e.field)
        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "source": str(path),
            "settings": settings.to_dict(),
        }

    return run_with_repository(args, action)


# =============================================================================
# Mute Commands
# =============================================================================


def cmd_mute(args: argparse.Namespace) -> dict[str, Any]:
    """
    Mute a server, channel or conversation for a user.

    Args:
        args: Parsed arguments with user, scope, target, duration, level

    Returns:
        Result dict with the target's mute status
    """
    query_ts = get_utc_timestamp()

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        service = NotificationSettingsService(repository)
        try:
            settings = await service.mute(
                args.user, args.scope, args.target, args.duration, args.level
            )
        except InvalidSettingsError as e:
            return error_result(query_ts, "invalid", str(e), field=e.field)
        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "scope": args.scope,
            **mute_status(settings, args.scope, args.target),
        }

    return run_with_repository(args, action)


def cmd_unmute(args: argparse.Namespace) -> dict[str, Any]:
    """
    Remove a mute for a user.

    Args:
        args: Parsed arguments with user, scope, target

    Returns:
        Result dict with the target's mute status
    """
    query_ts = get_utc_timestamp()

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        service = NotificationSettingsService(repository)
        try:
            settings = await service.unmute(args.user, args.scope, args.target)
        except (InvalidSettingsError, SettingsNotFoundError) as e:
            return error_result(query_ts, "invalid", str(e))
        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "scope": args.scope,
            **mute_status(settings, args.scope, args.target),
        }

    return run_with_repository(args, action)


# =============================================================================
# Decision Commands
# =============================================================================


def cmd_check(args: argparse.Namespace) -> dict[str, Any]:
    """
    Evaluate whether an event would notify a recipient.

    Mentions come from --mention flags plus any <@id> tokens in --content.

    Args:
        args: Parsed arguments describing the event

    Returns:
        Result dict with the decision
    """
    query_ts = get_utc_timestamp()

    now, error = _parse_at(args.at)
    if error:
        return error_result(query_ts, "invalid_time", error)

    mentioned = list(args.mention or [])
    if args.content:
        mentioned.extend(extract_mentioned_user_ids(args.content))

    context = NotificationContext(
        sender_id=args.sender,
        recipient_id=args.recipient,
        server_id=args.server,
        channel_id=args.channel,
        conversation_id=args.conversation,
        mentioned_user_ids=tuple(dict.fromkeys(mentioned)),
        is_reply_to_recipient=args.reply,
    )

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        evaluator = NotificationEvaluator(repository, timezone=args.timezone)
        result = await evaluator.evaluate(context, now=now)
        return {
            "query_timestamp": query_ts,
            "status": "ok",
            "evaluated_at": format_datetime(now),
            "recipient_id": args.recipient,
            "result": result.to_dict(),
        }

    return run_with_repository(args, action)


def cmd_payload(args: argparse.Namespace) -> dict[str, Any]:
    """
    Preview the notification payload for an event.

    Args:
        args: Parsed arguments with type and display data

    Returns:
        Result dict with the payload
    """
    query_ts = get_utc_timestamp()

    data = PayloadData(
        sender_name=args.sender_name,
        message_content=args.content,
        sender_avatar_url=args.avatar,
        channel_name=args.channel_name,
        server_name=args.server_name,
        message_id=args.message,
        channel_id=args.channel,
        server_id=args.server,
        conversation_id=args.conversation,
    )
    payload = build_notification_payload(EventType(args.type), data)

    return {
        "query_timestamp": query_ts,
        "status": "ok",
        "payload": payload.to_dict(),
    }


def cmd_quiet_hours(args: argparse.Namespace) -> dict[str, Any]:
    """
    Show whether a user is inside quiet hours.

    Args:
        args: Parsed arguments with user and optional at/timezone

    Returns:
        Result dict with quiet hours state
    """
    query_ts = get_utc_timestamp()

    now, error = _parse_at(args.at)
    if error:
        return error_result(query_ts, "invalid_time", error)

    async def action(repository: SettingsRepository) -> dict[str, Any]:
        settings = await repository.get_or_create_notification_settings(args.user)
        checker = QuietHoursChecker.from_settings(settings, timezone=args.timezone)

        if checker is None:
            return {
                "query_timestamp": query_ts,
                "status": "ok",
                "user_id": args.user,
                "configured": False,
                "in_quiet_hours": False,
            }

        next_active = checker.next_active_time(now)
        result: dict[str, Any] = {
            "query_timestamp": query_ts,
            "status": "ok",
            "user_id": args.user,
            "configured": True,
            "start": checker.start,
            "end": checker.end,
            "timezone": str(checker.timezone) if checker.timezone else None,
            "local_time": checker.localize(now).strftime("%H:%M"),
            "in_quiet_hours": checker.is_quiet_time(now),
        }
        if next_active is not None:
            result["next_active"] = format_datetime(next_active)
            result["seconds_remaining"] = int(time_until(next_active, now))
        return result

    return run_with_repository(args, action)


# =============================================================================
# Parser Registration
# =============================================================================


def _add_db_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db",
        help="Settings database path (default: configured notifications database)",
    )


def register_parsers(subparsers: argparse._SubParsersAction) -> None:
    """Register notification command parsers."""

    # settings <subcommand>
    settings_parser = subparsers.add_parser(
        "settings",
        help="Show or change a user's notification settings",
        description="Show, update, export and import per-user notification settings.",
    )
    settings_subparsers = settings_parser.add_subparsers(
        dest="settings_command",
        help="Settings commands",
    )

    # settings show <user>
    show_parser = settings_subparsers.add_parser("show", help="Show settings for a user")
    show_parser.add_argument("user", help="User id")
    _add_db_argument(show_parser)
    show_parser.set_defaults(func=cmd_settings_show)

    # settings update <user> [flags]
    update_parser = settings_subparsers.add_parser(
        "update",
        help="Update global preferences",
    )
    update_parser.add_argument("user", help="User id")
    update_parser.add_argument(
        "--level",
        help="Global level: all, mentions, or nothing",
    )
    update_parser.add_argument(
        "--desktop",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Desktop notifications",
    )
    update_parser.add_argument(
        "--push",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Push notifications",
    )
    update_parser.add_argument(
        "--sound",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Notification sound",
    )
    update_parser.add_argument("--quiet-start", help="Quiet hours start (HH:MM)")
    update_parser.add_argument("--quiet-end", help="Quiet hours end (HH:MM)")
    update_parser.add_argument(
        "--clear-quiet-hours",
        action="store_true",
        help="Disable quiet hours",
    )
    update_parser.add_argument(
        "--timezone",
        help="Zone for quiet hours (e.g., America/New_York)",
    )
    _add_db_argument(update_parser)
    update_parser.set_defaults(func=cmd_settings_update)

    # settings export <user> [--output FILE]
    export_parser = settings_subparsers.add_parser("export", help="Export settings as YAML")
    export_parser.add_argument("user", help="User id")
    export_parser.add_argument("--output", "-o", help="Write YAML to this file")
    _add_db_argument(export_parser)
    export_parser.set_defaults(func=cmd_settings_export)

    # settings import <user> <file>
    import_parser = settings_subparsers.add_parser(
        "import",
        help="Import settings from a YAML export",
    )
    import_parser.add_argument("user", help="User id")
    import_parser.add_argument("file", help="YAML file")
    _add_db_argument(import_parser)
    import_parser.set_defaults(func=cmd_settings_import)

    # mute <user> <scope> <target>
    mute_parser = subparsers.add_parser(
        "mute",
        help="Mute a server, channel or conversation",
    )
    mute_parser.add_argument("user", help="User id")
    mute_parser.add_argument(
        "scope",
        choices=["server", "channel", "conversation"],
        help="What to mute",
    )
    mute_parser.add_argument("target", help="Server, channel or conversation id")
    mute_parser.add_argument(
        "--duration",
        default="forever",
        help="15m, 1h, 8h, 24h, or forever (default: forever)",
    )
    mute_parser.add_argument(
        "--level",
        default="nothing",
        help="Level while muted: all, mentions, or nothing (default: nothing)",
    )
    _add_db_argument(mute_parser)
    mute_parser.set_defaults(func=cmd_mute)

    # unmute <user> <scope> <target>
    unmute_parser = subparsers.add_parser("unmute", help="Remove a mute")
    unmute_parser.add_argument("user", help="User id")
    unmute_parser.add_argument(
        "scope",
        choices=["server", "channel", "conversation"],
        help="What to unmute",
    )
    unmute_parser.add_argument("target", help="Server, channel or conversation id")
    _add_db_argument(unmute_parser)
    unmute_parser.set_defaults(func=cmd_unmute)

    # check --sender S --recipient R [...]
    check_parser = subparsers.add_parser(
        "check",
        help="Evaluate whether an event would notify a recipient",
    )
    check_parser.add_argument("--sender", required=True, help="Sender user id")
    check_parser.add_argument("--recipient", required=True, help="Recipient user id")
    check_parser.add_argument("--server", help="Server id")
    check_parser.add_argument("--channel", help="Channel id")
    check_parser.add_argument("--conversation", help="Direct message conversation id")
    check_parser.add_argument(
        "--mention",
        action="append",
        help="Mentioned user id (repeatable)",
    )
    check_parser.add_argument("--content", help="Message text (<@id> tokens count as mentions)")
    check_parser.add_argument(
        "--reply",
        action="store_true",
        help="The message replies to the recipient",
    )
    check_parser.add_argument("--at", help="Evaluate at this ISO 8601 time (default: now)")
    check_parser.add_argument("--timezone", help="Zone for quiet hours")
    _add_db_argument(check_parser)
    check_parser.set_defaults(func=cmd_check)

    # payload <type> --sender-name N --content C [...]
    payload_parser = subparsers.add_parser(
        "payload",
        help="Preview the notification payload for an event",
    )
    payload_parser.add_argument(
        "type",
        choices=[t.value for t in EventType],
        help="Event type",
    )
    payload_parser.add_argument("--sender-name", required=True, help="Sender display name")
    payload_parser.add_argument("--content", required=True, help="Message text")
    payload_parser.add_argument("--avatar", help="Sender avatar URL")
    payload_parser.add_argument("--channel-name", help="Channel name")
    payload_parser.add_argument("--server-name", help="Server name")
    payload_parser.add_argument("--message", help="Message id")
    payload_parser.add_argument("--channel", help="Channel id")
    payload_parser.add_argument("--server", help="Server id")
    payload_parser.add_argument("--conversation", help="Conversation id")
    payload_parser.set_defaults(func=cmd_payload)

    # quiet-hours <user>
    quiet_parser = subparsers.add_parser(
        "quiet-hours",
        help="Show whether a user is inside quiet hours",
    )
    quiet_parser.add_argument("user", help="User id")
    quiet_parser.add_argument("--at", help="Check at this ISO 8601 time (default: now)")
    quiet_parser.add_argument("--timezone", help="Zone override")
    _add_db_argument(quiet_parser)
    quiet_parser.set_defaults(func=cmd_quiet_hours)
