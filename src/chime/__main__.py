#!/usr/bin/env python3
"""
Chime CLI Entry Point

Provides command-line access to notification settings and decisions.
Run with: python -m chime <command> [args]
"""

import argparse
import json
import sys
from typing import Optional

from . import __version__
from .core import get_utc_timestamp


def output_json(data: dict, indent: int = 2) -> None:
    """Print JSON output to stdout."""
    print(json.dumps(data, indent=indent, default=str))


def output_error(message: str, exit_code: int = 1, **kwargs) -> None:
    """Print error JSON and exit."""
    error_data = {
        "error": kwargs.pop("error_type", "error"),
        "message": message,
        "query_timestamp": get_utc_timestamp(),
    }
    error_data.update(kwargs)
    output_json(error_data)
    sys.exit(exit_code)


EPILOG = """
Examples:
  chime settings show bob
  chime settings update bob --level mentions --quiet-start 22:00 --quiet-end 07:00
  chime settings export bob -o bob.yaml
  chime settings import carol bob.yaml
  chime mute bob channel general --duration 1h
  chime unmute bob channel general
  chime check --sender alice --recipient bob --channel general --content "hi <@bob>"
  chime check --sender alice --recipient bob --conversation dm-1 --at 2026-01-15T23:00:00Z
  chime payload mention --sender-name Alice --content "hi" --channel-name general
  chime quiet-hours bob --timezone Europe/Berlin
"""


# =============================================================================
# Main Entry Point
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="chime",
        description="Chime - notification settings and delivery decisions",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"chime {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from .commands import notifications

    notifications.register_parsers(subparsers)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Default to help if no command
    if not args.command:
        parser.print_help()
        return 0

    # Command groups without a subcommand have no handler
    if not hasattr(args, "func"):
        output_error(
            f"Missing subcommand for: {args.command}",
            error_type="unknown_command",
            hint=f"Run 'chime {args.command} --help' for usage",
        )

    try:
        result = args.func(args)

        if isinstance(result, dict) and result:
            output_json(result)

            if "error" in result:
                return 1

        return 0

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        output_error(str(e), error_type="command_error", command=args.command)
        return 1


if __name__ == "__main__":
    sys.exit(main())
