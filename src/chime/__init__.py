"""
Chime - Notification Targeting & Delivery Policy

Decides, per recipient, whether a message event should produce a
notification and describes what that notification shows. Provides both
library access and CLI commands.

Usage as library:
    from chime.services.notifications import NotificationContext, should_notify_user

    context = NotificationContext(
        sender_id="alice",
        recipient_id="bob",
        server_id="srv-1",
        channel_id="general",
        mentioned_user_ids=["bob"],
    )
    result = await should_notify_user(context)

Usage as CLI:
    chime settings show bob
    chime mute bob channel general --duration 1h
    chime check --sender alice --recipient bob --channel general

Package structure:
    chime/
    ├── core/           # Config, logging, time helpers
    ├── services/
    │   ├── notifications/   # Decision engine, payloads, mute service
    │   └── settings_store/  # Settings repositories (memory, SQLite)
    └── commands/       # CLI command implementations
"""

__version__ = "1.0.0"
