"""
Quiet Hours Manager.

Decides whether "now" falls inside a user's daily quiet window, handling
windows that cross midnight. The wall clock is read in an explicit zone
when one is known, using zoneinfo for DST handling.

Zone resolution order:
1. Explicit timezone argument
2. The user's quiet_hours_timezone
3. CHIME_QUIET_HOURS_TIMEZONE
4. Server local time
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...core.config import get_settings
from ...core.logging import get_logger

if TYPE_CHECKING:
    from .models import NotificationSettings

logger = get_logger(__name__)


def parse_minutes(time_str: str | None) -> int | None:
    """
    Parse an HH:MM string to minutes since midnight.

    Args:
        time_str: Time in HH:MM format

    Returns:
        Minutes since midnight, or None if the value cannot be parsed
    """
    if not time_str:
        return None
    parts = time_str.strip().split(":")
    if len(parts) != 2:
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None
    return hour * 60 + minute


def resolve_timezone(name: str | tzinfo | None) -> tzinfo | None:
    """
    Resolve a zone name to a tzinfo.

    Args:
        name: zoneinfo key, an existing tzinfo, or None

    Returns:
        tzinfo, UTC for unknown names, or None (meaning server local time)
    """
    if name is None or isinstance(name, tzinfo):
        return name
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown quiet hours timezone '%s', falling back to UTC", name)
        return ZoneInfo("UTC")


@dataclass
class QuietHoursChecker:
    """
    Checks if a time falls within a daily quiet window.

    Start is inclusive and end is exclusive. A window whose start is after
    its end spans midnight (e.g., 22:00 to 06:00).
    """

    start: str
    end: str
    timezone: str | tzinfo | None = None

    def __post_init__(self) -> None:
        """Parse bounds and resolve the zone."""
        self._start_minutes = parse_minutes(self.start)
        self._end_minutes = parse_minutes(self.end)
        self._tz = resolve_timezone(self.timezone)

        if self._start_minutes is None or self._end_minutes is None:
            logger.warning(
                "Ignoring unparseable quiet hours window %r-%r", self.start, self.end
            )

    @classmethod
    def from_settings(
        cls,
        settings: NotificationSettings,
        timezone: str | tzinfo | None = None,
    ) -> QuietHoursChecker | None:
        """
        Build a checker for a user's settings.

        Returns:
            QuietHoursChecker, or None if quiet hours are not configured
        """
        if not settings.quiet_hours_start or not settings.quiet_hours_end:
            return None

        zone = timezone or settings.quiet_hours_timezone or get_settings().quiet_hours_timezone
        return cls(start=settings.quiet_hours_start, end=settings.quiet_hours_end, timezone=zone)

    @property
    def is_valid(self) -> bool:
        """Check that both bounds parsed."""
        return self._start_minutes is not None and self._end_minutes is not None

    def localize(self, now: datetime | None = None) -> datetime:
        """
        Express a reference time on the checker's wall clock.

        Naive datetimes are taken to already be wall-clock time in that zone.
        """
        if self._tz is None:
            if now is None:
                return datetime.now().astimezone()
            return now.astimezone() if now.tzinfo is not None else now

        if now is None:
            return datetime.now(tz=self._tz)
        if now.tzinfo is None:
            return now.replace(tzinfo=self._tz)
        return now.astimezone(self._tz)

    def is_quiet_time(self, now: datetime | None = None) -> bool:
        """
        Check if the given time is within quiet hours.

        Args:
            now: Time to check (defaults to current time)

        Returns:
            True if within quiet hours, False otherwise
        """
        start, end = self._start_minutes, self._end_minutes
        if start is None or end is None:
            return False

        local = self.localize(now)
        current = local.hour * 60 + local.minute

        if start <= end:
            # Same-day window (e.g., 09:00 to 17:00)
            return start <= current < end
        # Spans midnight (e.g., 22:00 to 06:00)
        return current >= start or current < end

    def next_active_time(self, now: datetime | None = None) -> datetime | None:
        """
        Get the next time when notifications will be active.

        Args:
            now: Reference time (defaults to current time)

        Returns:
            Datetime when quiet hours end, or None if not in quiet period
        """
        if not self.is_quiet_time(now):
            return None

        local = self.localize(now)
        end = self._end_minutes or 0
        end_dt = local.replace(hour=end // 60, minute=end % 60, second=0, microsecond=0)

        # If end time is not after the current time, it's tomorrow
        if end_dt <= local:
            end_dt = end_dt + timedelta(days=1)

        return end_dt


def is_in_quiet_hours(
    settings: NotificationSettings,
    now: datetime | None = None,
    timezone: str | tzinfo | None = None,
) -> bool:
    """
    Check whether a user is inside their quiet hours.

    Args:
        settings: The user's notification settings
        now: Reference time (defaults to current time)
        timezone: Zone override for reading the wall clock

    Returns:
        False when quiet hours are not configured
    """
    checker = QuietHoursChecker.from_settings(settings, timezone=timezone)
    if checker is None:
        return False
    return checker.is_quiet_time(now)
