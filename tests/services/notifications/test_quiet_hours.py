"""
Tests for quiet hours checking.

Naive datetimes are wall-clock times on the checker's clock, which keeps
these tests independent of the machine's local zone.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from chime.services.notifications.quiet_hours import (
    QuietHoursChecker,
    is_in_quiet_hours,
    parse_minutes,
    resolve_timezone,
)


def wall(hour: int, minute: int = 0, day: int = 15) -> datetime:
    return datetime(2026, 1, day, hour, minute)


class TestParseMinutes:
    """Test HH:MM parsing."""

    @pytest.mark.parametrize(
        "value,expected",
        [("00:00", 0), ("07:30", 450), ("23:59", 1439), ("9:05", 545)],
    )
    def test_valid(self, value, expected):
        """Valid times convert to minutes since midnight."""
        assert parse_minutes(value) == expected

    @pytest.mark.parametrize("value", [None, "", "24:00", "12:60", "noon", "1:2:3"])
    def test_invalid(self, value):
        """Invalid times return None."""
        assert parse_minutes(value) is None


class TestSameDayWindow:
    """Test a window that does not cross midnight."""

    @pytest.fixture
    def checker(self) -> QuietHoursChecker:
        return QuietHoursChecker(start="09:00", end="17:00")

    def test_inside(self, checker):
        """Times between start and end are quiet."""
        assert checker.is_quiet_time(wall(12)) is True

    def test_start_inclusive(self, checker):
        """The start minute is quiet."""
        assert checker.is_quiet_time(wall(9)) is True

    def test_end_exclusive(self, checker):
        """The end minute is not quiet."""
        assert checker.is_quiet_time(wall(16, 59)) is True
        assert checker.is_quiet_time(wall(17)) is False

    def test_outside(self, checker):
        """Times outside the window are not quiet."""
        assert checker.is_quiet_time(wall(8, 59)) is False
        assert checker.is_quiet_time(wall(20)) is False


class TestOvernightWindow:
    """Test a window that spans midnight."""

    @pytest.fixture
    def checker(self) -> QuietHoursChecker:
        return QuietHoursChecker(start="22:00", end="07:00")

    @pytest.mark.parametrize("hour,minute", [(22, 0), (23, 30), (0, 0), (3, 0), (6, 59)])
    def test_quiet(self, checker, hour, minute):
        """Late evening and early morning are quiet."""
        assert checker.is_quiet_time(wall(hour, minute)) is True

    @pytest.mark.parametrize("hour,minute", [(7, 0), (12, 0), (21, 59)])
    def test_not_quiet(self, checker, hour, minute):
        """Daytime is not quiet."""
        assert checker.is_quiet_time(wall(hour, minute)) is False


class TestDegenerateWindows:
    """Test empty and invalid windows."""

    def test_equal_bounds_never_quiet(self):
        """start == end is an empty window."""
        checker = QuietHoursChecker(start="08:00", end="08:00")

        assert checker.is_quiet_time(wall(8)) is False
        assert checker.is_quiet_time(wall(20)) is False

    def test_unparseable_bounds_disable(self, caplog):
        """Invalid bounds disable quiet hours with a warning."""
        with caplog.at_level(logging.WARNING, logger="chime"):
            checker = QuietHoursChecker(start="late", end="07:00")

        assert checker.is_valid is False
        assert checker.is_quiet_time(wall(23)) is False
        assert "unparseable" in caplog.text


class TestTimezones:
    """Test wall clock resolution in explicit zones."""

    def test_aware_time_converted_to_zone(self):
        """Aware instants are read on the zone's wall clock."""
        checker = QuietHoursChecker(start="22:00", end="07:00", timezone="America/New_York")

        # 04:00 UTC is 23:00 EST
        assert checker.is_quiet_time(datetime(2026, 1, 15, 4, 0, tzinfo=timezone.utc)) is True
        # 13:00 UTC is 08:00 EST
        assert checker.is_quiet_time(datetime(2026, 1, 15, 13, 0, tzinfo=timezone.utc)) is False

    def test_dst_offset_applied(self):
        """Summer instants use the daylight offset."""
        checker = QuietHoursChecker(start="22:00", end="07:00", timezone="America/New_York")

        # 02:30 UTC in July is 22:30 EDT (but 21:30 EST)
        assert checker.is_quiet_time(datetime(2026, 7, 15, 2, 30, tzinfo=timezone.utc)) is True

    def test_unknown_zone_falls_back_to_utc(self, caplog):
        """Unknown zone names fall back to UTC with a warning."""
        with caplog.at_level(logging.WARNING, logger="chime"):
            zone = resolve_timezone("Nowhere/Land")

        assert zone == ZoneInfo("UTC")
        assert "Nowhere/Land" in caplog.text

    def test_none_means_server_local(self):
        """No zone resolves to None (server local time)."""
        assert resolve_timezone(None) is None

    def test_localize_naive_in_zone(self):
        """Naive times are taken as wall-clock time in the zone."""
        checker = QuietHoursChecker(start="22:00", end="07:00", timezone="Asia/Tokyo")
        local = checker.localize(wall(23))

        assert local.hour == 23
        assert local.tzinfo == ZoneInfo("Asia/Tokyo")


class TestNextActiveTime:
    """Test next_active_time."""

    def test_none_outside_quiet_hours(self):
        """Outside quiet hours there is nothing to wait for."""
        checker = QuietHoursChecker(start="22:00", end="07:00", timezone="UTC")
        assert checker.next_active_time(datetime(2026, 1, 15, 12, tzinfo=timezone.utc)) is None

    def test_before_midnight_ends_next_day(self):
        """From 23:00 the window ends at 07:00 the following day."""
        checker = QuietHoursChecker(start="22:00", end="07:00", timezone="UTC")
        next_active = checker.next_active_time(datetime(2026, 1, 15, 23, tzinfo=timezone.utc))

        assert next_active == datetime(2026, 1, 16, 7, tzinfo=timezone.utc)

    def test_after_midnight_ends_same_day(self):
        """From 03:00 the window ends at 07:00 the same day."""
        checker = QuietHoursChecker(start="22:00", end="07:00", timezone="UTC")
        next_active = checker.next_active_time(datetime(2026, 1, 16, 3, tzinfo=timezone.utc))

        assert next_active == datetime(2026, 1, 16, 7, tzinfo=timezone.utc)


class TestIsInQuietHours:
    """Test the settings-level helper."""

    def test_not_configured(self, settings_factory):
        """No quiet hours configured is never quiet."""
        assert is_in_quiet_hours(settings_factory(), wall(3)) is False

    def test_single_bound_not_configured(self, settings_factory):
        """A single bound does not enable quiet hours."""
        settings = settings_factory(quiet_hours_start="00:00")
        assert is_in_quiet_hours(settings, wall(3)) is False

    def test_uses_user_timezone(self, settings_factory):
        """The user's zone is used when no override is given."""
        settings = settings_factory(
            quiet_hours_start="22:00",
            quiet_hours_end="07:00",
            quiet_hours_timezone="Europe/Berlin",
        )
        # 21:30 UTC is 22:30 CET
        at = datetime(2026, 1, 15, 21, 30, tzinfo=timezone.utc)

        assert is_in_quiet_hours(settings, at) is True
        assert is_in_quiet_hours(settings, at, timezone="UTC") is False

    def test_uses_configured_default_zone(self, settings_factory, monkeypatch):
        """CHIME_QUIET_HOURS_TIMEZONE applies when the user has no zone."""
        from chime.core.config import reset_settings

        monkeypatch.setenv("CHIME_QUIET_HOURS_TIMEZONE", "Asia/Tokyo")
        reset_settings()

        settings = settings_factory(quiet_hours_start="22:00", quiet_hours_end="07:00")
        # 14:00 UTC is 23:00 JST
        assert is_in_quiet_hours(settings, datetime(2026, 1, 15, 14, tzinfo=timezone.utc)) is True
