"""Tests for quiet hours, timezone resolution and the preference resolver."""

from __future__ import annotations

from datetime import UTC, datetime, time

from dateutil import tz
import pytest

from calendar_notifier.core.settings import NotificationSettings
from calendar_notifier.features.notifications.preferences import (
    DatabasePreferenceResolver,
    QuietHours,
    parse_clock_time,
    resolve_timezone,
)
from tests.utils import add_all, make_preferences


@pytest.mark.unit
class TestQuietHours:
    def test_wrapping_window_contains_both_sides_of_midnight(self) -> None:
        quiet = QuietHours.from_strings(True, "22:00", "07:00")

        assert quiet.contains(time(23, 30))
        assert quiet.contains(time(2, 0))
        assert quiet.contains(time(6, 59))
        assert not quiet.contains(time(12, 0))
        assert not quiet.contains(time(21, 59))

    def test_bounds_are_inclusive(self) -> None:
        quiet = QuietHours.from_strings(True, "22:00", "07:00")

        assert quiet.contains(time(22, 0))
        assert quiet.contains(time(7, 0))
        assert not quiet.contains(time(7, 1))

    def test_daytime_window(self) -> None:
        quiet = QuietHours.from_strings(True, "12:00", "13:30")

        assert quiet.contains(time(12, 45))
        assert not quiet.contains(time(11, 59))
        assert not quiet.contains(time(14, 0))

    def test_disabled_window_contains_nothing(self) -> None:
        quiet = QuietHours.from_strings(False, "00:00", "23:59")

        assert not quiet.contains(time(3, 0))

    def test_seconds_are_ignored(self) -> None:
        quiet = QuietHours.from_strings(True, "22:00", "07:00")

        assert quiet.contains(time(7, 0, 45))

    def test_contains_instant_uses_local_wall_clock(self) -> None:
        quiet = QuietHours.from_strings(True, "22:00", "07:00")
        # 05:00 UTC is 06:00 in Berlin (winter) and 00:00 in New York
        instant = datetime(2026, 1, 15, 5, 0, tzinfo=UTC)

        assert quiet.contains_instant(instant, tz.gettz("Europe/Berlin"))
        assert quiet.contains_instant(instant, tz.gettz("America/New_York"))
        assert not quiet.contains_instant(instant, tz.gettz("Asia/Tokyo"))


@pytest.mark.unit
class TestParseClockTime:
    def test_valid(self) -> None:
        assert parse_clock_time("07:05") == time(7, 5)
        assert parse_clock_time(" 22:00 ") == time(22, 0)

    @pytest.mark.parametrize("value", ["7", "aa:bb", "25:00", "12:60", ""])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_clock_time(value)


@pytest.mark.unit
class TestResolveTimezone:
    def test_first_known_zone_wins(self) -> None:
        assert resolve_timezone(None, "Not/AZone", "Europe/Paris") == tz.gettz("Europe/Paris")

    def test_falls_back_to_utc(self) -> None:
        assert resolve_timezone(None, "") == tz.UTC
        assert resolve_timezone("Mars/Olympus") == tz.UTC


@pytest.mark.unit
class TestDatabasePreferenceResolver:
    async def test_defaults_without_a_row(self, db_session) -> None:
        settings = NotificationSettings(default_advance_offsets=[30, 5])
        resolver = DatabasePreferenceResolver(settings)

        prefs = await resolver.get_preferences(db_session, "nobody")

        assert prefs.channels == ("push", "email")
        assert prefs.advance_offsets == (5, 30)
        assert prefs.email is None
        assert not prefs.quiet_hours.enabled

    async def test_row_values_are_normalised(self, session_factory, db_session) -> None:
        row = make_preferences(
            channels=["email", "fax", "push"],
            offsets=[60, 15, 15, -5],
            quiet_hours=("22:00", "07:00"),
            timezone="Europe/Berlin",
        )
        await add_all(session_factory, row)
        resolver = DatabasePreferenceResolver(NotificationSettings())

        prefs = await resolver.get_preferences(db_session, "user-1")

        assert prefs.channels == ("email", "push")
        assert prefs.advance_offsets == (15, 60)
        assert prefs.quiet_hours == QuietHours(True, time(22, 0), time(7, 0))
        assert prefs.timezone == "Europe/Berlin"
        assert prefs.email == "user-1@example.com"

    async def test_malformed_quiet_hours_are_disabled(self, session_factory, db_session) -> None:
        row = make_preferences(quiet_hours=("late", "07:00"))
        await add_all(session_factory, row)
        resolver = DatabasePreferenceResolver(NotificationSettings())

        prefs = await resolver.get_preferences(db_session, "user-1")

        assert not prefs.quiet_hours.enabled

    async def test_get_many_mixes_rows_and_defaults(self, session_factory, db_session) -> None:
        await add_all(session_factory, make_preferences("user-1", channels=["realtime"]))
        resolver = DatabasePreferenceResolver(NotificationSettings())

        prefs = await resolver.get_many(db_session, ["user-1", "user-2"])

        assert prefs["user-1"].channels == ("realtime",)
        assert prefs["user-2"].channels == ("push", "email")
