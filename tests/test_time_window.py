# ABOUTME: Contract tests for display-mode resolution and local-time helpers.
# ABOUTME: Covers the threshold property, timezone fallback, target dates, and clock formatting.

from datetime import date, datetime, timedelta, timezone

import pytest

from homeboard.models import DisplayMode
from homeboard.time_window import TimeWindowResolver, format_clock, resolve, target_date


class TestResolve:
    @pytest.mark.parametrize("hour", range(24))
    def test_tomorrow_iff_hour_at_or_past_threshold(self, hour):
        """resolve returns Tomorrow exactly when the local hour reaches the threshold.

        Implementation: Uses UTC as the zone so the local hour equals the given hour, threshold 17.
        Passing implies: The comparison is hour >= threshold for every hour of the day.
        """
        now = datetime(2025, 6, 1, hour, 30, tzinfo=timezone.utc)
        expected = DisplayMode.TOMORROW if hour >= 17 else DisplayMode.TODAY
        assert resolve(now, "UTC", 17) is expected

    def test_boundary_minute(self):
        """16:59 is Today and 17:00 is Tomorrow.

        Implementation: Resolves one minute either side of the threshold in New York.
        Passing implies: The threshold hour itself already counts as Tomorrow.
        """
        before = datetime(2025, 1, 15, 21, 59, tzinfo=timezone.utc)
        at = datetime(2025, 1, 15, 22, 0, tzinfo=timezone.utc)
        assert resolve(before, "America/New_York", 17) is DisplayMode.TODAY
        assert resolve(at, "America/New_York", 17) is DisplayMode.TOMORROW

    def test_converts_to_configured_zone(self):
        """The hour is read in the configured timezone, not UTC.

        Implementation: 23:00 UTC is 18:00 in New York but 08:00 next day in Tokyo.
        Passing implies: The same instant resolves differently per zone.
        """
        now = datetime(2025, 1, 15, 23, 0, tzinfo=timezone.utc)
        assert resolve(now, "America/New_York", 17) is DisplayMode.TOMORROW
        assert resolve(now, "Asia/Tokyo", 17) is DisplayMode.TODAY

    def test_invalid_timezone_falls_back_without_raising(self):
        """An unknown timezone id degrades to machine-local time.

        Implementation: Resolves with a bogus zone id and compares against the local hour.
        Passing implies: Bad configuration never crashes mode resolution.
        """
        now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        local_hour = now.astimezone().hour
        expected = DisplayMode.TOMORROW if local_hour >= 17 else DisplayMode.TODAY
        assert resolve(now, "Not/A_Zone", 17) is expected


class TestTargetDate:
    def test_today_is_now(self):
        """Today mode targets the current instant.

        Implementation: Calls target_date with TODAY.
        Passing implies: No offset is applied for Today.
        """
        now = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert target_date(DisplayMode.TODAY, now) == now

    def test_tomorrow_adds_24_hours(self):
        """Tomorrow mode adds a plain 24-hour duration.

        Implementation: Calls target_date with TOMORROW.
        Passing implies: The target is exactly one day later.
        """
        now = datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)
        assert target_date(DisplayMode.TOMORROW, now) == now + timedelta(hours=24)

    def test_target_day_uses_local_date(self, resolver, evening_utc):
        """target_day is the local calendar date of the target instant.

        Implementation: 00:00 UTC on the 16th is still the 15th in New York.
        Passing implies: Fetchers match data against the local day, not the UTC day.
        """
        assert resolver.target_day(DisplayMode.TODAY, evening_utc) == date(2025, 1, 15)
        assert resolver.target_day(DisplayMode.TOMORROW, evening_utc) == date(2025, 1, 16)


class TestResolverHelpers:
    def test_day_bounds_are_local_midnights(self, resolver):
        """day_bounds spans local midnight to the next local midnight.

        Implementation: New York is UTC-5 in January.
        Passing implies: Calendar queries use the correct UTC window.
        """
        start, end = resolver.day_bounds(date(2025, 1, 15))
        assert start == datetime(2025, 1, 15, 5, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 1, 16, 5, 0, tzinfo=timezone.utc)

    def test_heading_and_date_label(self, resolver, evening_utc):
        """The heading and date label follow the mode.

        Implementation: Builds both for TOMORROW on the evening of Jan 15.
        Passing implies: The presentation shows the day whose data is displayed.
        """
        assert resolver.schedule_heading(DisplayMode.TOMORROW) == "Tomorrow's Schedule"
        assert resolver.schedule_heading(DisplayMode.TODAY) == "Today's Schedule"
        assert resolver.date_label(DisplayMode.TOMORROW, evening_utc) == "Thursday, January 16"

    def test_invalid_zone_resolver_still_works(self):
        """A resolver with an unloadable zone still answers every helper.

        Implementation: Constructs a resolver with an invalid id.
        Passing implies: The zone is None and helpers use local time.
        """
        bad = TimeWindowResolver("Nowhere/Special", 17)
        assert bad.zone is None
        start, end = bad.day_bounds(date(2025, 1, 15))
        assert end - start >= timedelta(hours=23)


class TestFormatClock:
    @pytest.mark.parametrize(
        "hour,minute,expected",
        [(0, 5, "12:05 AM"), (9, 0, "9:00 AM"), (12, 30, "12:30 PM"), (15, 42, "3:42 PM"), (23, 59, "11:59 PM")],
    )
    def test_twelve_hour_format(self, hour, minute, expected):
        """format_clock renders 12-hour time with minutes.

        Implementation: Formats several times across the day.
        Passing implies: Midnight and noon are 12, and minutes are zero-padded.
        """
        assert format_clock(datetime(2025, 1, 15, hour, minute)) == expected

    def test_hour_only(self):
        """format_clock without minutes gives the bare hour.

        Implementation: Formats 15:00 with minutes=False.
        Passing implies: Hourly forecast labels read like "3 PM".
        """
        assert format_clock(datetime(2025, 1, 15, 15, 0), minutes=False) == "3 PM"
