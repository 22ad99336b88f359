"""Tests for shared time helpers."""

from datetime import date, datetime, time, timezone

import pytest
import pytz

from vetscheduler.utils import (
    DAY_NAMES,
    day_of_week,
    format_minutes,
    local_day_bounds,
    local_to_utc,
    parse_date,
    parse_hhmm,
    to_minutes,
    utc_to_local,
)


class TestParseHHMM:
    def test_hours_and_minutes(self):
        assert parse_hhmm("08:30") == time(8, 30)

    def test_seconds_are_accepted(self):
        assert parse_hhmm("17:00:00") == time(17, 0)

    def test_surrounding_whitespace(self):
        assert parse_hhmm("  09:15 ") == time(9, 15)

    def test_time_passes_through(self):
        assert parse_hhmm(time(6, 45)) == time(6, 45)

    @pytest.mark.parametrize("raw", ["8h30", "25:00", "12:60", "", "noon"])
    def test_invalid_strings(self, raw):
        with pytest.raises(ValueError):
            parse_hhmm(raw)


class TestParseDate:
    def test_iso_string(self):
        assert parse_date("2025-03-17") == date(2025, 3, 17)

    def test_datetime_is_truncated(self):
        assert parse_date(datetime(2025, 3, 17, 22, 10)) == date(2025, 3, 17)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_date("17/03/2025")


class TestMinutes:
    def test_to_minutes(self):
        assert to_minutes("08:30") == 510
        assert to_minutes(time(0, 0)) == 0

    def test_format_minutes(self):
        assert format_minutes(510) == "08:30"
        assert format_minutes(0) == "00:00"
        assert format_minutes(23 * 60 + 59) == "23:59"


class TestDayOfWeek:
    def test_sunday_is_zero(self):
        assert day_of_week(date(2025, 3, 16)) == 0
        assert DAY_NAMES[0] == "Sunday"

    def test_monday_is_one(self):
        assert day_of_week(date(2025, 3, 17)) == 1

    def test_saturday_is_six(self):
        assert day_of_week(date(2025, 3, 22)) == 6


class TestTimezoneConversion:
    def test_utc_is_identity(self):
        assert local_to_utc(date(2025, 3, 17), 480, pytz.utc) == datetime(2025, 3, 17, 8, 0, tzinfo=timezone.utc)

    def test_local_time_is_shifted_to_utc(self):
        tz = pytz.timezone("America/Sao_Paulo")
        assert local_to_utc(date(2025, 3, 17), 480, tz) == datetime(2025, 3, 17, 11, 0, tzinfo=timezone.utc)

    def test_daylight_saving_offset_is_applied(self):
        tz = pytz.timezone("America/New_York")
        winter = local_to_utc(date(2025, 1, 13), 540, tz)
        summer = local_to_utc(date(2025, 7, 14), 540, tz)
        assert winter.hour == 14
        assert summer.hour == 13

    def test_utc_to_local_treats_naive_as_utc(self):
        tz = pytz.timezone("America/Sao_Paulo")
        local = utc_to_local(datetime(2025, 3, 17, 11, 0), tz)
        assert (local.hour, local.minute) == (8, 0)

    def test_local_day_bounds(self):
        tz = pytz.timezone("America/Sao_Paulo")
        start, end = local_day_bounds(date(2025, 3, 17), tz)
        assert start == datetime(2025, 3, 17, 3, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 3, 18, 3, 0, tzinfo=timezone.utc)
