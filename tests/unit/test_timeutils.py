"""Tests for time and interval helpers."""

from datetime import date, datetime

import pytest

from medsched.core.errors import InvalidFormat
from medsched.modules.scheduling.timeutils import (
    generate_time_slots,
    intervals_overlap,
    minutes_to_time,
    normalize_time,
    parse_date,
    time_in_range,
    time_to_minutes,
    week_days,
    weekday_name,
)


class TestTimeToMinutes:
    """Tests for time_to_minutes."""

    def test_padded(self):
        assert time_to_minutes("09:30") == 570

    def test_unpadded_hour(self):
        """Single digit hours are accepted."""
        assert time_to_minutes("9:05") == 545

    def test_midnight_and_last_minute(self):
        assert time_to_minutes("00:00") == 0
        assert time_to_minutes("23:59") == 1439

    def test_int_passthrough(self):
        assert time_to_minutes(600) == 600

    @pytest.mark.parametrize("bad", ["24:00", "12:60", "noon", "12", "1:2", "", "12:00:00", None, True, -1, 1440])
    def test_rejects_malformed_and_out_of_range(self, bad):
        """Out-of-range values are rejected, never clamped."""
        with pytest.raises(InvalidFormat):
            time_to_minutes(bad)

    def test_invalid_format_is_value_error(self):
        with pytest.raises(ValueError):
            time_to_minutes("25:00")


class TestFormatting:
    """Tests for minutes_to_time and normalize_time."""

    def test_minutes_to_time_pads(self):
        assert minutes_to_time(545) == "09:05"

    def test_normalize(self):
        assert normalize_time("9:00") == "09:00"

    def test_minutes_out_of_range(self):
        with pytest.raises(InvalidFormat):
            minutes_to_time(24 * 60)


class TestParseDate:
    """Tests for parse_date."""

    def test_string(self):
        assert parse_date("2024-01-08") == date(2024, 1, 8)

    def test_datetime_drops_time(self):
        assert parse_date(datetime(2024, 1, 8, 17, 45)) == date(2024, 1, 8)

    @pytest.mark.parametrize("bad", ["2024-13-01", "08/01/2024", "", 20240108])
    def test_malformed(self, bad):
        with pytest.raises(InvalidFormat):
            parse_date(bad)


class TestIntervals:
    """Half-open interval semantics."""

    def test_touching_intervals_do_not_overlap(self):
        assert not intervals_overlap("10:00", "10:30", "10:30", "11:00")

    def test_partial_overlap(self):
        assert intervals_overlap("10:00", "10:30", "10:15", "10:45")

    def test_containment(self):
        assert intervals_overlap("09:00", "12:00", "10:00", "10:30")

    def test_numeric_not_lexicographic(self):
        """'9:00' sorts after '10:00' as text but is earlier in time."""
        assert intervals_overlap("9:00", "10:00", "09:30", "09:45")
        assert not intervals_overlap("9:00", "9:30", "10:00", "11:00")

    def test_time_in_range_excludes_end(self):
        assert time_in_range("09:00", "09:00", "12:00")
        assert time_in_range("11:59", "09:00", "12:00")
        assert not time_in_range("12:00", "09:00", "12:00")


class TestCalendarHelpers:
    """Tests for the calendar grid helpers."""

    def test_default_grid(self):
        slots = generate_time_slots(6, 18)
        assert slots[0] == "06:00"
        assert slots[-1] == "23:30"
        assert len(slots) == 36

    def test_grid_stops_at_midnight(self):
        assert generate_time_slots(22, 5, 60) == ["22:00", "23:00"]

    def test_interval_must_divide_hour(self):
        with pytest.raises(ValueError):
            generate_time_slots(6, 1, 25)

    def test_week_starts_monday(self):
        days = week_days("2024-01-10")
        assert days[0] == date(2024, 1, 8)
        assert days[-1] == date(2024, 1, 14)

    def test_weekday_name(self):
        assert weekday_name("2024-01-08") == "monday"
        assert weekday_name(date(2024, 1, 14)) == "sunday"
