"""Tests for quiet-hours window arithmetic."""

from datetime import UTC, datetime

import pytest

from notifications.preference.quiet_hours import is_within, next_window_end, parse_clock


def _utc(hour, minute=0, day=10):
    return datetime(2026, 3, day, hour, minute, tzinfo=UTC)


class TestParseClock:
    @pytest.mark.parametrize("value", ["7:00", "24:00", "12:60", "noon", "", None, "12:00:00"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_clock(value)

    def test_parses(self):
        assert parse_clock("08:30").hour == 8
        assert parse_clock("08:30").minute == 30


class TestIsWithin:
    # Asia/Kolkata is UTC+05:30
    def test_inside_wrapping_window_before_midnight(self):
        assert is_within("22:00", "08:00", "Asia/Kolkata", _utc(17, 0))  # 22:30 local

    def test_inside_wrapping_window_after_midnight(self):
        assert is_within("22:00", "08:00", "Asia/Kolkata", _utc(20, 0))  # 01:30 local

    def test_outside_wrapping_window(self):
        assert not is_within("22:00", "08:00", "Asia/Kolkata", _utc(6, 0))  # 11:30 local

    def test_start_is_inclusive_end_is_exclusive(self):
        assert is_within("22:00", "08:00", "Asia/Kolkata", _utc(16, 30))  # 22:00 local
        assert not is_within("22:00", "08:00", "Asia/Kolkata", _utc(2, 30))  # 08:00 local

    def test_same_day_window(self):
        assert is_within("13:00", "14:00", "UTC", _utc(13, 30))
        assert not is_within("13:00", "14:00", "UTC", _utc(14, 0))

    def test_equal_bounds_are_empty(self):
        assert not is_within("09:00", "09:00", "UTC", _utc(9, 0))

    def test_naive_now_is_treated_as_utc(self):
        assert is_within("22:00", "08:00", "Asia/Kolkata", datetime(2026, 3, 10, 17, 0))


class TestNextWindowEnd:
    def test_end_later_tonight_rolls_to_next_morning(self):
        # 22:30 local on the 10th -> 08:00 local on the 11th -> 02:30 UTC
        assert next_window_end("08:00", "Asia/Kolkata", _utc(17, 0)) == _utc(2, 30, day=11)

    def test_end_later_the_same_day(self):
        # 01:30 local on the 11th -> 08:00 local on the 11th
        assert next_window_end("08:00", "Asia/Kolkata", _utc(20, 0)) == _utc(2, 30, day=11)

    def test_is_strictly_after_now(self):
        assert next_window_end("08:00", "UTC", _utc(8, 0)) == _utc(8, 0, day=11)
