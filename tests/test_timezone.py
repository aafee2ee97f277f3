"""Tests for wellbeing.engine.timezone — reference-day conversions."""

from datetime import date, datetime, time, timedelta, timezone
from unittest.mock import patch

import pytest

from wellbeing.engine.errors import InvalidRange
from wellbeing.engine.timezone import (
    calendar_guard,
    ensure_aware,
    format_date,
    from_reference_date,
    parse_date,
    parse_instant,
    to_reference_date,
    to_utc_iso,
    today_reference,
)


class TestParseDate:
    def test_valid_date(self):
        assert parse_date("2025-10-15") == date(2025, 10, 15)

    @pytest.mark.parametrize("value", ["2025-13-45", "2025-02-30", "not-a-date", ""])
    def test_impossible_dates_raise(self, value):
        with pytest.raises(InvalidRange) as exc_info:
            parse_date(value, "from")
        assert exc_info.value.issues == {"from": value}
        assert "from" in exc_info.value.message

    def test_none_raises(self):
        with pytest.raises(InvalidRange):
            parse_date(None, "to")

    def test_format_round_trip(self):
        assert format_date(parse_date("2025-01-06")) == "2025-01-06"


class TestReferenceDays:
    def test_day_start_in_tokyo(self):
        assert from_reference_date(date(2025, 10, 15)) == datetime(
            2025, 10, 14, 15, 0, tzinfo=timezone.utc
        )

    def test_wall_clock_offset(self):
        assert from_reference_date(date(2025, 10, 15), time(9, 30)) == datetime(
            2025, 10, 15, 0, 30, tzinfo=timezone.utc
        )

    def test_instant_maps_to_reference_day(self):
        # 16:00 UTC is already the next morning in Tokyo
        assert to_reference_date(datetime(2025, 10, 14, 16, 0, tzinfo=timezone.utc)) == date(2025, 10, 15)
        assert to_reference_date(datetime(2025, 10, 14, 14, 59, tzinfo=timezone.utc)) == date(2025, 10, 14)

    def test_today_reference(self, frozen_now):
        assert today_reference(frozen_now) == date(2025, 10, 16)

    def test_other_zone(self):
        with patch("wellbeing.engine.timezone.REFERENCE_TIMEZONE", "UTC"):
            assert from_reference_date(date(2025, 10, 15)) == datetime(
                2025, 10, 15, tzinfo=timezone.utc
            )

    def test_calendar_guard_reports_overflow_as_invalid_range(self):
        with pytest.raises(InvalidRange) as exc_info:
            with calendar_guard({"to": "9999-12-31"}):
                date(9999, 12, 31) + timedelta(days=1)
        assert exc_info.value.issues == {"to": "9999-12-31"}
        assert "calendar" in exc_info.value.message

    def test_calendar_guard_passes_other_errors_through(self):
        with pytest.raises(ValueError):
            with calendar_guard({}):
                raise ValueError("boom")


class TestInstants:
    def test_naive_treated_as_utc(self):
        naive = datetime(2025, 1, 1, 12, 0)
        assert ensure_aware(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_parse_z_suffix(self):
        assert parse_instant("2025-01-01T12:00:00Z") == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_parse_offset(self):
        parsed = parse_instant("2025-01-01T21:00:00+09:00")
        assert parsed == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_to_utc_iso(self):
        assert to_utc_iso(from_reference_date(date(2025, 10, 15))) == "2025-10-14T15:00:00+00:00"
