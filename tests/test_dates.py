"""Tests for calendar-day helpers."""

import pytest
from datetime import date, datetime
from residency_rules.core.dates import (
    absence_interval,
    add_years,
    clip_interval_to_window,
    date_range,
    format_date,
    inclusive_days,
    intervals_overlap,
    parse_date,
    parse_optional_date,
)
from residency_rules.core.exceptions import InvalidDateError


def test_parse_iso_and_uk_formats():
    """Test that ISO and UK day-first strings parse to the same date."""
    assert parse_date("2024-01-15") == date(2024, 1, 15)
    assert parse_date("15/01/2024") == date(2024, 1, 15)
    assert parse_date("15-01-2024") == date(2024, 1, 15)


def test_parse_timestamp_keeps_calendar_day():
    """Test that timestamps are truncated to their date part, ignoring the zone."""
    assert parse_date("2024-01-15T23:30:00Z") == date(2024, 1, 15)
    assert parse_date("2024-01-15T00:30:00+05:00") == date(2024, 1, 15)
    assert parse_date(datetime(2024, 1, 15, 23, 59)) == date(2024, 1, 15)


@pytest.mark.parametrize("value", ["2024-02-30", "", "   ", "not a date", None, 20240115])
def test_parse_invalid_raises(value):
    """Test that malformed values raise InvalidDateError."""
    with pytest.raises(InvalidDateError):
        parse_date(value)


def test_invalid_date_error_is_value_error():
    """Test that InvalidDateError can be caught as ValueError."""
    with pytest.raises(ValueError, match="2024-13-01"):
        parse_date("2024-13-01")


def test_parse_optional_date_blank():
    """Test that missing and blank dates parse to None."""
    assert parse_optional_date(None) is None
    assert parse_optional_date("  ") is None
    assert parse_optional_date("2024-03-01") == date(2024, 3, 1)


def test_inclusive_days():
    assert inclusive_days(date(2024, 1, 1), date(2024, 1, 1)) == 1
    assert inclusive_days(date(2024, 1, 1), date(2024, 12, 31)) == 366
    assert inclusive_days(date(2024, 1, 2), date(2024, 1, 1)) == 0


def test_clip_interval_to_window():
    """Test that only the days inside the window are counted."""
    assert clip_interval_to_window(
        date(2024, 1, 10), date(2024, 1, 20), date(2024, 1, 15), date(2024, 2, 1)
    ) == 6
    assert clip_interval_to_window(
        date(2024, 1, 10), date(2024, 1, 20), date(2024, 3, 1), date(2024, 3, 31)
    ) == 0


def test_touching_intervals_overlap():
    assert intervals_overlap(date(2024, 1, 1), date(2024, 1, 10), date(2024, 1, 10), date(2024, 1, 20))
    assert not intervals_overlap(date(2024, 1, 1), date(2024, 1, 10), date(2024, 1, 11), date(2024, 1, 20))


def test_absence_interval_excludes_travel_days():
    """Test that departure and return days are not absences."""
    assert absence_interval(date(2024, 1, 1), date(2024, 1, 11)) == (date(2024, 1, 2), date(2024, 1, 10))
    assert absence_interval(date(2024, 1, 1), date(2024, 1, 2)) is None


def test_add_years_leap_day():
    """Test that 29 February maps to 28 February in a non-leap year."""
    assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
    assert add_years(date(2023, 1, 1), 5) == date(2028, 1, 1)
    assert add_years(date(2028, 1, 1), -5) == date(2023, 1, 1)


def test_date_range_inclusive():
    days = list(date_range(date(2024, 1, 30), date(2024, 2, 2)))
    assert days == [date(2024, 1, 30), date(2024, 1, 31), date(2024, 2, 1), date(2024, 2, 2)]


def test_format_date_purposes():
    """Test formatting for display, transport and chart axes."""
    value = date(2028, 1, 1)
    assert format_date(value, "ui") == "January 1, 2028"
    assert format_date(value, "api") == "2028-01-01"
    assert format_date(value, "chart") == "01/01/2028"
    assert format_date(None) is None

    with pytest.raises(ValueError):
        format_date(value, "xml")


@pytest.mark.parametrize("value", ["9999-12-01", "0001-01-05", "1899-12-31", "2200-01-01", date(9999, 1, 1)])
def test_parse_outside_supported_range_raises(value):
    """Test that dates too close to the calendar limits are rejected."""
    with pytest.raises(InvalidDateError, match="supported range"):
        parse_date(value)


def test_parse_supported_range_edges():
    assert parse_date("1900-01-01") == date(1900, 1, 1)
    assert parse_date("31/12/2199") == date(2199, 12, 31)
