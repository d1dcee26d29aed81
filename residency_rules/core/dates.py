"""Calendar-day arithmetic on date-only values.

Everything here works on ``datetime.date`` so that day counts are never
affected by time zones or daylight-saving shifts. Strings are accepted at the
edges and parsed strictly.
"""

import re
from datetime import date, datetime, timedelta
from typing import Iterator

from dateutil.relativedelta import relativedelta

from .exceptions import InvalidDateError


DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y")

# rolling windows and qualifying periods reach years either side of a date
MIN_SUPPORTED_DATE = date(1900, 1, 1)
MAX_SUPPORTED_DATE = date(2199, 12, 31)

_TIMESTAMP_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})[T ]\d{2}:\d{2}")


def _check_supported(value: object, parsed: date) -> date:
    if not MIN_SUPPORTED_DATE <= parsed <= MAX_SUPPORTED_DATE:
        raise InvalidDateError(
            value,
            f"Date {parsed.isoformat()} is outside the supported range "
            f"{MIN_SUPPORTED_DATE.isoformat()} to {MAX_SUPPORTED_DATE.isoformat()}",
        )
    return parsed


def parse_date(value: str | date) -> date:
    """
    Parse a date value to a calendar date.

    Accepts ``date`` objects, ISO ``YYYY-MM-DD`` strings, UK ``DD/MM/YYYY`` and
    ``DD-MM-YYYY`` strings, and ISO timestamps, which are truncated to their
    date part. Raises InvalidDateError for anything else, including dates
    outside MIN_SUPPORTED_DATE..MAX_SUPPORTED_DATE.
    """
    if isinstance(value, datetime):
        return _check_supported(value, value.date())
    if isinstance(value, date):
        return _check_supported(value, value)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(value)

    text = value.strip()
    match = _TIMESTAMP_PATTERN.match(text)
    if match:
        text = match.group(1)

    for fmt in DATE_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt).date()
        except ValueError:
            continue
        return _check_supported(value, parsed)

    raise InvalidDateError(value)


def parse_optional_date(value: str | date | None) -> date | None:
    """Parse a date, treating None and blank strings as missing."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return parse_date(value)


def days_between(start: date, end: date) -> int:
    """Signed number of days from start to end (end - start)."""
    return (end - start).days


def inclusive_days(start: date, end: date) -> int:
    """Number of days in [start, end], or 0 if the range is reversed."""
    if end < start:
        return 0
    return (end - start).days + 1


def clip_interval_to_window(
    interval_start: date,
    interval_end: date,
    window_start: date,
    window_end: date,
) -> int:
    """Count the days of [interval_start, interval_end] inside [window_start, window_end]."""
    start = max(interval_start, window_start)
    end = min(interval_end, window_end)
    return inclusive_days(start, end)


def intervals_overlap(
    a_start: date,
    a_end: date,
    b_start: date,
    b_end: date,
) -> bool:
    """Inclusive overlap test: touching ranges overlap."""
    return a_start <= b_end and b_start <= a_end


def absence_interval(out_date: date, in_date: date) -> tuple[date, date] | None:
    """
    Full days spent away on a trip.

    The departure and return days are not absences, so the interval is
    (out_date + 1, in_date - 1). Returns None when the trip has no full day.
    """
    start = out_date + timedelta(days=1)
    end = in_date - timedelta(days=1)
    if end < start:
        return None
    return start, end


def add_years(value: date, years: int) -> date:
    """Add calendar years; 29 February falls back to 28 February."""
    return value + relativedelta(years=years)


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end inclusive."""
    for offset in range(inclusive_days(start, end)):
        yield start + timedelta(days=offset)


def format_date(value: date | None, purpose: str = "ui") -> str | None:
    """Format a date for display ("ui"), transport ("api") or chart axes ("chart")."""
    if value is None:
        return None
    if purpose == "api":
        return value.isoformat()
    if purpose == "chart":
        return value.strftime("%d/%m/%Y")
    if purpose == "ui":
        return f"{value.strftime('%B')} {value.day}, {value.year}"
    raise ValueError(f"Unknown date format purpose: {purpose}")
