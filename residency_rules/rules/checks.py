"""Predefined trip checks shared by the rule engines."""

from datetime import date
from ..core.dates import absence_interval, days_between, intervals_overlap, parse_optional_date
from ..core.types import TripRecord, TripWithCalculations


def calculate_trip_durations(trips: list[TripRecord]) -> list[TripWithCalculations]:
    """
    Attach calendar and full-day counts to every trip.

    calendar_days is the number of days from departure to return and
    full_days excludes both travel days. A trip missing either date, or
    returning on or before its departure day, is incomplete and carries None.
    Malformed dates raise InvalidDateError.
    """
    results = []

    for trip in trips:
        out_date = parse_optional_date(trip.out_date)
        in_date = parse_optional_date(trip.in_date)

        is_incomplete = out_date is None or in_date is None or in_date <= out_date
        calendar_days = None
        full_days = None

        if not is_incomplete:
            calendar_days = days_between(out_date, in_date)
            full_days = max(0, calendar_days - 1)

        results.append(TripWithCalculations(
            **trip.model_dump(),
            calendar_days=calendar_days,
            full_days=full_days,
            is_incomplete=is_incomplete,
        ))

    return results


def trip_absence_interval(trip: TripWithCalculations) -> tuple[date, date] | None:
    """Full-day absence interval of a complete trip, None otherwise."""
    if trip.is_incomplete:
        return None
    return absence_interval(
        parse_optional_date(trip.out_date),
        parse_optional_date(trip.in_date),
    )


def collect_absence_intervals(trips: list[TripWithCalculations]) -> list[tuple[date, date]]:
    """Absence intervals of all complete trips, sorted by start."""
    intervals = []
    for trip in trips:
        interval = trip_absence_interval(trip)
        if interval is not None:
            intervals.append(interval)
    return sorted(intervals)


def check_trips_complete(
    trips: list[TripWithCalculations],
    window_start: date,
    window_end: date | None = None,
    returned_by: date | None = None,
) -> tuple[bool, list[str]]:
    """
    Check that no incomplete trip falls inside the window.

    An incomplete trip lies outside the window only when its known dates
    show it: a return before window_start, or a departure after window_end.
    A trip with only a departure date is still open unless ``returned_by``
    (a later known entry into the country) shows the traveller came back.
    Trips without any usable date are always counted.
    Returns (passed, ids of offending trips).
    """
    offending = []

    for trip in trips:
        if not trip.is_incomplete:
            continue

        out_date = parse_optional_date(trip.out_date)
        in_date = parse_optional_date(trip.in_date)
        known = [d for d in (out_date, in_date) if d is not None]

        if in_date is not None and max(known) < window_start:
            continue
        if in_date is None and out_date is not None and returned_by is not None and out_date < returned_by:
            continue
        if out_date is not None and window_end is not None and min(known) > window_end:
            continue

        offending.append(trip.id)

    return len(offending) == 0, offending


def check_no_overlapping_trips(trips: list[TripWithCalculations]) -> tuple[bool, list[str]]:
    """Check that complete trips do not overlap (touching counts as overlap)."""
    ranges = sorted(
        (parse_optional_date(t.out_date), parse_optional_date(t.in_date), t.id)
        for t in trips
        if not t.is_incomplete
    )
    issues = []
    if not ranges:
        return True, issues

    # compare against the trip reaching furthest so far
    last_out, last_in, last_id = ranges[0]
    for out_date, in_date, trip_id in ranges[1:]:
        if intervals_overlap(last_out, last_in, out_date, in_date):
            issues.append(f"Trip {trip_id} overlaps with {last_id}")
        if in_date > last_in:
            last_out, last_in, last_id = out_date, in_date, trip_id

    return len(issues) == 0, issues
