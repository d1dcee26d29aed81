"""Rolling-window absence aggregation.

Absence intervals are flattened into a daily 0/1 series once, after which any
window total is a prefix-sum difference and a run of consecutive windows is
scanned with a running sum (the day entering the window is added, the day
leaving it subtracted). Cost is linear in the span plus the number of trips.
"""

import math
from datetime import date, timedelta
from typing import Iterator

from ..core.dates import clip_interval_to_window, format_date, inclusive_days
from ..core.types import (
    MAX_ABSENCE_IN_12_MONTHS,
    ROLLING_WINDOW_DAYS,
    OffendingWindow,
    RiskLevel,
    RollingDataPoint,
)


def caution_threshold(limit: int) -> int:
    """First rolling total classed as caution: five sixths of the limit, rounded up."""
    return math.ceil(limit * 5 / 6)


def classify_risk(rolling_days: int, limit: int = MAX_ABSENCE_IN_12_MONTHS) -> RiskLevel:
    """
    Bucket a rolling total against its limit.

    critical: at or over the limit
    caution:  at or over five sixths of the limit (150 of 180)
    low:      anything below
    """
    if rolling_days >= limit:
        return RiskLevel.CRITICAL
    if rolling_days >= caution_threshold(limit):
        return RiskLevel.CAUTION
    return RiskLevel.LOW


def complement_intervals(
    intervals: list[tuple[date, date]],
    start: date,
    end: date,
) -> list[tuple[date, date]]:
    """The parts of [start, end] not covered by any interval."""
    gaps = []
    cursor = start
    for interval_start, interval_end in sorted(intervals):
        if interval_end < cursor:
            continue
        if interval_start > end:
            break
        if interval_start > cursor:
            gaps.append((cursor, interval_start - timedelta(days=1)))
        cursor = max(cursor, interval_end + timedelta(days=1))
    if cursor <= end:
        gaps.append((cursor, end))
    return gaps


class AbsenceSeries:
    """Daily absence flags over [start, end]; days outside the span count as present."""

    def __init__(self, intervals: list[tuple[date, date]], start: date, end: date):
        self.start = start
        self.end = end
        size = inclusive_days(start, end)

        delta = [0] * (size + 1)
        for interval_start, interval_end in intervals:
            lo = max(interval_start, start)
            hi = min(interval_end, end)
            if lo > hi:
                continue
            delta[(lo - start).days] += 1
            delta[(hi - start).days + 1] -= 1

        # overlapping trips still count a day once
        self._daily: list[int] = []
        running = 0
        for i in range(size):
            running += delta[i]
            self._daily.append(1 if running > 0 else 0)

        self._prefix = [0]
        for flag in self._daily:
            self._prefix.append(self._prefix[-1] + flag)

    def _index(self, day: date) -> int:
        return (day - self.start).days

    def is_absent(self, day: date) -> bool:
        if day < self.start or day > self.end:
            return False
        return self._daily[self._index(day)] == 1

    def absent_days(self, window_start: date, window_end: date) -> int:
        """Absence days inside [window_start, window_end], clipped to the span."""
        lo = max(window_start, self.start)
        hi = min(window_end, self.end)
        if lo > hi:
            return 0
        return self._prefix[self._index(hi) + 1] - self._prefix[self._index(lo)]

    def rolling_days(self, day: date, window_days: int = ROLLING_WINDOW_DAYS) -> int:
        """Absence days in the window of ``window_days`` days ending on ``day``."""
        return self.absent_days(day - timedelta(days=window_days - 1), day)

    def iter_rolling(
        self,
        first: date,
        last: date,
        window_days: int = ROLLING_WINDOW_DAYS,
    ) -> Iterator[tuple[date, int]]:
        """Yield (day, rolling total) for every day from first to last."""
        if last < first:
            return

        total = self.rolling_days(first, window_days)
        yield first, total

        day = first
        while day < last:
            day = day + timedelta(days=1)
            entering = 1 if self.is_absent(day) else 0
            leaving = 1 if self.is_absent(day - timedelta(days=window_days)) else 0
            total += entering - leaving
            yield day, total


class RollingScan:
    """
    Rolling totals for every day of [first, last] evaluated against a limit.

    Holds the totals so that violation lookups over any sub-range are O(1)
    and offending windows can be reported for any sub-range.
    """

    def __init__(
        self,
        series: AbsenceSeries,
        first: date,
        last: date,
        limit: int = MAX_ABSENCE_IN_12_MONTHS,
        window_days: int = ROLLING_WINDOW_DAYS,
    ):
        self.first = first
        self.last = last
        self.limit = limit
        self.window_days = window_days
        self.totals = [total for _, total in series.iter_rolling(first, last, window_days)]

        self._violation_prefix = [0]
        for total in self.totals:
            self._violation_prefix.append(self._violation_prefix[-1] + (1 if total > limit else 0))

    def _clip(self, start: date | None, end: date | None) -> tuple[int, int] | None:
        lo = self.first if start is None else max(start, self.first)
        hi = self.last if end is None else min(end, self.last)
        if lo > hi:
            return None
        return (lo - self.first).days, (hi - self.first).days

    def value_at(self, day: date) -> int | None:
        if day < self.first or day > self.last:
            return None
        return self.totals[(day - self.first).days]

    def has_violation(self, start: date | None = None, end: date | None = None) -> bool:
        span = self._clip(start, end)
        if span is None:
            return False
        lo, hi = span
        return self._violation_prefix[hi + 1] - self._violation_prefix[lo] > 0

    def max_total(self, start: date | None = None, end: date | None = None) -> int:
        span = self._clip(start, end)
        if span is None:
            return 0
        lo, hi = span
        return max(self.totals[lo:hi + 1])

    def offending_windows(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[OffendingWindow]:
        """
        Merge consecutive violating days into windows.

        Each window starts where the rolling window of its first violating day
        starts, ends on its last violating day, and reports the peak total.
        """
        span = self._clip(start, end)
        if span is None:
            return []

        windows: list[OffendingWindow] = []
        current: OffendingWindow | None = None
        lo, hi = span

        for index in range(lo, hi + 1):
            total = self.totals[index]
            day = self.first + timedelta(days=index)

            if total > self.limit:
                if current is None:
                    current = OffendingWindow(
                        start=day - timedelta(days=self.window_days - 1),
                        end=day,
                        days=total,
                    )
                else:
                    current.end = day
                    current.days = max(current.days, total)
            elif current is not None:
                windows.append(current)
                current = None

        if current is not None:
            windows.append(current)

        return windows


def build_rolling_points(
    series: AbsenceSeries,
    intervals: list[tuple[date, date]],
    first: date,
    last: date,
    limit: int = MAX_ABSENCE_IN_12_MONTHS,
    window_days: int = ROLLING_WINDOW_DAYS,
) -> list[RollingDataPoint]:
    """
    Chart points, one per day from first to last.

    Each point also says when the oldest absence still in the window drops
    out of it and how many of its days go with it.
    """
    ordered = sorted(
        (max(s, series.start), min(e, series.end))
        for s, e in intervals
        if e >= series.start and s <= series.end
    )
    points = []
    oldest = 0

    for day, total in series.iter_rolling(first, last, window_days):
        window_start = day - timedelta(days=window_days - 1)
        while oldest < len(ordered) and ordered[oldest][1] < window_start:
            oldest += 1

        next_expiration = None
        days_to_expire = None
        if oldest < len(ordered) and ordered[oldest][0] <= day:
            oldest_start, oldest_end = ordered[oldest]
            next_expiration = max(oldest_start, window_start) + timedelta(days=window_days)
            days_to_expire = clip_interval_to_window(oldest_start, oldest_end, window_start, day)

        points.append(RollingDataPoint(
            date=day,
            rolling_days=total,
            risk_level=classify_risk(total, limit),
            formatted_date=format_date(day, "chart"),
            next_expiration_date=next_expiration,
            days_to_expire=days_to_expire,
        ))

    return points
