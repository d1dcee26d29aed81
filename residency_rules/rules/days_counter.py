"""Generic day-counting rule engines."""

import logging
from datetime import date, timedelta

from ..core.dates import format_date, inclusive_days, parse_date
from ..core.types import (
    CountDirection,
    CustomThresholdConfig,
    DaysCounterConfig,
    EngineDisplayInfo,
    GoalCalculation,
    GoalCategory,
    GoalMetric,
    GoalStatus,
    GoalType,
    GoalVisualizationData,
    GoalWarning,
    Jurisdiction,
    MetricStatus,
    MetricUnit,
    TripRecord,
    TripWithCalculations,
    WarningSeverity,
)
from .checks import calculate_trip_durations, collect_absence_intervals
from .engine import RuleEngine, progress_percent, resolve_as_of
from .rolling import (
    AbsenceSeries,
    RollingScan,
    build_rolling_points,
    caution_threshold,
    complement_intervals,
)


logger = logging.getLogger(__name__)


def _incomplete_trip_warning(trips: list[TripWithCalculations]) -> GoalWarning | None:
    incomplete = [t.id for t in trips if t.is_incomplete]
    if not incomplete:
        return None
    return GoalWarning(
        severity=WarningSeverity.WARNING,
        title="Incomplete Trips",
        message=f"{len(incomplete)} trip(s) are missing dates and are not counted.",
        action="Add the missing departure or return dates",
        related_trip_ids=incomplete,
    )


class DaysCounterRuleEngine(RuleEngine):
    """Counts full days away from (or present in) a location since a start date."""

    goal_type = GoalType.DAYS_COUNTER
    jurisdiction = Jurisdiction.GLOBAL
    config_model = DaysCounterConfig

    def calculate(
        self,
        trips: list[TripRecord],
        config: DaysCounterConfig | dict,
        as_of: date | None = None,
    ) -> GoalCalculation:
        config = self.coerce_config(config)
        as_of = resolve_as_of(as_of)
        start = parse_date(config.start_date)
        trips_with_calculations = calculate_trip_durations(trips)

        warnings = []
        warning = _incomplete_trip_warning(trips_with_calculations)
        if warning is not None:
            warnings.append(warning)

        if as_of < start:
            return GoalCalculation(
                goal_type=self.goal_type,
                status=GoalStatus.NOT_STARTED,
                warnings=warnings,
            )

        intervals = collect_absence_intervals(trips_with_calculations)
        series = AbsenceSeries(intervals, start, as_of)

        total_days = inclusive_days(start, as_of)
        days_away = series.absent_days(start, as_of)
        days_present = total_days - days_away

        counting_away = config.count_direction == CountDirection.DAYS_AWAY
        primary_value = days_away if counting_away else days_present
        location = config.reference_location

        metrics = [
            GoalMetric(
                key="primary_count",
                label=f"Days Away from {location}" if counting_away else f"Days in {location}",
                value=primary_value,
                tooltip=f"Since {format_date(start)}",
            ),
            GoalMetric(
                key="tracking_period",
                label="Total Days Tracked",
                value=total_days,
            ),
        ]

        if counting_away:
            metrics.append(GoalMetric(key="days_present", label=f"Days in {location}", value=days_present))
        else:
            metrics.append(GoalMetric(key="days_away", label="Days Away", value=days_away))

        metrics.append(GoalMetric(
            key="percentage",
            label="% Time Away" if counting_away else "% Time Present",
            value=round(primary_value / total_days * 100) if total_days > 0 else 0,
            unit=MetricUnit.PERCENT,
        ))

        return GoalCalculation(
            goal_type=self.goal_type,
            status=GoalStatus.IN_PROGRESS,
            metrics=metrics,
            warnings=warnings,
        )

    def get_display_info(self) -> EngineDisplayInfo:
        return EngineDisplayInfo(
            name="Days Counter",
            icon="calculator",
            description="Count days spent in or away from a location",
            category=GoalCategory.PERSONAL,
        )


class CustomThresholdRuleEngine(RuleEngine):
    """
    Rolling-window limit with a configurable window and threshold.

    The counted quantity (days away, or days present since the start date)
    must not exceed ``threshold_days`` in any window of ``window_days`` days.
    Planned trips after ``as_of`` are scanned too so that future breaches show
    up as a risk.
    """

    goal_type = GoalType.CUSTOM_THRESHOLD
    jurisdiction = Jurisdiction.GLOBAL
    config_model = CustomThresholdConfig

    def calculate(
        self,
        trips: list[TripRecord],
        config: CustomThresholdConfig | dict,
        as_of: date | None = None,
    ) -> GoalCalculation:
        config = self.coerce_config(config)
        as_of = resolve_as_of(as_of)
        start = parse_date(config.start_date)
        threshold = config.threshold_days
        window = config.window_days
        trips_with_calculations = calculate_trip_durations(trips)

        warnings = []
        warning = _incomplete_trip_warning(trips_with_calculations)
        if warning is not None:
            warnings.append(warning)

        if as_of < start:
            return GoalCalculation(
                goal_type=self.goal_type,
                status=GoalStatus.NOT_STARTED,
                warnings=warnings,
            )

        absences = collect_absence_intervals(trips_with_calculations)
        if config.count_direction == CountDirection.DAYS_AWAY:
            scan_end = max([as_of] + [end + timedelta(days=window - 1) for _, end in absences])
            intervals = absences
        else:
            # presence is only known up to today
            scan_end = as_of
            intervals = complement_intervals(absences, start, as_of)

        series = AbsenceSeries(intervals, start, scan_end)
        scan = RollingScan(series, start, scan_end, limit=threshold, window_days=window)

        current = scan.value_at(as_of)
        max_window = scan.max_total()
        remaining = max(0, threshold - current)
        caution = caution_threshold(threshold)
        past_windows = scan.offending_windows(start, as_of)

        if scan.has_violation(start, as_of):
            status = GoalStatus.LIMIT_EXCEEDED
        elif scan.has_violation(as_of + timedelta(days=1)) or current >= caution:
            status = GoalStatus.AT_RISK
        else:
            status = GoalStatus.ON_TRACK

        noun = "away" if config.count_direction == CountDirection.DAYS_AWAY else "present"
        metrics = [
            GoalMetric(
                key="current_window",
                label=f"Days {noun} in last {window} days",
                value=current,
                limit=threshold,
                status=_threshold_status(current, threshold, caution),
                tooltip=config.description,
            ),
            GoalMetric(
                key="max_window",
                label=f"Max days {noun} in any {window}-day window",
                value=max_window,
                limit=threshold,
                status=_threshold_status(max_window, threshold, caution),
            ),
            GoalMetric(
                key="remaining_allowance",
                label="Days Available",
                value=remaining,
                status=MetricStatus.WARNING if current >= caution else MetricStatus.OK,
            ),
            GoalMetric(
                key="tracking_period",
                label="Total Days Tracked",
                value=inclusive_days(start, as_of),
            ),
        ]

        all_windows = scan.offending_windows()
        if all_windows:
            warnings.insert(0, GoalWarning(
                severity=WarningSeverity.ERROR if past_windows else WarningSeverity.WARNING,
                title="Threshold Exceeded" if past_windows else "Planned Travel Exceeds Threshold",
                message=f"More than {threshold} days {noun} in a {window}-day window.",
                details=[
                    f"{w.start.isoformat()} to {w.end.isoformat()}: up to {w.days} days {noun}"
                    for w in all_windows
                ],
                offending_windows=all_windows,
            ))
        elif current >= caution:
            warnings.insert(0, GoalWarning(
                severity=WarningSeverity.WARNING,
                title="Approaching Threshold",
                message=f"Only {remaining} days left in the current {window}-day window.",
            ))

        logger.debug(
            "Custom threshold calculation finished",
            extra={"status": status.value, "current_window": current, "max_window": max_window},
        )

        return GoalCalculation(
            goal_type=self.goal_type,
            status=status,
            progress_percent=progress_percent(current, threshold),
            metrics=metrics,
            warnings=warnings,
            visualization=GoalVisualizationData(
                rolling_absence_data=build_rolling_points(
                    series, intervals, start, as_of, limit=threshold, window_days=window
                ),
            ),
        )

    def get_display_info(self) -> EngineDisplayInfo:
        return EngineDisplayInfo(
            name="Custom Threshold",
            icon="gauge",
            description="Keep days away or present under a limit in any rolling window",
            category=GoalCategory.PERSONAL,
        )


def _threshold_status(value: int, threshold: int, caution: int) -> MetricStatus:
    if value > threshold:
        return MetricStatus.EXCEEDED
    if value >= caution:
        return MetricStatus.WARNING
    return MetricStatus.OK
