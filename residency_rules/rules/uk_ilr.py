"""UK Indefinite Leave to Remain rule engine."""

import logging
from datetime import date, timedelta

from ..core.dates import (
    add_years,
    date_range,
    days_between,
    format_date,
    inclusive_days,
    parse_date,
    parse_optional_date,
)
from ..core.types import (
    ILR_TRACKS,
    LOW_ALLOWANCE_DAYS,
    MAX_ABSENCE_IN_12_MONTHS,
    MAX_ALLOWABLE_PRE_ENTRY_DAYS,
    ROLLING_WINDOW_DAYS,
    EligibleResult,
    EngineDisplayInfo,
    ExcessiveAbsenceReason,
    GoalCalculation,
    GoalCategory,
    GoalMetric,
    GoalRequirement,
    GoalStatus,
    GoalType,
    GoalVisualizationData,
    GoalWarning,
    ILRSummary,
    IncompletedTripsReason,
    IncorrectInputReason,
    IneligibleResult,
    Jurisdiction,
    MetricStatus,
    PreEntryPeriodInfo,
    RequirementStatus,
    TimelinePoint,
    TooEarlyReason,
    TravelCalculationResult,
    TripBar,
    TripRecord,
    TripWithCalculations,
    UKILRConfig,
    WarningSeverity,
)
from .checks import (
    calculate_trip_durations,
    check_no_overlapping_trips,
    check_trips_complete,
    collect_absence_intervals,
)
from .engine import RuleEngine, progress_percent, resolve_as_of
from .rolling import AbsenceSeries, RollingScan, build_rolling_points, caution_threshold


logger = logging.getLogger(__name__)


def calculate_pre_entry_period(visa_start: date, vignette_entry: date) -> PreEntryPeriodInfo:
    """
    Decide where the qualifying period starts.

    A gap of up to MAX_ALLOWABLE_PRE_ENTRY_DAYS between the vignette entry
    date and the visa start date counts towards the qualifying period, which
    then starts at the earlier of the two. A longer gap does not count and
    the period starts at the later date.
    """
    delay_days = abs((visa_start - vignette_entry).days)
    if delay_days == 0:
        return PreEntryPeriodInfo(
            has_pre_entry=False,
            delay_days=0,
            can_count=True,
            qualifying_start_date=visa_start,
        )

    can_count = delay_days <= MAX_ALLOWABLE_PRE_ENTRY_DAYS
    earlier, later = sorted((visa_start, vignette_entry))

    return PreEntryPeriodInfo(
        has_pre_entry=True,
        delay_days=delay_days,
        can_count=can_count,
        qualifying_start_date=earlier if can_count else later,
    )


def _window_floor(application_date: date, track_years: int) -> date:
    """Last day of the first full 12-month window of the period ending on application_date."""
    return add_years(application_date, -track_years) + timedelta(days=ROLLING_WINDOW_DAYS - 1)


def find_eligibility_date(scan: RollingScan, completion_date: date, track_years: int) -> date:
    """Earliest date on or after completion whose qualifying period has no offending window."""
    candidate = completion_date
    while scan.has_violation(_window_floor(candidate, track_years), candidate):
        candidate = candidate + timedelta(days=1)
    return candidate


def _build_timeline_points(
    trips: list[TripWithCalculations],
    start: date,
    end: date,
) -> list[TimelinePoint]:
    size = inclusive_days(start, end)
    if size == 0:
        return []

    delta = [0] * (size + 1)
    for trip in trips:
        if trip.is_incomplete:
            continue
        out_date = max(parse_date(trip.out_date), start)
        in_date = min(parse_date(trip.in_date), end)
        if out_date > in_date:
            continue
        delta[(out_date - start).days] += 1
        delta[(in_date - start).days + 1] -= 1

    points = []
    active = 0
    for offset, day in enumerate(date_range(start, end)):
        active += delta[offset]
        points.append(TimelinePoint(
            date=day,
            days_since_start=offset,
            trip_count=active,
            formatted_date=format_date(day, "chart"),
        ))
    return points


def _build_trip_bars(trips: list[TripWithCalculations], start: date) -> list[TripBar]:
    bars = []
    for trip in trips:
        if trip.is_incomplete:
            continue
        out_date = parse_date(trip.out_date)
        in_date = parse_date(trip.in_date)
        bars.append(TripBar(
            date=out_date,
            trip_start=(out_date - start).days,
            trip_end=(in_date - start).days,
            trip_duration=trip.full_days or 0,
            trip_label=f"{trip.out_route or 'Unknown'} -> {trip.in_route or 'Unknown'}",
            formatted_date=format_date(out_date, "chart"),
            out_date=out_date,
            in_date=in_date,
        ))
    return bars


def calculate_travel_data(
    trips: list[TripRecord],
    visa_start_date: str | date,
    vignette_entry_date: str | date | None = None,
    ilr_track: int = 5,
    application_date_override: str | date | None = None,
    as_of: date | None = None,
) -> TravelCalculationResult:
    """
    Derive every ILR value from a trip history.

    Ineligibility is reported through ``validation``; only malformed dates
    raise (InvalidDateError). ``as_of`` stands in for today and only affects
    the today-relative summary fields and the chart range.
    """
    as_of = resolve_as_of(as_of)
    visa_start = parse_date(visa_start_date)
    known_entry = parse_optional_date(vignette_entry_date)
    vignette_entry = known_entry or visa_start
    override = parse_optional_date(application_date_override)

    trips_with_calculations = calculate_trip_durations(trips)
    complete = [t for t in trips_with_calculations if not t.is_incomplete]

    pre_entry = calculate_pre_entry_period(visa_start, vignette_entry)
    qualifying_start = pre_entry.qualifying_start_date

    intervals = collect_absence_intervals(trips_with_calculations)
    if pre_entry.can_count and visa_start < vignette_entry:
        # visa started abroad; days before entry are spent outside the UK
        intervals = sorted(intervals + [(visa_start, vignette_entry - timedelta(days=1))])

    track_valid = ilr_track in ILR_TRACKS
    completion_date = add_years(qualifying_start, ilr_track) if track_valid else None

    horizon = [as_of, qualifying_start]
    if completion_date is not None:
        horizon.append(completion_date)
    if override is not None:
        horizon.append(override)
    if intervals:
        horizon.append(max(end for _, end in intervals) + timedelta(days=ROLLING_WINDOW_DAYS - 1))
    scan_end = max(horizon)

    series = AbsenceSeries(intervals, qualifying_start, scan_end)
    scan = RollingScan(series, qualifying_start, scan_end)

    no_overlap, overlap_issues = check_no_overlapping_trips(trips_with_calculations)
    trips_complete, incomplete_ids = check_trips_complete(
        trips_with_calculations, qualifying_start, override, returned_by=known_entry
    )

    eligibility_date = None
    if not track_valid:
        validation = IneligibleResult(reason=IncorrectInputReason(
            message=f"ILR track must be one of {', '.join(str(t) for t in ILR_TRACKS)} years, got {ilr_track}",
        ))
    elif not no_overlap:
        validation = IneligibleResult(reason=IncorrectInputReason(
            message="; ".join(overlap_issues),
        ))
    elif not trips_complete:
        validation = IneligibleResult(reason=IncompletedTripsReason(
            message=f"{len(incomplete_ids)} trip(s) in the qualifying period have missing or inverted dates",
            trip_ids=incomplete_ids,
        ))
    else:
        eligibility_date = find_eligibility_date(scan, completion_date, ilr_track)

        if override is None:
            validation = EligibleResult(application_date=eligibility_date)
        elif override < completion_date:
            validation = IneligibleResult(reason=TooEarlyReason(
                message=(
                    f"Application date {override.isoformat()} is before the qualifying period "
                    f"completes on {completion_date.isoformat()}"
                ),
                earliest_allowed_date=eligibility_date,
            ))
        elif scan.has_violation(_window_floor(override, ilr_track), override):
            validation = IneligibleResult(reason=ExcessiveAbsenceReason(
                message=(
                    f"Absences exceed {MAX_ABSENCE_IN_12_MONTHS} days in a 12-month period "
                    f"within the qualifying period ending {override.isoformat()}"
                ),
                offending_windows=scan.offending_windows(_window_floor(override, ilr_track), override),
            ))
        else:
            validation = EligibleResult(application_date=override)

    assessed_date = None
    if eligibility_date is not None:
        assessed_date = override if override is not None and override >= completion_date else eligibility_date

    continuous_leave_days = None
    if assessed_date is not None:
        period_start = add_years(assessed_date, -ilr_track)
        continuous_leave_days = (
            inclusive_days(period_start, assessed_date)
            - series.absent_days(period_start, assessed_date)
        )

    current_rolling = scan.value_at(as_of)
    summary = ILRSummary(
        total_trips=len(trips_with_calculations),
        complete_trips=len(complete),
        incomplete_trips=len(trips_with_calculations) - len(complete),
        total_full_days=sum(t.full_days or 0 for t in complete),
        continuous_leave_days=continuous_leave_days,
        max_absence_in_any_12_months=scan.max_total(),
        has_exceeded_allowed_absence=scan.has_violation(),
        ilr_eligibility_date=eligibility_date,
        days_until_eligible=days_between(as_of, eligibility_date) if eligibility_date else None,
        auto_date_used=override is None,
        current_rolling_absence_today=current_rolling,
        remaining_180_limit_today=(
            max(0, MAX_ABSENCE_IN_12_MONTHS - current_rolling) if current_rolling is not None else None
        ),
    )

    chart_end = max(as_of, override) if override is not None else as_of
    rolling_absence_data = []
    timeline_points = []
    if chart_end >= qualifying_start:
        rolling_absence_data = build_rolling_points(series, intervals, qualifying_start, chart_end)
        timeline_points = _build_timeline_points(trips_with_calculations, qualifying_start, chart_end)

    logger.debug(
        "ILR calculation finished",
        extra={
            "trip_count": len(trips_with_calculations),
            "validation_status": validation.status,
            "eligibility_date": eligibility_date.isoformat() if eligibility_date else None,
        },
    )

    return TravelCalculationResult(
        trips_with_calculations=trips_with_calculations,
        pre_entry_period=pre_entry,
        validation=validation,
        summary=summary,
        offending_windows=scan.offending_windows(),
        rolling_absence_data=rolling_absence_data,
        timeline_points=timeline_points,
        trip_bars=_build_trip_bars(trips_with_calculations, qualifying_start),
    )


class UKILRRuleEngine(RuleEngine):
    """Wraps calculate_travel_data into the common goal calculation shape."""

    goal_type = GoalType.UK_ILR
    jurisdiction = Jurisdiction.UK
    config_model = UKILRConfig

    def calculate_details(
        self,
        trips: list[TripRecord],
        config: UKILRConfig | dict,
        as_of: date | None = None,
    ) -> TravelCalculationResult:
        config = self.coerce_config(config)
        return calculate_travel_data(
            trips,
            visa_start_date=config.visa_start_date,
            vignette_entry_date=config.vignette_entry_date,
            ilr_track=config.track_years,
            application_date_override=config.application_date_override,
            as_of=as_of,
        )

    def calculate(
        self,
        trips: list[TripRecord],
        config: UKILRConfig | dict,
        as_of: date | None = None,
    ) -> GoalCalculation:
        config = self.coerce_config(config)
        as_of = resolve_as_of(as_of)
        result = self.calculate_details(trips, config, as_of)

        qualifying_start = result.pre_entry_period.qualifying_start_date
        total_days = (add_years(qualifying_start, config.track_years) - qualifying_start).days
        elapsed_days = (as_of - qualifying_start).days

        return GoalCalculation(
            goal_type=self.goal_type,
            status=self._map_status(result, qualifying_start, as_of),
            progress_percent=progress_percent(elapsed_days, total_days),
            eligibility_date=result.summary.ilr_eligibility_date,
            days_until_eligible=result.summary.days_until_eligible,
            metrics=self._build_metrics(result.summary),
            warnings=self._build_warnings(result),
            requirements=self._build_requirements(result, as_of),
            visualization=GoalVisualizationData(
                rolling_absence_data=result.rolling_absence_data,
                timeline_points=result.timeline_points,
                trip_bars=result.trip_bars,
            ),
        )

    def get_display_info(self) -> EngineDisplayInfo:
        return EngineDisplayInfo(
            name="UK Indefinite Leave to Remain",
            icon="home",
            description="Track continuous residence for ILR eligibility",
            category=GoalCategory.IMMIGRATION,
        )

    def _map_status(
        self,
        result: TravelCalculationResult,
        qualifying_start: date,
        as_of: date,
    ) -> GoalStatus:
        validation = result.validation
        summary = result.summary

        if isinstance(validation, EligibleResult) and validation.application_date <= as_of:
            return GoalStatus.ELIGIBLE
        if summary.has_exceeded_allowed_absence:
            return GoalStatus.LIMIT_EXCEEDED
        if (summary.max_absence_in_any_12_months or 0) >= caution_threshold(MAX_ABSENCE_IN_12_MONTHS):
            return GoalStatus.AT_RISK
        if as_of < qualifying_start:
            return GoalStatus.NOT_STARTED
        if isinstance(validation, IneligibleResult):
            return GoalStatus.IN_PROGRESS
        return GoalStatus.ON_TRACK

    def _build_metrics(self, summary: ILRSummary) -> list[GoalMetric]:
        caution = caution_threshold(MAX_ABSENCE_IN_12_MONTHS)
        metrics = [
            GoalMetric(
                key="total_days_outside",
                label="Total Days Outside UK",
                value=summary.total_full_days,
                tooltip="Total full days spent outside the UK since visa start",
            ),
        ]

        if summary.continuous_leave_days is not None:
            metrics.append(GoalMetric(
                key="continuous_leave",
                label="Days in UK",
                value=summary.continuous_leave_days,
                tooltip="Days physically present in the UK during the qualifying period",
            ))

        if summary.max_absence_in_any_12_months is not None:
            value = summary.max_absence_in_any_12_months
            metrics.append(GoalMetric(
                key="max_rolling_absence",
                label="Max 12-Month Absence",
                value=value,
                limit=MAX_ABSENCE_IN_12_MONTHS,
                status=_limit_status(value, MAX_ABSENCE_IN_12_MONTHS, caution),
                tooltip=f"Maximum absence in any rolling 12-month period (limit: {MAX_ABSENCE_IN_12_MONTHS} days)",
            ))

        if summary.current_rolling_absence_today is not None:
            value = summary.current_rolling_absence_today
            metrics.append(GoalMetric(
                key="current_rolling",
                label="Current 12-Month Total",
                value=value,
                limit=MAX_ABSENCE_IN_12_MONTHS,
                status=_limit_status(value, MAX_ABSENCE_IN_12_MONTHS, caution),
                tooltip="Absence days in the 12-month period ending today",
            ))

        if summary.remaining_180_limit_today is not None:
            metrics.append(GoalMetric(
                key="remaining_allowance",
                label="Days Available",
                value=summary.remaining_180_limit_today,
                status=(
                    MetricStatus.WARNING
                    if summary.remaining_180_limit_today < LOW_ALLOWANCE_DAYS
                    else MetricStatus.OK
                ),
                tooltip="Days you can still spend outside the UK in the current 12-month window",
            ))

        return metrics

    def _build_warnings(self, result: TravelCalculationResult) -> list[GoalWarning]:
        summary = result.summary
        warnings = []

        if summary.has_exceeded_allowed_absence:
            warnings.append(GoalWarning(
                severity=WarningSeverity.ERROR,
                title="Absence Limit Exceeded",
                message=(
                    f"You have spent more than {MAX_ABSENCE_IN_12_MONTHS} days outside the UK "
                    "in a 12-month period."
                ),
                action="Review your travel history and eligibility date",
                details=[
                    f"{w.start.isoformat()} to {w.end.isoformat()}: up to {w.days} days absent"
                    for w in result.offending_windows
                ],
                offending_windows=result.offending_windows,
            ))
        elif (
            summary.remaining_180_limit_today is not None
            and summary.remaining_180_limit_today < LOW_ALLOWANCE_DAYS
        ):
            warnings.append(GoalWarning(
                severity=WarningSeverity.WARNING,
                title="Low Remaining Allowance",
                message=(
                    f"You only have {summary.remaining_180_limit_today} days left "
                    "in your current 12-month window."
                ),
                action="Plan any upcoming travel carefully",
            ))

        incomplete = [t.id for t in result.trips_with_calculations if t.is_incomplete]
        if incomplete:
            warnings.append(GoalWarning(
                severity=WarningSeverity.WARNING,
                title="Incomplete Trips",
                message=f"{len(incomplete)} trip(s) are missing dates and are not counted.",
                action="Add the missing departure or return dates",
                related_trip_ids=incomplete,
            ))

        if isinstance(result.validation, IneligibleResult):
            warnings.append(GoalWarning(
                severity=WarningSeverity.INFO,
                title="Not Yet Eligible",
                message=result.validation.reason.message,
            ))

        return warnings

    def _build_requirements(
        self,
        result: TravelCalculationResult,
        as_of: date,
    ) -> list[GoalRequirement]:
        summary = result.summary
        eligibility_date = summary.ilr_eligibility_date

        if eligibility_date is None:
            period_status = RequirementStatus.UNKNOWN
            period_detail = "Cannot be determined until trip data is fixed"
        elif eligibility_date <= as_of:
            period_status = RequirementStatus.MET
            period_detail = f"Eligible from {format_date(eligibility_date)}"
        else:
            period_status = RequirementStatus.PENDING
            period_detail = f"Eligible from {format_date(eligibility_date)}"

        return [
            GoalRequirement(
                key="qualifying_period",
                label="Complete qualifying period",
                status=period_status,
                detail=period_detail,
            ),
            GoalRequirement(
                key="absence_limit",
                label="Stay within absence limits",
                status=(
                    RequirementStatus.NOT_MET
                    if summary.has_exceeded_allowed_absence
                    else RequirementStatus.MET
                ),
                detail=(
                    f"Exceeded {MAX_ABSENCE_IN_12_MONTHS}-day limit"
                    if summary.has_exceeded_allowed_absence
                    else "Within limits"
                ),
            ),
            GoalRequirement(
                key="complete_trips",
                label="Record every trip in full",
                status=RequirementStatus.NOT_MET if summary.incomplete_trips else RequirementStatus.MET,
                detail=(
                    f"{summary.incomplete_trips} incomplete trip(s)"
                    if summary.incomplete_trips
                    else "All trips complete"
                ),
            ),
        ]


def _limit_status(value: int, limit: int, caution: int) -> MetricStatus:
    if value > limit:
        return MetricStatus.EXCEEDED
    if value >= caution:
        return MetricStatus.WARNING
    return MetricStatus.OK
