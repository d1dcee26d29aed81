"""Tests for the UK ILR rule engine wrapper."""

import pytest
from datetime import date, timedelta
from residency_rules.core.exceptions import InvalidGoalConfigError
from residency_rules.core.types import (
    DaysCounterConfig,
    GoalCategory,
    GoalStatus,
    MetricStatus,
    RequirementStatus,
    TripRecord,
    UKILRConfig,
    WarningSeverity,
)
from residency_rules.rules.uk_ilr import UKILRRuleEngine


AS_OF = date(2024, 6, 1)


@pytest.fixture
def engine():
    return UKILRRuleEngine()


@pytest.fixture
def config():
    return UKILRConfig(track_years=5, visa_start_date="2023-01-01")


@pytest.fixture
def single_trip():
    return [TripRecord(id="t1", out_date="2024-01-01", in_date="2024-01-11")]


def test_on_track_calculation(engine, config, single_trip):
    """Test status, progress and metrics for a light travel history."""
    calculation = engine.calculate(single_trip, config, as_of=AS_OF)

    assert calculation.status == GoalStatus.ON_TRACK
    assert calculation.eligibility_date == date(2028, 1, 1)
    assert calculation.days_until_eligible == (date(2028, 1, 1) - AS_OF).days
    assert calculation.progress_percent == 28
    assert [m.key for m in calculation.metrics] == [
        "total_days_outside",
        "continuous_leave",
        "max_rolling_absence",
        "current_rolling",
        "remaining_allowance",
    ]
    assert calculation.get_metric("total_days_outside").value == 9
    assert calculation.get_metric("remaining_allowance").value == 171
    assert calculation.get_metric("unknown") is None
    assert calculation.warnings == []
    assert len(calculation.visualization.rolling_absence_data) == (AS_OF - date(2023, 1, 1)).days + 1


def test_eligible_once_date_passed(engine, config, single_trip):
    calculation = engine.calculate(single_trip, config, as_of=date(2028, 2, 1))

    assert calculation.status == GoalStatus.ELIGIBLE
    assert calculation.progress_percent == 100
    requirement = next(r for r in calculation.requirements if r.key == "qualifying_period")
    assert requirement.status == RequirementStatus.MET


def test_not_started_before_qualifying_period(engine, config):
    calculation = engine.calculate([], config, as_of=date(2022, 12, 1))

    assert calculation.status == GoalStatus.NOT_STARTED
    assert calculation.progress_percent == 0
    assert calculation.get_metric("current_rolling") is None


def test_at_risk_with_low_allowance(engine, config):
    """Test that a long absence near the limit raises a low-allowance warning."""
    trips = [TripRecord(id="long", out_date="2024-01-01", in_date="2024-06-10")]

    calculation = engine.calculate(trips, config, as_of=date(2024, 7, 1))

    assert calculation.status == GoalStatus.AT_RISK
    assert calculation.get_metric("max_rolling_absence").value == 160
    assert calculation.get_metric("max_rolling_absence").status == MetricStatus.WARNING
    assert calculation.get_metric("remaining_allowance").status == MetricStatus.WARNING
    assert [w.title for w in calculation.warnings] == ["Low Remaining Allowance"]


def test_limit_exceeded(engine, config):
    """Test that a breached 12-month limit is an error with its windows attached."""
    trips = []
    for month in range(1, 11):
        out_date = date(2024, month, 1)
        trips.append(TripRecord(id=f"t{month}", out_date=out_date, in_date=out_date + timedelta(days=21)))

    calculation = engine.calculate(trips, config, as_of=AS_OF)

    assert calculation.status == GoalStatus.LIMIT_EXCEEDED
    assert calculation.get_metric("max_rolling_absence").status == MetricStatus.EXCEEDED

    warning = calculation.warnings[0]
    assert warning.severity == WarningSeverity.ERROR
    assert warning.title == "Absence Limit Exceeded"
    assert warning.offending_windows
    assert len(warning.details) == len(warning.offending_windows)

    requirement = next(r for r in calculation.requirements if r.key == "absence_limit")
    assert requirement.status == RequirementStatus.NOT_MET


def test_incomplete_trip_in_progress(engine, config, single_trip):
    trips = single_trip + [TripRecord(id="open", out_date="2024-03-01")]

    calculation = engine.calculate(trips, config, as_of=AS_OF)

    assert calculation.status == GoalStatus.IN_PROGRESS
    assert calculation.eligibility_date is None
    assert [w.title for w in calculation.warnings] == ["Incomplete Trips", "Not Yet Eligible"]
    assert calculation.warnings[0].related_trip_ids == ["open"]
    assert calculation.warnings[1].severity == WarningSeverity.INFO

    statuses = {r.key: r.status for r in calculation.requirements}
    assert statuses["qualifying_period"] == RequirementStatus.UNKNOWN
    assert statuses["complete_trips"] == RequirementStatus.NOT_MET


def test_calculate_accepts_config_dict(engine, single_trip):
    calculation = engine.calculate(
        single_trip, {"track_years": 5, "visa_start_date": "2023-01-01"}, as_of=AS_OF,
    )
    assert calculation.eligibility_date == date(2028, 1, 1)


def test_validate_config(engine, config):
    """Test that only well-formed ILR configs are accepted."""
    assert engine.validate_config(config) is True
    assert engine.validate_config({"track_years": 3, "visa_start_date": "2023-01-01"}) is True
    assert engine.validate_config({"track_years": 4, "visa_start_date": "2023-01-01"}) is False
    assert engine.validate_config({"track_years": 5}) is False
    assert engine.validate_config("uk_ilr") is False


def test_wrong_config_type_raises(engine, single_trip):
    with pytest.raises(InvalidGoalConfigError):
        engine.calculate(single_trip, DaysCounterConfig(start_date="2024-01-01"), as_of=AS_OF)

    with pytest.raises(InvalidGoalConfigError):
        engine.calculate(single_trip, {"track_years": 7, "visa_start_date": "2023-01-01"}, as_of=AS_OF)


def test_display_info(engine):
    info = engine.get_display_info()
    assert info.name == "UK Indefinite Leave to Remain"
    assert info.category == GoalCategory.IMMIGRATION
