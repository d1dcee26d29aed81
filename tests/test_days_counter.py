"""Tests for the days counter and custom threshold engines."""

import pytest
from datetime import date
from residency_rules.core.exceptions import InvalidDateError
from residency_rules.core.types import (
    CountDirection,
    CustomThresholdConfig,
    DaysCounterConfig,
    GoalStatus,
    MetricStatus,
    MetricUnit,
    TripRecord,
    WarningSeverity,
)
from residency_rules.rules.days_counter import CustomThresholdRuleEngine, DaysCounterRuleEngine


@pytest.fixture
def counter():
    return DaysCounterRuleEngine()


@pytest.fixture
def threshold_engine():
    return CustomThresholdRuleEngine()


@pytest.fixture
def threshold_config():
    return CustomThresholdConfig(threshold_days=10, window_days=30, start_date="2024-01-01")


def test_counts_days_away(counter):
    """Test that full days away since the start date are counted."""
    trips = [TripRecord(id="t1", out_date="2024-01-05", in_date="2024-01-11")]
    config = DaysCounterConfig(start_date="2024-01-01")

    calculation = counter.calculate(trips, config, as_of=date(2024, 1, 31))

    assert calculation.status == GoalStatus.IN_PROGRESS
    assert calculation.get_metric("primary_count").value == 5
    assert calculation.get_metric("primary_count").label == "Days Away from UK"
    assert calculation.get_metric("tracking_period").value == 31
    assert calculation.get_metric("days_present").value == 26
    percentage = calculation.get_metric("percentage")
    assert percentage.value == 16
    assert percentage.unit == MetricUnit.PERCENT


def test_counts_days_present(counter):
    trips = [TripRecord(id="t1", out_date="2024-01-05", in_date="2024-01-11")]
    config = DaysCounterConfig(
        start_date="2024-01-01",
        count_direction=CountDirection.DAYS_PRESENT,
        reference_location="France",
    )

    calculation = counter.calculate(trips, config, as_of=date(2024, 1, 31))

    assert calculation.get_metric("primary_count").value == 26
    assert calculation.get_metric("primary_count").label == "Days in France"
    assert calculation.get_metric("days_away").value == 5
    assert calculation.get_metric("percentage").value == 84


def test_trip_straddling_start_is_clipped(counter):
    """Test that only absence days on or after the start date count."""
    trips = [TripRecord(id="t1", out_date="2023-12-20", in_date="2024-01-03")]

    calculation = counter.calculate(trips, {"start_date": "2024-01-01"}, as_of=date(2024, 1, 31))

    assert calculation.get_metric("primary_count").value == 2


def test_counter_not_started(counter):
    calculation = counter.calculate([], {"start_date": "2025-01-01"}, as_of=date(2024, 6, 1))

    assert calculation.status == GoalStatus.NOT_STARTED
    assert calculation.metrics == []


def test_counter_warns_about_incomplete_trips(counter):
    trips = [TripRecord(id="open", out_date="2024-01-05")]

    calculation = counter.calculate(trips, {"start_date": "2024-01-01"}, as_of=date(2024, 1, 31))

    assert calculation.get_metric("primary_count").value == 0
    assert calculation.warnings[0].title == "Incomplete Trips"
    assert calculation.warnings[0].related_trip_ids == ["open"]


def test_threshold_on_track(threshold_engine, threshold_config):
    trips = [TripRecord(id="t1", out_date="2024-01-05", in_date="2024-01-11")]

    calculation = threshold_engine.calculate(trips, threshold_config, as_of=date(2024, 1, 20))

    assert calculation.status == GoalStatus.ON_TRACK
    assert calculation.get_metric("current_window").value == 5
    assert calculation.get_metric("remaining_allowance").value == 5
    assert calculation.progress_percent == 50
    assert calculation.warnings == []
    assert len(calculation.visualization.rolling_absence_data) == 20


def test_threshold_exceeded(threshold_engine, threshold_config):
    """Test that a past breach is reported as an error."""
    trips = [TripRecord(id="t1", out_date="2024-01-05", in_date="2024-01-17")]

    calculation = threshold_engine.calculate(trips, threshold_config, as_of=date(2024, 1, 31))

    assert calculation.status == GoalStatus.LIMIT_EXCEEDED
    assert calculation.get_metric("max_window").value == 11
    assert calculation.get_metric("max_window").status == MetricStatus.EXCEEDED
    warning = calculation.warnings[0]
    assert warning.severity == WarningSeverity.ERROR
    assert warning.title == "Threshold Exceeded"
    assert warning.offending_windows[0].days == 11


def test_planned_trip_breach_is_at_risk(threshold_engine, threshold_config):
    """Test that a future trip over the threshold is a risk, not a breach."""
    trips = [TripRecord(id="plan", out_date="2024-02-01", in_date="2024-02-15")]

    calculation = threshold_engine.calculate(trips, threshold_config, as_of=date(2024, 1, 2))

    assert calculation.status == GoalStatus.AT_RISK
    assert calculation.get_metric("current_window").value == 0
    warning = calculation.warnings[0]
    assert warning.severity == WarningSeverity.WARNING
    assert warning.title == "Planned Travel Exceeds Threshold"


def test_approaching_threshold(threshold_engine, threshold_config):
    trips = [TripRecord(id="t1", out_date="2024-01-05", in_date="2024-01-15")]

    calculation = threshold_engine.calculate(trips, threshold_config, as_of=date(2024, 1, 20))

    assert calculation.status == GoalStatus.AT_RISK
    assert calculation.get_metric("current_window").value == 9
    assert calculation.warnings[0].title == "Approaching Threshold"


def test_threshold_on_days_present(threshold_engine):
    config = CustomThresholdConfig(
        threshold_days=20,
        window_days=30,
        start_date="2024-01-01",
        count_direction=CountDirection.DAYS_PRESENT,
    )
    trips = [TripRecord(id="t1", out_date="2024-01-01", in_date="2024-01-31")]

    calculation = threshold_engine.calculate(trips, config, as_of=date(2024, 1, 31))

    assert calculation.status == GoalStatus.ON_TRACK
    assert calculation.get_metric("current_window").value == 1
    assert calculation.get_metric("current_window").label == "Days present in last 30 days"


def test_threshold_larger_than_window_rejected(threshold_engine):
    assert threshold_engine.validate_config(
        {"threshold_days": 40, "window_days": 30, "start_date": "2024-01-01"}
    ) is False
    assert threshold_engine.validate_config(
        {"threshold_days": 0, "window_days": 30, "start_date": "2024-01-01"}
    ) is False


def test_display_info(counter, threshold_engine):
    assert counter.get_display_info().name == "Days Counter"
    assert threshold_engine.get_display_info().name == "Custom Threshold"


def test_threshold_trip_beyond_supported_range_raises(threshold_engine, threshold_config):
    trips = [TripRecord(id="far", out_date="9999-12-01", in_date="9999-12-20")]

    with pytest.raises(InvalidDateError):
        threshold_engine.calculate(trips, threshold_config, as_of=date(2024, 1, 20))


def test_threshold_earliest_supported_start(threshold_engine):
    """Test that windows reaching back before the earliest start date still compute."""
    config = CustomThresholdConfig(threshold_days=10, window_days=3660, start_date="1900-01-01")

    calculation = threshold_engine.calculate([], config, as_of=date(1900, 1, 10))

    assert calculation.status == GoalStatus.ON_TRACK
    assert calculation.get_metric("tracking_period").value == 10


def test_window_longer_than_ten_years_rejected(threshold_engine):
    assert threshold_engine.validate_config(
        {"threshold_days": 10, "window_days": 3661, "start_date": "2024-01-01"}
    ) is False
