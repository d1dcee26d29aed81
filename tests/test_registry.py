"""Tests for the rule engine registry."""

import pytest
from datetime import date
from residency_rules.core.exceptions import RegistryFrozenError, UnsupportedGoalTypeError
from residency_rules.core.types import (
    GoalType,
    Jurisdiction,
    SchengenConfig,
    TrackingGoal,
    TripRecord,
    UKILRConfig,
)
from residency_rules.rules.days_counter import DaysCounterRuleEngine
from residency_rules.rules.registry import (
    RuleEngineRegistry,
    build_default_registry,
    calculate_goal,
    get_default_registry,
)
from residency_rules.rules.uk_ilr import UKILRRuleEngine


def test_default_registry_engines():
    """Test that the built-in engines are registered and nothing else."""
    registry = build_default_registry()

    assert registry.frozen is True
    assert set(registry.list_goal_types()) == {
        GoalType.UK_ILR,
        GoalType.DAYS_COUNTER,
        GoalType.CUSTOM_THRESHOLD,
    }
    assert registry.is_supported("uk_ilr")
    assert not registry.is_supported(GoalType.SCHENGEN_90_180)


def test_get_unknown_goal_type():
    registry = build_default_registry()

    assert registry.get("not_a_goal") is None
    assert registry.get(GoalType.UK_CITIZENSHIP) is None
    assert isinstance(registry.get("uk_ilr"), UKILRRuleEngine)


def test_later_registration_wins():
    registry = RuleEngineRegistry()
    first = DaysCounterRuleEngine()
    second = DaysCounterRuleEngine()

    registry.register(first)
    registry.register(second)

    assert registry.get(GoalType.DAYS_COUNTER) is second
    assert len(registry.get_all()) == 1


def test_frozen_registry_rejects_registration():
    """Test that a frozen registry cannot be changed."""
    registry = RuleEngineRegistry().freeze()

    with pytest.raises(RegistryFrozenError):
        registry.register(UKILRRuleEngine())


def test_get_by_jurisdiction():
    registry = build_default_registry()

    uk = registry.get_by_jurisdiction(Jurisdiction.UK)
    assert [e.goal_type for e in uk] == [GoalType.UK_ILR]
    assert len(registry.get_by_jurisdiction(Jurisdiction.GLOBAL)) == 2
    assert registry.get_by_jurisdiction(Jurisdiction.SCHENGEN) == []


def test_default_registry_is_shared():
    assert get_default_registry() is get_default_registry()


def test_calculate_goal_sets_goal_id():
    goal = TrackingGoal(
        goal_id="g1",
        name="ILR",
        goal_type=GoalType.UK_ILR,
        jurisdiction=Jurisdiction.UK,
        config=UKILRConfig(track_years=5, visa_start_date="2023-01-01"),
    )
    trips = [TripRecord(id="t1", out_date="2024-01-01", in_date="2024-01-11")]

    calculation = calculate_goal(get_default_registry(), goal, trips, as_of=date(2024, 6, 1))

    assert calculation.goal_id == "g1"
    assert calculation.goal_type == GoalType.UK_ILR


def test_calculate_unsupported_goal_raises():
    """Test that goals without an engine raise UnsupportedGoalTypeError."""
    goal = TrackingGoal(
        goal_id="g2",
        name="Schengen",
        goal_type=GoalType.SCHENGEN_90_180,
        jurisdiction=Jurisdiction.SCHENGEN,
        config=SchengenConfig(),
    )

    with pytest.raises(UnsupportedGoalTypeError, match="schengen_90_180"):
        calculate_goal(get_default_registry(), goal, [], as_of=date(2024, 6, 1))
