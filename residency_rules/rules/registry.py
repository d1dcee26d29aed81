"""Registry of rule engines keyed by goal type."""

import logging
import threading
from datetime import date

from ..core.exceptions import RegistryFrozenError, UnsupportedGoalTypeError
from ..core.types import GoalCalculation, GoalType, Jurisdiction, TrackingGoal, TripRecord
from .engine import RuleEngine


logger = logging.getLogger(__name__)


class RuleEngineRegistry:
    """Lookup of rule engines; read-only once frozen."""

    def __init__(self) -> None:
        self._engines: dict[GoalType, RuleEngine] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, engine: RuleEngine) -> None:
        """Register an engine. A later engine for the same goal type replaces the earlier one."""
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{engine.goal_type.value}': registry is frozen"
            )
        if engine.goal_type in self._engines:
            logger.debug("Replacing rule engine for %s", engine.goal_type.value)
        self._engines[engine.goal_type] = engine

    def freeze(self) -> "RuleEngineRegistry":
        self._frozen = True
        return self

    def get(self, goal_type: GoalType | str) -> RuleEngine | None:
        """Get an engine by goal type; None if unknown or unregistered."""
        try:
            goal_type = GoalType(goal_type)
        except ValueError:
            return None
        return self._engines.get(goal_type)

    def get_all(self) -> list[RuleEngine]:
        return list(self._engines.values())

    def get_by_jurisdiction(self, jurisdiction: Jurisdiction) -> list[RuleEngine]:
        return [e for e in self._engines.values() if e.jurisdiction == jurisdiction]

    def is_supported(self, goal_type: GoalType | str) -> bool:
        return self.get(goal_type) is not None

    def list_goal_types(self) -> list[GoalType]:
        return list(self._engines.keys())


def build_default_registry() -> RuleEngineRegistry:
    """Create a frozen registry holding the built-in engines."""
    from .days_counter import CustomThresholdRuleEngine, DaysCounterRuleEngine
    from .uk_ilr import UKILRRuleEngine

    registry = RuleEngineRegistry()
    registry.register(UKILRRuleEngine())
    registry.register(DaysCounterRuleEngine())
    registry.register(CustomThresholdRuleEngine())
    return registry.freeze()


_default_registry: RuleEngineRegistry | None = None
_default_registry_lock = threading.Lock()


def get_default_registry() -> RuleEngineRegistry:
    """The process-wide registry, built on first use and shared afterwards."""
    global _default_registry
    if _default_registry is None:
        with _default_registry_lock:
            if _default_registry is None:
                _default_registry = build_default_registry()
                logger.debug(
                    "Rule engine registry initialized",
                    extra={"goal_types": [t.value for t in _default_registry.list_goal_types()]},
                )
    return _default_registry


def calculate_goal(
    registry: RuleEngineRegistry,
    goal: TrackingGoal,
    trips: list[TripRecord],
    as_of: date | None = None,
) -> GoalCalculation:
    """Run the engine registered for ``goal`` and stamp the goal id on its result."""
    engine = registry.get(goal.goal_type)
    if engine is None:
        raise UnsupportedGoalTypeError(goal.goal_type.value)

    calculation = engine.calculate(trips, goal.config, as_of=as_of)
    calculation.goal_id = goal.goal_id
    return calculation
