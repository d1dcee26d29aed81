"""Rule engine interface shared by every goal calculator."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any
from pydantic import BaseModel, ValidationError

from ..core.dates import parse_date
from ..core.exceptions import InvalidGoalConfigError
from ..core.types import (
    EngineDisplayInfo,
    GoalCalculation,
    GoalType,
    Jurisdiction,
    TripRecord,
)


class RuleEngine(ABC):
    """
    A calculator for one goal type.

    Engines are stateless: ``calculate`` derives everything from the trips,
    the config and the ``as_of`` date it is given.
    """

    goal_type: GoalType
    jurisdiction: Jurisdiction
    config_model: type[BaseModel]

    @abstractmethod
    def calculate(
        self,
        trips: list[TripRecord],
        config: Any,
        as_of: date | None = None,
    ) -> GoalCalculation:
        """Calculate goal progress, metrics and warnings."""

    @abstractmethod
    def get_display_info(self) -> EngineDisplayInfo:
        """Display metadata for goal pickers."""

    def validate_config(self, config: Any) -> bool:
        """Return True if ``config`` is a valid config for this engine."""
        if isinstance(config, self.config_model):
            return True
        if not isinstance(config, dict):
            return False
        try:
            self.config_model.model_validate(config)
        except ValidationError:
            return False
        return True

    def coerce_config(self, config: Any) -> Any:
        """Return ``config`` as this engine's config model or raise InvalidGoalConfigError."""
        if isinstance(config, self.config_model):
            return config
        if isinstance(config, dict):
            try:
                return self.config_model.model_validate(config)
            except ValidationError as e:
                raise InvalidGoalConfigError(str(e)) from e
        raise InvalidGoalConfigError(
            f"{type(self).__name__} expects {self.config_model.__name__}, got {type(config).__name__}"
        )


def resolve_as_of(as_of: date | None) -> date:
    """The evaluation date; today only when the caller does not pin one."""
    return parse_date(as_of) if as_of is not None else date.today()


def progress_percent(elapsed_days: int, total_days: int) -> int:
    """Elapsed share of a period as a whole percentage clamped to 0-100."""
    if total_days <= 0:
        return 100
    return max(0, min(100, round(elapsed_days / total_days * 100)))
