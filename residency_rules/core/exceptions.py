"""Exceptions raised by the rule engines and their callers."""


class ResidencyRulesError(Exception):
    """Base exception for residency rules."""

    pass


class InvalidDateError(ResidencyRulesError, ValueError):
    """A date value does not parse to a valid calendar date."""

    def __init__(self, value: object, message: str | None = None):
        self.value = value
        super().__init__(message or f"Invalid date: {value!r}")


class InvalidGoalConfigError(ResidencyRulesError):
    """Goal configuration does not match the engine it was given to."""

    pass


class UnsupportedGoalTypeError(ResidencyRulesError):
    """No rule engine is registered for the requested goal type."""

    def __init__(self, goal_type: str):
        self.goal_type = goal_type
        super().__init__(f"Goal type '{goal_type}' is not supported")


class RegistryFrozenError(ResidencyRulesError):
    """Registration attempted after the registry was frozen."""

    pass
