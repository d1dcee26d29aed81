"""Core type definitions for residency goal tracking."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator

from .exceptions import InvalidGoalConfigError


# UK Home Office guidance
MAX_ALLOWABLE_PRE_ENTRY_DAYS = 180
MAX_ABSENCE_IN_12_MONTHS = 180
ROLLING_WINDOW_DAYS = 365
LOW_ALLOWANCE_DAYS = 30
MAX_CUSTOM_WINDOW_DAYS = 3660

ILR_TRACKS = (2, 3, 5, 10)
ILRTrack = Literal[2, 3, 5, 10]


class Jurisdiction(str, Enum):
    UK = "uk"
    SCHENGEN = "schengen"
    GLOBAL = "global"


class GoalType(str, Enum):
    UK_ILR = "uk_ilr"
    UK_CITIZENSHIP = "uk_citizenship"
    UK_TAX_RESIDENCY = "uk_tax_residency"
    SCHENGEN_90_180 = "schengen_90_180"
    DAYS_COUNTER = "days_counter"
    CUSTOM_THRESHOLD = "custom_threshold"


class GoalCategory(str, Enum):
    IMMIGRATION = "immigration"
    TAX = "tax"
    PERSONAL = "personal"


class GoalStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    LIMIT_EXCEEDED = "limit_exceeded"
    ELIGIBLE = "eligible"
    ACHIEVED = "achieved"


class RiskLevel(str, Enum):
    LOW = "low"
    CAUTION = "caution"
    CRITICAL = "critical"


class CountDirection(str, Enum):
    DAYS_AWAY = "days_away"
    DAYS_PRESENT = "days_present"


class MetricUnit(str, Enum):
    DAYS = "days"
    MONTHS = "months"
    YEARS = "years"
    PERCENT = "percent"
    NONE = "none"


class MetricStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    EXCEEDED = "exceeded"


class WarningSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class RequirementStatus(str, Enum):
    MET = "met"
    PENDING = "pending"
    NOT_MET = "not_met"
    UNKNOWN = "unknown"


def _date_to_str(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


class TripRecord(BaseModel):
    """A single trip out of and back into the home country."""
    id: str
    title: str | None = None
    out_date: str | None = None
    in_date: str | None = None
    out_route: str = ""
    in_route: str = ""

    @field_validator("out_date", "in_date", mode="before")
    @classmethod
    def _dates_as_strings(cls, value: Any) -> Any:
        return _date_to_str(value)


class TripWithCalculations(TripRecord):
    """A trip with its derived day counts; None when the trip is incomplete."""
    calendar_days: int | None = None
    full_days: int | None = None
    is_incomplete: bool = False


class RollingDataPoint(BaseModel):
    """Rolling absence total for the 12-month window ending on ``date``."""
    date: date
    rolling_days: int
    risk_level: RiskLevel
    formatted_date: str
    next_expiration_date: date | None = None
    days_to_expire: int | None = None


class TimelinePoint(BaseModel):
    date: date
    days_since_start: int
    trip_count: int
    formatted_date: str


class TripBar(BaseModel):
    date: date
    trip_start: int
    trip_end: int
    trip_duration: int
    trip_label: str
    formatted_date: str
    out_date: date
    in_date: date


class OffendingWindow(BaseModel):
    """A run of rolling windows whose absence total exceeds the limit."""
    start: date
    end: date
    days: int


class PreEntryPeriodInfo(BaseModel):
    has_pre_entry: bool
    delay_days: int
    can_count: bool
    qualifying_start_date: date


class TooEarlyReason(BaseModel):
    type: Literal["TOO_EARLY"] = "TOO_EARLY"
    message: str
    earliest_allowed_date: date


class IncorrectInputReason(BaseModel):
    type: Literal["INCORRECT_INPUT"] = "INCORRECT_INPUT"
    message: str


class IncompletedTripsReason(BaseModel):
    type: Literal["INCOMPLETED_TRIPS"] = "INCOMPLETED_TRIPS"
    message: str
    trip_ids: list[str] = Field(default_factory=list)


class ExcessiveAbsenceReason(BaseModel):
    type: Literal["EXCESSIVE_ABSENCE"] = "EXCESSIVE_ABSENCE"
    message: str
    offending_windows: list[OffendingWindow] = Field(default_factory=list)


IneligibilityReason = Annotated[
    Union[TooEarlyReason, IncorrectInputReason, IncompletedTripsReason, ExcessiveAbsenceReason],
    Field(discriminator="type"),
]


class EligibleResult(BaseModel):
    status: Literal["ELIGIBLE"] = "ELIGIBLE"
    application_date: date


class IneligibleResult(BaseModel):
    status: Literal["INELIGIBLE"] = "INELIGIBLE"
    reason: IneligibilityReason


ILRValidationResult = Annotated[
    Union[EligibleResult, IneligibleResult],
    Field(discriminator="status"),
]


class ILRSummary(BaseModel):
    total_trips: int
    complete_trips: int
    incomplete_trips: int
    total_full_days: int
    continuous_leave_days: int | None = None
    max_absence_in_any_12_months: int | None = None
    has_exceeded_allowed_absence: bool = False
    ilr_eligibility_date: date | None = None
    days_until_eligible: int | None = None
    auto_date_used: bool = True
    current_rolling_absence_today: int | None = None
    remaining_180_limit_today: int | None = None


class TravelCalculationResult(BaseModel):
    """Everything derived from a trip list for the UK ILR goal."""
    trips_with_calculations: list[TripWithCalculations]
    pre_entry_period: PreEntryPeriodInfo | None = None
    validation: ILRValidationResult
    summary: ILRSummary
    offending_windows: list[OffendingWindow] = Field(default_factory=list)
    rolling_absence_data: list[RollingDataPoint] = Field(default_factory=list)
    timeline_points: list[TimelinePoint] = Field(default_factory=list)
    trip_bars: list[TripBar] = Field(default_factory=list)


class GoalMetric(BaseModel):
    key: str
    label: str
    value: int | float | str
    limit: int | None = None
    unit: MetricUnit = MetricUnit.DAYS
    status: MetricStatus = MetricStatus.OK
    tooltip: str | None = None


class GoalWarning(BaseModel):
    severity: WarningSeverity
    title: str
    message: str
    action: str | None = None
    details: list[str] = Field(default_factory=list)
    related_trip_ids: list[str] = Field(default_factory=list)
    offending_windows: list[OffendingWindow] = Field(default_factory=list)


class GoalRequirement(BaseModel):
    key: str
    label: str
    status: RequirementStatus
    detail: str | None = None


class GoalVisualizationData(BaseModel):
    rolling_absence_data: list[RollingDataPoint] = Field(default_factory=list)
    timeline_points: list[TimelinePoint] = Field(default_factory=list)
    trip_bars: list[TripBar] = Field(default_factory=list)


class GoalCalculation(BaseModel):
    """Engine-independent result consumed by charts, exports and APIs."""
    goal_id: str = ""
    goal_type: GoalType
    status: GoalStatus
    progress_percent: int = 0
    eligibility_date: date | None = None
    days_until_eligible: int | None = None
    metrics: list[GoalMetric] = Field(default_factory=list)
    warnings: list[GoalWarning] = Field(default_factory=list)
    requirements: list[GoalRequirement] = Field(default_factory=list)
    visualization: GoalVisualizationData | None = None

    def get_metric(self, key: str) -> GoalMetric | None:
        for metric in self.metrics:
            if metric.key == key:
                return metric
        return None


class EngineDisplayInfo(BaseModel):
    name: str
    icon: str
    description: str
    category: GoalCategory


class _GoalConfigBase(BaseModel):
    @field_validator(
        "visa_start_date",
        "vignette_entry_date",
        "application_date_override",
        "ilr_grant_date",
        "start_date",
        mode="before",
        check_fields=False,
    )
    @classmethod
    def _dates_as_strings(cls, value: Any) -> Any:
        return _date_to_str(value)


class UKILRConfig(_GoalConfigBase):
    type: Literal["uk_ilr"] = "uk_ilr"
    track_years: ILRTrack
    visa_start_date: str
    vignette_entry_date: str | None = None
    visa_type: str | None = None
    application_date_override: str | None = None


class UKCitizenshipConfig(_GoalConfigBase):
    type: Literal["uk_citizenship"] = "uk_citizenship"
    ilr_grant_date: str
    qualifying_years: Literal[3, 5] = 5
    married_to_british: bool = False


class UKTaxConfig(_GoalConfigBase):
    type: Literal["uk_tax_residency"] = "uk_tax_residency"
    tax_year: str


class SchengenConfig(_GoalConfigBase):
    type: Literal["schengen_90_180"] = "schengen_90_180"
    home_country: str | None = None


class DaysCounterConfig(_GoalConfigBase):
    type: Literal["days_counter"] = "days_counter"
    count_direction: CountDirection = CountDirection.DAYS_AWAY
    reference_location: str = "UK"
    start_date: str


class CustomThresholdConfig(_GoalConfigBase):
    type: Literal["custom_threshold"] = "custom_threshold"
    threshold_days: int = Field(gt=0)
    window_days: int = Field(gt=0, le=MAX_CUSTOM_WINDOW_DAYS)
    count_direction: CountDirection = CountDirection.DAYS_AWAY
    start_date: str
    description: str | None = None

    @model_validator(mode="after")
    def _threshold_fits_window(self) -> "CustomThresholdConfig":
        if self.threshold_days > self.window_days:
            raise ValueError("threshold_days cannot exceed window_days")
        return self


GoalConfig = Annotated[
    Union[
        UKILRConfig,
        UKCitizenshipConfig,
        UKTaxConfig,
        SchengenConfig,
        DaysCounterConfig,
        CustomThresholdConfig,
    ],
    Field(discriminator="type"),
]

_goal_config_adapter = TypeAdapter(GoalConfig)


def parse_goal_config(data: dict[str, Any]) -> GoalConfig:
    """Validate a raw config mapping into its goal-specific model."""
    try:
        return _goal_config_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidGoalConfigError(str(e)) from e


class TrackingGoal(BaseModel):
    """A goal a user tracks, with the config its engine needs."""
    goal_id: str
    name: str
    goal_type: GoalType
    jurisdiction: Jurisdiction
    config: GoalConfig
    is_active: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _config_matches_type(self) -> "TrackingGoal":
        if self.config.type != self.goal_type.value:
            raise ValueError(
                f"Config type '{self.config.type}' does not match goal type '{self.goal_type.value}'"
            )
        return self


GOAL_JURISDICTIONS = {
    GoalType.UK_ILR: Jurisdiction.UK,
    GoalType.UK_CITIZENSHIP: Jurisdiction.UK,
    GoalType.UK_TAX_RESIDENCY: Jurisdiction.UK,
    GoalType.SCHENGEN_90_180: Jurisdiction.SCHENGEN,
    GoalType.DAYS_COUNTER: Jurisdiction.GLOBAL,
    GoalType.CUSTOM_THRESHOLD: Jurisdiction.GLOBAL,
}


def default_jurisdiction(goal_type: GoalType) -> Jurisdiction:
    return GOAL_JURISDICTIONS[GoalType(goal_type)]
