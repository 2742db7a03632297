"""
Derived scorecard results.

Everything in this module is recomputed per query and never persisted.
``NO_DATA`` is the sentinel for "nothing to report" and is deliberately
distinct from zero and from a failed computation.
"""

from datetime import datetime, timedelta
from typing import Any, Optional, Union

from pydantic import Field, computed_field, model_validator

from .base import DerivedModel
from .enums import MetricUnit, Provenance, ResultState, Status, Trend, WindowKind


class NoDataType:
    """Singleton sentinel for an empty window. Falsy, never equal to 0."""

    _instance: Optional["NoDataType"] = None

    def __new__(cls) -> "NoDataType":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NoData"

    def __reduce__(self) -> str:
        return "NO_DATA"


NO_DATA = NoDataType()

MaybeValue = Union[float, NoDataType]

DISPLAY_NO_DATA = "—"
DISPLAY_UNAVAILABLE = "unavailable"


def is_no_data(value: Any) -> bool:
    return value is NO_DATA


class WindowRange(DerivedModel):
    """Half-open time range ``[start, end)``."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_ordering(self) -> "WindowRange":
        if not self.start < self.end:
            raise ValueError("Window range start must be before end")
        return self

    @property
    def length(self) -> timedelta:
        return self.end - self.start

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def shifted(self, delta: timedelta) -> "WindowRange":
        return WindowRange(start=self.start + delta, end=self.end + delta)


class ChildValue(DerivedModel):
    """A rollup child's resolved value for the parent's window."""

    metric_id: str
    value: float
    observed_at: Optional[datetime] = None


class ItemError(DerivedModel):
    """Structural failure of one (metric, window) computation."""

    code: str
    message: str


class WindowResult(DerivedModel):
    """
    Value, status and trend of one metric over one window.

    Attributes:
        metric_id: Metric the result belongs to
        metric_name: Display name, when the metric was found
        window: Window kind requested (raw text when it was not recognised)
        state: ok, no_data or unavailable
        value: Current value, None unless state is ok
        previous_value: Value over the preceding period, if any
        status: Scorecard status
        trend: Change against the preceding period
        provenance: computed, manual or rollup
        unit: Display unit
        goal: Goal that applied to this window
        as_of: Instant the query was pinned to
        observed_at: Latest input instant that contributed to the value
        range_start: Start of the window range
        range_end: End of the window range
        error: Failure detail when state is unavailable
    """

    metric_id: str
    metric_name: Optional[str] = None
    window: str
    state: ResultState
    value: Optional[float] = None
    previous_value: Optional[float] = None
    status: Status = Status.UNCLASSIFIED
    trend: Trend = Trend.FLAT
    provenance: Provenance = Provenance.COMPUTED
    unit: Optional[MetricUnit] = None
    goal: Optional[float] = None
    as_of: datetime
    observed_at: Optional[datetime] = None
    range_start: Optional[datetime] = None
    range_end: Optional[datetime] = None
    error: Optional[ItemError] = None

    @model_validator(mode="after")
    def validate_state_value(self) -> "WindowResult":
        if (self.state == ResultState.OK) != (self.value is not None):
            raise ValueError("value must be set exactly when state is ok")
        if (self.state == ResultState.UNAVAILABLE) != (self.error is not None):
            raise ValueError("error must be set exactly when state is unavailable")
        return self

    @computed_field
    @property
    def display_value(self) -> str:
        if self.state == ResultState.UNAVAILABLE:
            return DISPLAY_UNAVAILABLE
        if self.value is None:
            return DISPLAY_NO_DATA
        return f"{self.value:g}"

    @classmethod
    def unavailable(
        cls,
        metric_id: str,
        window: str,
        as_of: datetime,
        code: str,
        message: str,
        metric_name: Optional[str] = None,
    ) -> "WindowResult":
        return cls(
            metric_id=metric_id,
            metric_name=metric_name,
            window=window,
            state=ResultState.UNAVAILABLE,
            as_of=as_of,
            error=ItemError(code=code, message=message),
        )


class ScorecardReport(DerivedModel):
    """Batch of window results for one scorecard request."""

    as_of: datetime
    results: list[WindowResult] = Field(default_factory=list)

    @computed_field
    @property
    def total(self) -> int:
        return len(self.results)

    @computed_field
    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.state == ResultState.UNAVAILABLE)

    @computed_field
    @property
    def successful(self) -> int:
        return self.total - self.failed

    def for_metric(self, metric_id: str) -> list[WindowResult]:
        return [r for r in self.results if r.metric_id == metric_id]

    def get(self, metric_id: str, window: Union[str, WindowKind]) -> Optional[WindowResult]:
        key = window.value if isinstance(window, WindowKind) else window
        for result in self.results:
            if result.metric_id == metric_id and result.window == key:
                return result
        return None

    def below_goal(self) -> list[WindowResult]:
        """Results currently off track."""
        return [r for r in self.results if r.status == Status.OFF_TRACK]
