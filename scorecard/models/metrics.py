"""
Persisted scorecard records: metric definitions, observations, org nodes.

These are the inputs the engine reads. They are written by external
collaborators (manual entry, sync jobs, org-chart CRUD) and are never
mutated by the engine.
"""

import math
from datetime import datetime
from typing import Optional
from uuid import uuid4

from pydantic import Field, field_validator, model_validator

from scorecard.utils.timeutils import ensure_aware

from .base import PersistedModel
from .enums import (
    AggregationMode,
    Direction,
    MetricUnit,
    ObservationSource,
    WindowKind,
)


class Thresholds(PersistedModel):
    """
    Red/yellow boundaries for status classification.

    Either side may be missing. When both are present and distinct their
    ordering implies a direction: red below yellow means higher is better.
    """

    red: Optional[float] = Field(default=None, description="Off-track boundary")
    yellow: Optional[float] = Field(default=None, description="At-risk boundary")

    @property
    def is_empty(self) -> bool:
        return self.red is None and self.yellow is None

    def implied_direction(self) -> Optional[Direction]:
        """Direction implied by threshold ordering, None when ambiguous."""
        if self.red is None or self.yellow is None or self.red == self.yellow:
            return None
        if self.red < self.yellow:
            return Direction.HIGHER_IS_BETTER
        return Direction.LOWER_IS_BETTER


class Metric(PersistedModel):
    """
    A scorecard metric definition.

    Attributes:
        metric_id: Unique identifier
        name: Display name
        owner_node_id: Node of the organizational tree that owns the metric
        unit: Display unit (currency, percentage, count, custom)
        windows: Bound time windows; the first is the primary window
        aggregation: How inputs in a window reduce to one value
        direction: Explicit improvement direction, if known
        goal: Global goal
        goals_by_window: Goal overrides per window
        thresholds: Global red/yellow thresholds
        thresholds_by_window: Threshold overrides per window
        is_rollup: Value is always derived from child metrics
        child_metric_ids: Ordered child references for rollups
        benchmark_group: Peer-group key for benchmark populations
    """

    metric_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this metric",
    )
    name: str = Field(description="Display name")
    owner_node_id: Optional[str] = Field(
        default=None, description="Owning node in the organizational tree"
    )
    unit: MetricUnit = Field(default=MetricUnit.COUNT, description="Display unit")
    windows: list[WindowKind] = Field(
        default_factory=lambda: [WindowKind.WEEK],
        min_length=1,
        description="Bound time windows, primary first",
    )
    aggregation: AggregationMode = Field(
        default=AggregationMode.SUM, description="Aggregation mode"
    )
    direction: Optional[Direction] = Field(
        default=None, description="Explicit improvement direction"
    )
    goal: Optional[float] = Field(default=None, description="Global goal")
    goals_by_window: dict[WindowKind, float] = Field(
        default_factory=dict, description="Goal per window"
    )
    thresholds: Thresholds = Field(
        default_factory=Thresholds, description="Global red/yellow thresholds"
    )
    thresholds_by_window: dict[WindowKind, Thresholds] = Field(
        default_factory=dict, description="Thresholds per window"
    )
    is_rollup: bool = Field(default=False, description="Derived from child metrics")
    child_metric_ids: list[str] = Field(
        default_factory=list, description="Ordered child metric references"
    )
    benchmark_group: Optional[str] = Field(
        default=None, description="Peer-group key for benchmarking"
    )

    @field_validator("name")
    @classmethod
    def validate_name_not_empty(cls, v: str) -> str:
        """Ensure metric name is not empty."""
        if not v or not v.strip():
            raise ValueError("Metric name must not be empty")
        return v.strip()

    @field_validator("windows")
    @classmethod
    def validate_windows_unique(cls, v: list[WindowKind]) -> list[WindowKind]:
        """Drop repeated window bindings, keeping first occurrence order."""
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_rollup_shape(self) -> "Metric":
        """Rollups need children and a computed aggregation; leaves have none."""
        if self.is_rollup:
            if not self.child_metric_ids:
                raise ValueError("Rollup metric must have at least one child")
            if self.aggregation == AggregationMode.MANUAL:
                raise ValueError("Rollup metric cannot use manual aggregation")
            if self.metric_id in self.child_metric_ids:
                raise ValueError("Rollup metric cannot list itself as a child")
        elif self.child_metric_ids:
            raise ValueError("Only rollup metrics may have children")
        return self

    @model_validator(mode="after")
    def validate_window_overrides(self) -> "Metric":
        """Per-window goals and thresholds must target bound windows."""
        bound = set(self.windows)
        stray = (set(self.goals_by_window) | set(self.thresholds_by_window)) - bound
        if stray:
            names = ", ".join(sorted(w.value for w in stray))
            raise ValueError(f"Overrides reference unbound windows: {names}")
        return self

    @model_validator(mode="after")
    def validate_direction_matches_thresholds(self) -> "Metric":
        """An explicit direction may not contradict threshold ordering."""
        if self.direction is None:
            return self
        for thresholds in [self.thresholds, *self.thresholds_by_window.values()]:
            implied = thresholds.implied_direction()
            if implied is not None and implied != self.direction:
                raise ValueError(
                    f"Thresholds red={thresholds.red} yellow={thresholds.yellow} "
                    f"contradict direction {self.direction.value}"
                )
        return self

    @property
    def primary_window(self) -> WindowKind:
        return self.windows[0]

    def goal_for(self, window: WindowKind) -> Optional[float]:
        """Goal for a window, falling back to the global goal."""
        return self.goals_by_window.get(window, self.goal)

    def thresholds_for(self, window: WindowKind) -> Thresholds:
        """Thresholds for a window, falling back to the global set."""
        return self.thresholds_by_window.get(window, self.thresholds)


class Observation(PersistedModel):
    """
    One immutable timestamped value recorded against a metric.

    Attributes:
        observation_id: Unique identifier
        metric_id: Metric the value belongs to
        recorded_at: Instant the value describes
        value: Observed value
        source: Writer that recorded it
        written_at: Instant the ledger accepted it; stamped by storage on append
        excluded_at: Soft-exclusion instant, if any
        notes: Free-form note from the writer
    """

    observation_id: str = Field(
        default_factory=lambda: str(uuid4()),
        description="Unique identifier for this observation",
    )
    metric_id: str = Field(description="Metric the value belongs to")
    recorded_at: datetime = Field(description="Instant the value describes")
    value: float = Field(description="Observed value")
    source: ObservationSource = Field(
        default=ObservationSource.MANUAL, description="Writer that recorded it"
    )
    written_at: Optional[datetime] = Field(
        default=None, description="Instant the ledger accepted the value"
    )
    excluded_at: Optional[datetime] = Field(
        default=None, description="Soft-exclusion instant"
    )
    notes: Optional[str] = Field(default=None, description="Writer note")

    @field_validator("recorded_at", "written_at", "excluded_at")
    @classmethod
    def validate_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps are taken as UTC."""
        return ensure_aware(v) if v is not None else None

    @field_validator("value")
    @classmethod
    def validate_finite(cls, v: float) -> float:
        """Reject NaN and infinities."""
        if not math.isfinite(v):
            raise ValueError("Observation value must be finite")
        return v

    def visible_at(self, as_of: datetime) -> bool:
        """Whether a query pinned to ``as_of`` can see this observation."""
        if self.recorded_at > as_of:
            return False
        if self.written_at is not None and self.written_at > as_of:
            return False
        return self.excluded_at is None or self.excluded_at > as_of


class OrgNode(PersistedModel):
    """A node (team, seat or pillar) of the organizational tree."""

    node_id: str = Field(description="Unique identifier of the node")
    name: str = Field(description="Display name")
    parent_id: Optional[str] = Field(default=None, description="Parent node")
    level: int = Field(default=0, ge=0, description="Depth label from the org chart")
