"""
Data models for the scorecard engine.

Persisted records (metrics, observations, org nodes) are written by
external collaborators; derived results (window results, reports,
benchmarks) are recomputed on every query.
"""

from .base import DerivedModel, PersistedModel
from .benchmarks import (
    BenchmarkComparison,
    BenchmarkSnapshot,
    CategoryShare,
    ClientVolume,
    DailyVolume,
    OwnerWorkload,
    ResolutionBucket,
    ResolutionSummary,
    ResolvableItem,
    SourceShare,
)
from .enums import (
    AggregationMode,
    Direction,
    MetricUnit,
    ObservationSource,
    Provenance,
    ResolutionBand,
    ResultState,
    Status,
    Trend,
    WindowKind,
)
from .metrics import Metric, Observation, OrgNode, Thresholds
from .results import (
    NO_DATA,
    ChildValue,
    ItemError,
    MaybeValue,
    NoDataType,
    ScorecardReport,
    WindowRange,
    WindowResult,
    is_no_data,
)

__all__ = [
    "AggregationMode",
    "BenchmarkComparison",
    "BenchmarkSnapshot",
    "CategoryShare",
    "ChildValue",
    "ClientVolume",
    "DailyVolume",
    "DerivedModel",
    "Direction",
    "ItemError",
    "MaybeValue",
    "Metric",
    "MetricUnit",
    "NO_DATA",
    "NoDataType",
    "Observation",
    "ObservationSource",
    "OwnerWorkload",
    "OrgNode",
    "PersistedModel",
    "Provenance",
    "ResolutionBand",
    "ResolutionBucket",
    "ResolutionSummary",
    "ResolvableItem",
    "ResultState",
    "ScorecardReport",
    "SourceShare",
    "Status",
    "Thresholds",
    "Trend",
    "WindowKind",
    "WindowRange",
    "WindowResult",
    "is_no_data",
]
