"""
Scorecard computation engine.

Pure components (window resolver, aggregator, classifier, trend) plus the
per-request rollup resolver and the services that orchestrate them over a
storage backend.
"""

from .aggregator import Aggregate, aggregate, evaluate
from .benchmark import (
    BenchmarkService,
    benchmark_population,
    bucket,
    compare_to_population,
    compute_resolution_buckets,
    percent_change,
    percentile_of,
    summarize_owner_workload,
    summarize_resolution,
)
from .classifier import classify, effective_direction
from .errors import (
    CyclicRollupError,
    InvalidWindowKind,
    MetricNotFound,
    RollupTooDeep,
    ScorecardError,
    ScorecardTimeout,
    StructuralError,
)
from .rollup import Deadline, RollupContext, RollupResolver
from .service import ScorecardService
from .trend import trend
from .windows import TICK, parse_window_kind, previous, resolve

__all__ = [
    "Aggregate",
    "BenchmarkService",
    "CyclicRollupError",
    "Deadline",
    "InvalidWindowKind",
    "MetricNotFound",
    "RollupContext",
    "RollupResolver",
    "RollupTooDeep",
    "ScorecardError",
    "ScorecardService",
    "ScorecardTimeout",
    "StructuralError",
    "TICK",
    "aggregate",
    "benchmark_population",
    "bucket",
    "classify",
    "compare_to_population",
    "compute_resolution_buckets",
    "effective_direction",
    "evaluate",
    "parse_window_kind",
    "percent_change",
    "percentile_of",
    "previous",
    "resolve",
    "summarize_owner_workload",
    "summarize_resolution",
    "trend",
]
