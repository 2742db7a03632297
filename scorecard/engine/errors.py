"""
Error taxonomy for scorecard computation.

Structural errors (bad window kinds, cyclic or over-deep rollups, missing
metrics) are reported per (metric, window) item and never fail a batch.
Timeouts fail the whole request.
"""

from typing import Sequence


class ScorecardError(Exception):
    """Base exception for scorecard engine failures."""

    code = "scorecard_error"


class StructuralError(ScorecardError):
    """A definition problem that makes one item uncomputable."""

    code = "structural_error"


class InvalidWindowKind(StructuralError, ValueError):
    """Window kind text outside the fixed enumeration."""

    code = "invalid_window_kind"

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Unknown window kind: {raw!r}")


class CyclicRollupError(StructuralError):
    """A rollup reaches itself through its children."""

    code = "cyclic_rollup"

    def __init__(self, path: Sequence[str]):
        self.path = list(path)
        super().__init__("Rollup cycle detected: " + " -> ".join(self.path))


class RollupTooDeep(StructuralError):
    """Rollup nesting exceeds the configured maximum depth."""

    code = "rollup_too_deep"

    def __init__(self, metric_id: str, depth: int, limit: int):
        self.metric_id = metric_id
        self.depth = depth
        self.limit = limit
        super().__init__(
            f"Rollup depth {depth} exceeds limit {limit} at metric {metric_id}"
        )


class MetricNotFound(StructuralError, LookupError):
    """A referenced metric does not exist."""

    code = "metric_not_found"

    def __init__(self, metric_id: str):
        self.metric_id = metric_id
        super().__init__(f"Metric not found: {metric_id}")


class ScorecardTimeout(ScorecardError, TimeoutError):
    """The request exceeded its computation deadline."""

    code = "timeout"

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Scorecard computation exceeded {timeout_seconds:g}s")
