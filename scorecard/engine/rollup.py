"""
Rollup resolver.

Walks the metric hierarchy depth-first to obtain child values for a
rollup metric's window, memoizing each (metric, range) pair for the
lifetime of one request. The in-progress path doubles as a cycle guard
and a depth counter; nothing is cached across requests.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import structlog

from scorecard.models.metrics import Metric, Observation
from scorecard.models.results import ChildValue, WindowRange, is_no_data

from .aggregator import Aggregate, evaluate
from .errors import CyclicRollupError, MetricNotFound, RollupTooDeep, ScorecardTimeout

logger = structlog.get_logger(__name__)

DEFAULT_MAX_DEPTH = 16


class Deadline:
    """Monotonic deadline for one request; no limit when timeout is None."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = timeout_seconds
        self._expires_at = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def check(self) -> None:
        if self.expired:
            raise ScorecardTimeout(self.timeout_seconds)


@dataclass
class RollupContext:
    """
    Snapshot of everything one request reads.

    Attributes:
        metrics: Catalog of metrics reachable from the request, by id
        children: Child ids per rollup metric, from the hierarchy snapshot
        observations: Visible observations per leaf metric, ledger ordered
        max_depth: Maximum rollup nesting below the requested metric
        deadline: Request deadline
    """

    metrics: dict[str, Metric]
    children: dict[str, list[str]] = field(default_factory=dict)
    observations: dict[str, list[Observation]] = field(default_factory=dict)
    max_depth: int = DEFAULT_MAX_DEPTH
    deadline: Deadline = field(default_factory=Deadline)


class RollupResolver:
    """
    Per-request resolver for metric values, rollups included.

    Create one per request. Memoized values are only valid for the
    context snapshot the resolver was built with.
    """

    def __init__(self, context: RollupContext):
        self.context = context
        self._memo: dict[tuple[str, WindowRange], Aggregate] = {}
        self._path: list[str] = []

    def child_ids(self, metric: Metric) -> list[str]:
        return self.context.children.get(metric.metric_id, metric.child_metric_ids)

    def evaluate(self, metric_id: str, window_range: WindowRange) -> Aggregate:
        """
        Aggregate one metric over a window range.

        Raises:
            CyclicRollupError: If the metric is already on the resolution path
            RollupTooDeep: If nesting exceeds the configured maximum
            MetricNotFound: If the metric is not in the catalog
            ScorecardTimeout: If the request deadline passes
        """
        key = (metric_id, window_range)
        if key in self._memo:
            return self._memo[key]

        if metric_id in self._path:
            cycle = self._path[self._path.index(metric_id):] + [metric_id]
            raise CyclicRollupError(cycle)

        depth = len(self._path)
        if depth > self.context.max_depth:
            raise RollupTooDeep(metric_id, depth, self.context.max_depth)

        metric = self.context.metrics.get(metric_id)
        if metric is None:
            raise MetricNotFound(metric_id)

        self.context.deadline.check()

        self._path.append(metric_id)
        try:
            if metric.is_rollup:
                inputs = self.resolve_rollup_inputs(metric, window_range)
            else:
                inputs = self.context.observations.get(metric_id, [])
            result = evaluate(metric, window_range, inputs)
        finally:
            self._path.pop()

        self._memo[key] = result
        return result

    def resolve_rollup_inputs(
        self, metric: Metric, window_range: WindowRange
    ) -> list[ChildValue]:
        """
        Child values of a rollup for the parent's window range.

        Children without data are left out so they do not drag averages
        or minimums toward zero.
        """
        values = []
        for child_id in self.child_ids(metric):
            child = self.evaluate(child_id, window_range)
            if is_no_data(child.value):
                continue
            values.append(
                ChildValue(metric_id=child_id, value=child.value, observed_at=child.observed_at)
            )

        logger.debug(
            "rollup_inputs_resolved",
            metric_id=metric.metric_id,
            children=len(self.child_ids(metric)),
            with_data=len(values),
        )
        return values
