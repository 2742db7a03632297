"""
Window aggregator.

Reduces a metric's inputs for one window range to a single value or
``NO_DATA``. Leaf metrics reduce raw observations; rollup metrics reduce
already-resolved child values with the parent's own aggregation mode.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from scorecard.models.enums import AggregationMode
from scorecard.models.metrics import Metric, Observation
from scorecard.models.results import NO_DATA, ChildValue, MaybeValue, WindowRange

POINT_MODES = (AggregationMode.LATEST, AggregationMode.MANUAL)


@dataclass(frozen=True)
class Aggregate:
    """Aggregated value plus the inputs that produced it."""

    value: MaybeValue
    observed_at: Optional[datetime] = None
    input_count: int = 0


def _reduce(mode: AggregationMode, values: list[float]) -> MaybeValue:
    if mode == AggregationMode.SUM:
        return math.fsum(values)
    if not values:
        return NO_DATA
    if mode == AggregationMode.AVERAGE:
        return math.fsum(values) / len(values)
    if mode == AggregationMode.MIN:
        return min(values)
    if mode == AggregationMode.MAX:
        return max(values)
    raise ValueError(f"Unsupported reduction mode: {mode}")


def _evaluate_observations(
    metric: Metric, window_range: WindowRange, observations: Sequence[Observation]
) -> Aggregate:
    if metric.aggregation in POINT_MODES:
        candidates = [
            (obs.recorded_at, obs.written_at or obs.recorded_at, position, obs)
            for position, obs in enumerate(observations)
            if obs.recorded_at <= window_range.end
        ]
        if not candidates:
            return Aggregate(NO_DATA)
        # Same recorded_at: the later ledger write wins
        latest = max(candidates, key=lambda c: c[:3])[3]
        return Aggregate(latest.value, latest.recorded_at, 1)

    in_range = [obs for obs in observations if window_range.contains(obs.recorded_at)]
    value = _reduce(metric.aggregation, [obs.value for obs in in_range])
    observed_at = max((obs.recorded_at for obs in in_range), default=None)
    return Aggregate(value, observed_at, len(in_range))


def _evaluate_children(metric: Metric, children: Sequence[ChildValue]) -> Aggregate:
    observed_at = max(
        (c.observed_at for c in children if c.observed_at is not None), default=None
    )
    if metric.aggregation == AggregationMode.LATEST:
        if not children:
            return Aggregate(NO_DATA)
        # Child order must not matter, so ties fall back to metric_id
        pick = max(
            children,
            key=lambda c: (c.observed_at is not None, c.observed_at or datetime.min, c.metric_id),
        )
        return Aggregate(pick.value, pick.observed_at, len(children))

    value = _reduce(metric.aggregation, [c.value for c in children])
    return Aggregate(value, observed_at, len(children))


def evaluate(metric: Metric, window_range: WindowRange, inputs: Sequence) -> Aggregate:
    """
    Aggregate inputs for one metric and window.

    Args:
        metric: Metric definition (aggregation mode and rollup flag)
        window_range: Half-open range to aggregate over
        inputs: Observations for leaf metrics, child values for rollups

    Returns:
        Aggregate with the value (or NO_DATA), latest contributing instant
        and number of contributing inputs
    """
    if metric.is_rollup:
        return _evaluate_children(metric, inputs)
    return _evaluate_observations(metric, window_range, inputs)


def aggregate(metric: Metric, window_range: WindowRange, inputs: Sequence) -> MaybeValue:
    """Aggregated value only. Empty sums are 0; other empty reductions are NO_DATA."""
    return evaluate(metric, window_range, inputs).value
