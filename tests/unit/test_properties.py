"""
Property-based tests using Hypothesis for the scorecard engine.

These tests check invariants that must hold for any input: well-formed
window ranges, order-independent aggregation, monotonic classification
and bounded benchmark ranks.
"""

import math
import random
from datetime import datetime, timedelta, timezone
from fractions import Fraction

import hypothesis.strategies as st
from hypothesis import assume, given, settings

from scorecard.engine.aggregator import aggregate
from scorecard.engine.benchmark import bucket, percentile_of
from scorecard.engine.classifier import classify
from scorecard.engine.rollup import RollupContext, RollupResolver
from scorecard.engine.trend import trend
from scorecard.engine.windows import previous, resolve
from scorecard.models.enums import AggregationMode, Direction, ResolutionBand, Status, Trend, WindowKind
from scorecard.models.metrics import Thresholds
from tests.conftest import NOW, make_metric, make_observation, make_rollup

instants = st.datetimes(
    min_value=datetime(1990, 1, 1),
    max_value=datetime(2100, 1, 1),
    timezones=st.just(timezone.utc),
)
finite = st.floats(min_value=-1e9, max_value=1e9, allow_nan=False, allow_infinity=False)
STATUS_RANK = {Status.OFF_TRACK: 0, Status.AT_RISK: 1, Status.ON_TRACK: 2}


# =============================================================================
# Window resolver
# =============================================================================


@given(kind=st.sampled_from(list(WindowKind)), now=instants)
@settings(max_examples=200)
def test_prop_resolve_start_before_end(kind, now):
    """Every window kind yields a non-empty half-open range for any instant."""
    r = resolve(kind, now)
    assert r.start < r.end


@given(now=instants)
def test_prop_week_starts_monday_and_contains_now(now):
    r = resolve(WindowKind.WEEK, now)
    assert r.start.weekday() == 0
    assert r.start.hour == r.start.minute == 0
    assert r.contains(now)
    assert r.length == timedelta(days=7)


@given(kind=st.sampled_from([WindowKind.MTD, WindowKind.QTD, WindowKind.YTD]), now=instants)
def test_prop_to_date_windows_contain_now(kind, now):
    assert resolve(kind, now).contains(now)


@given(kind=st.sampled_from(list(WindowKind)), now=instants)
def test_prop_previous_ends_at_or_before_current_start(kind, now):
    """Previous periods never overlap the current one."""
    current = resolve(kind, now)
    prior = previous(kind, current)
    assert prior.start < prior.end <= current.start


# =============================================================================
# Aggregation and rollups
# =============================================================================


@given(
    values=st.lists(finite, max_size=30),
    mode=st.sampled_from(
        [AggregationMode.SUM, AggregationMode.AVERAGE, AggregationMode.MIN, AggregationMode.MAX]
    ),
    seed=st.integers(min_value=0, max_value=2**16),
)
def test_prop_aggregation_is_order_independent(values, mode, seed):
    window = resolve(WindowKind.WEEK, NOW)
    metric = make_metric(aggregation=mode)
    obs = [make_observation(value=v, recorded_at=NOW - timedelta(minutes=i)) for i, v in enumerate(values)]
    shuffled = obs[:]
    random.Random(seed).shuffle(shuffled)
    assert aggregate(metric, window, obs) == aggregate(metric, window, shuffled)


@given(
    values=st.lists(st.one_of(st.none(), finite), min_size=1, max_size=8),
    seed=st.integers(min_value=0, max_value=2**16),
)
def test_prop_rollup_is_idempotent_and_child_order_independent(values, seed):
    window = resolve(WindowKind.WEEK, NOW)
    child_ids = [f"c{i}" for i in range(len(values))]
    leaves = [make_metric(cid, aggregation=AggregationMode.AVERAGE) for cid in child_ids]
    observations = {
        cid: [make_observation(cid, v)] for cid, v in zip(child_ids, values) if v is not None
    }
    shuffled_ids = child_ids[:]
    random.Random(seed).shuffle(shuffled_ids)

    def run(order):
        parent = make_rollup("parent", order, aggregation=AggregationMode.AVERAGE)
        catalog = {m.metric_id: m for m in [parent, *leaves]}
        resolver = RollupResolver(RollupContext(metrics=catalog, observations=observations))
        first = resolver.evaluate("parent", window).value
        assert resolver.evaluate("parent", window).value is first
        return first

    assert run(child_ids) == run(shuffled_ids)


# =============================================================================
# Classification, trend and benchmarks
# =============================================================================


@given(
    a=finite,
    b=finite,
    red=st.floats(min_value=-1e6, max_value=1e6, allow_nan=False),
    gap=st.floats(min_value=1e-3, max_value=1e6, allow_nan=False),
)
def test_prop_classify_monotonic_higher_is_better(a, b, red, gap):
    """A larger value never gets a worse status."""
    assume(a <= b)
    thresholds = Thresholds(red=red, yellow=red + gap)
    assume(thresholds.red < thresholds.yellow)
    low = classify(a, thresholds=thresholds)
    high = classify(b, thresholds=thresholds)
    assert STATUS_RANK[low] <= STATUS_RANK[high]


@given(a=finite, b=finite, goal=finite)
def test_prop_classify_goal_monotonic_lower_is_better(a, b, goal):
    assume(a <= b)
    low = classify(a, goal=goal, direction=Direction.LOWER_IS_BETTER)
    high = classify(b, goal=goal, direction=Direction.LOWER_IS_BETTER)
    assert STATUS_RANK[low] >= STATUS_RANK[high]


@given(current=finite, previous_value=finite, epsilon=st.floats(min_value=0, max_value=1))
def test_prop_trend_matches_sign_of_change(current, previous_value, epsilon):
    """Up and down always agree with the sign of the change."""
    forward = trend(current, previous_value, epsilon)
    if forward == Trend.UP:
        assert current > previous_value
    elif forward == Trend.DOWN:
        assert current < previous_value


@given(subject=finite, values=st.lists(finite, max_size=50))
def test_prop_percentile_bounds(subject, values):
    assert 0 <= percentile_of(subject, values) <= 100


@given(below=st.integers(min_value=0, max_value=400), above=st.integers(min_value=0, max_value=400))
def test_prop_percentile_rounds_exact_share_half_up(below, above):
    assume(below + above > 0)
    values = [0.0] * below + [10.0] * above
    expected = math.floor(Fraction(100 * below, below + above) + Fraction(1, 2))
    assert percentile_of(5.0, values) == expected


@given(a=st.integers(min_value=0, max_value=10**10), b=st.integers(min_value=0, max_value=10**10))
def test_prop_bucket_is_monotonic(a, b):
    assume(a <= b)
    order = list(ResolutionBand)
    assert order.index(bucket(a)) <= order.index(bucket(b))
