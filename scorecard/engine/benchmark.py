"""
Benchmark engine.

Ranks a subject's metric value against a population of peers (same
benchmark group, optionally constrained to an org subtree) and buckets
item resolution times into fixed latency bands.
"""

import math
from collections import Counter
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import structlog
from scipy import stats

from scorecard.config import Settings, get_settings
from scorecard.models.benchmarks import (
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
from scorecard.models.enums import ResolutionBand, ResultState, WindowKind
from scorecard.models.metrics import Metric
from scorecard.storage.base import StorageBackend
from scorecard.utils.timeutils import ensure_aware, get_timezone, utcnow

from .errors import MetricNotFound
from .service import ScorecardService
from .windows import parse_window_kind

logger = structlog.get_logger(__name__)

# Inclusive upper edge of each band, in milliseconds
BUCKET_THRESHOLDS_MS = (
    (ResolutionBand.UNDER_1H, 3_600_000),
    (ResolutionBand.H1_TO_4, 14_400_000),
    (ResolutionBand.H4_TO_24, 86_400_000),
    (ResolutionBand.D1_TO_3, 259_200_000),
)

CLIENT_VOLUME_LIMIT = 20
UNCATEGORIZED = "Uncategorized"
UNKNOWN = "Unknown"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percent_of(count: int, total: int) -> int:
    """``100 * count / total`` rounded half-up in integer arithmetic."""
    if total <= 0:
        return 0
    return (200 * count + total) // (2 * total)


# =============================================================================
# Population statistics
# =============================================================================


def benchmark_population(values: Sequence[float]) -> tuple[Optional[float], Optional[float]]:
    """
    Mean and maximum of a peer population.

    Returns:
        (mean, max), both None for an empty population
    """
    if not values:
        return None, None
    arr = np.asarray(values, dtype=float)
    return float(np.mean(arr)), float(np.max(arr))


def percentile_of(subject: float, values: Sequence[float]) -> int:
    """
    Percentage of the population strictly below the subject.

    ``100 * count(v < subject) / n`` rounded half-up. An empty population
    ranks every subject at 0.
    """
    if not values:
        return 0
    rank = stats.percentileofscore(np.asarray(values, dtype=float), subject, kind="strict")
    # The float rank can land just under an exact half; round on the count
    below = int(round(float(rank) * len(values) / 100))
    return percent_of(below, len(values))


def compare_to_population(
    metric: str, subject: Optional[float], peers: Sequence[float]
) -> BenchmarkComparison:
    """One comparison-table row: subject, team average, leader, percentile."""
    mean, leader = benchmark_population(peers)
    return BenchmarkComparison(
        metric=metric,
        subject_value=subject,
        team_average=mean,
        leader=leader,
        percentile=percentile_of(subject, peers) if subject is not None else 0,
    )


def percent_change(current: Optional[float], previous: Optional[float]) -> float:
    """Relative change in percent; 0 when either side is missing or previous is 0."""
    if current is None or previous is None or previous == 0:
        return 0.0
    return (current - previous) / previous * 100


# =============================================================================
# Resolution distribution
# =============================================================================


def bucket(duration_ms: Union[int, float]) -> ResolutionBand:
    """
    Latency band for a duration. Each band includes its upper edge.

    Raises:
        ValueError: If the duration is negative
    """
    if duration_ms < 0:
        raise ValueError(f"Duration must not be negative: {duration_ms}")
    for band, upper in BUCKET_THRESHOLDS_MS:
        if duration_ms <= upper:
            return band
    return ResolutionBand.OVER_3D


def compute_resolution_buckets(items: Sequence[ResolvableItem]) -> list[ResolutionBucket]:
    """
    Distribution of closed items over the latency bands.

    Only closed items with a positive duration count. Percentages are of
    that eligible count, rounded half-up. All bands are reported in order.
    """
    counts = {band: 0 for band in ResolutionBand}
    eligible = 0
    for item in items:
        if not item.is_eligible:
            continue
        eligible += 1
        counts[bucket(item.duration_ms)] += 1

    return [
        ResolutionBucket(
            bucket=band,
            count=count,
            percentage=percent_of(count, eligible),
        )
        for band, count in counts.items()
    ]


def _mean_positive(values: Iterable[Optional[int]]) -> Optional[int]:
    positive = [v for v in values if v is not None and v > 0]
    if not positive:
        return None
    return round_half_up(float(np.mean(positive)))


def _mean_duration(items: Sequence[ResolvableItem]) -> Optional[int]:
    return _mean_positive(i.duration_ms for i in items)


def _mean_first_response(items: Sequence[ResolvableItem]) -> Optional[int]:
    return _mean_positive(i.first_response_ms for i in items)


def summarize_owner_workload(items: Sequence[ResolvableItem]) -> list[OwnerWorkload]:
    """Items, open items and mean resolution time per owner, busiest first."""
    by_owner: dict[str, list[ResolvableItem]] = {}
    for item in items:
        if item.owner_id:
            by_owner.setdefault(item.owner_id, []).append(item)

    workloads = [
        OwnerWorkload(
            owner_id=owner_id,
            item_count=len(owned),
            open_count=sum(1 for i in owned if not i.is_closed),
            avg_resolution_ms=_mean_duration(owned),
        )
        for owner_id, owned in by_owner.items()
    ]
    return sorted(workloads, key=lambda w: (-w.item_count, w.owner_id))


def summarize_daily_volume(
    items: Sequence[ResolvableItem],
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> list[DailyVolume]:
    """
    Items created per local calendar day.

    When both period bounds are given, every day from the start date
    through the end date is listed, with 0 for days without items. Items
    without ``created_at`` are not counted.
    """
    tz = tz or get_timezone(get_settings().default_timezone)
    counts: dict[date, int] = {}

    if period_start is not None and period_end is not None:
        day = ensure_aware(period_start).astimezone(tz).date()
        last = ensure_aware(period_end).astimezone(tz).date()
        while day <= last:
            counts[day] = 0
            day += timedelta(days=1)

    for item in items:
        if item.created_at is None:
            continue
        day = ensure_aware(item.created_at).astimezone(tz).date()
        counts[day] = counts.get(day, 0) + 1

    return [DailyVolume(day=day, count=count) for day, count in sorted(counts.items())]


def summarize_categories(items: Sequence[ResolvableItem]) -> list[CategoryShare]:
    """Items per category, largest first; ties keep first-seen order."""
    counts = Counter(item.category or UNCATEGORIZED for item in items)
    return [
        CategoryShare(category=category, count=count, percentage=percent_of(count, len(items)))
        for category, count in counts.most_common()
    ]


def summarize_sources(items: Sequence[ResolvableItem]) -> list[SourceShare]:
    """Items per intake channel, largest first; ties keep first-seen order."""
    counts = Counter(item.source or UNKNOWN for item in items)
    return [
        SourceShare(source=source, count=count, percentage=percent_of(count, len(items)))
        for source, count in counts.most_common()
    ]


def summarize_client_volume(
    items: Sequence[ResolvableItem], limit: int = CLIENT_VOLUME_LIMIT
) -> list[ClientVolume]:
    """Busiest (client, program) pairs, at most ``limit`` of them."""
    counts = Counter((item.client_name or UNKNOWN, item.program_name or None) for item in items)
    return [
        ClientVolume(client_name=client, program_name=program, item_count=count)
        for (client, program), count in counts.most_common(limit)
    ]


def summarize_resolution(
    current_items: Sequence[ResolvableItem],
    previous_items: Sequence[ResolvableItem] = (),
    period_start: Optional[datetime] = None,
    period_end: Optional[datetime] = None,
    tz: Optional[tzinfo] = None,
) -> ResolutionSummary:
    """
    Period resolution summary with change against the previous period.

    Args:
        current_items: Items created in the current period
        previous_items: Items created in the previous period
        period_start: Start of the current period, for zero-filled daily volume
        period_end: End of the current period
        tz: Timezone of the calendar days; defaults to the configured one

    Returns:
        ResolutionSummary with counts, mean time-to-close and first reply,
        percent changes, latency buckets, per-owner workload, daily volume
        and category, source and client breakdowns
    """
    avg_current = _mean_duration(current_items)
    avg_previous = _mean_duration(previous_items)
    first_current = _mean_first_response(current_items)
    first_previous = _mean_first_response(previous_items)
    return ResolutionSummary(
        total=len(current_items),
        closed=sum(1 for i in current_items if i.is_eligible),
        open=sum(1 for i in current_items if not i.is_closed),
        avg_time_to_close_ms=avg_current,
        previous_total=len(previous_items),
        previous_avg_time_to_close_ms=avg_previous,
        total_change_pct=round(percent_change(len(current_items), len(previous_items)), 1),
        avg_time_to_close_change_pct=round(percent_change(avg_current, avg_previous), 1),
        avg_first_response_ms=first_current,
        previous_avg_first_response_ms=first_previous,
        avg_first_response_change_pct=round(percent_change(first_current, first_previous), 1),
        buckets=compute_resolution_buckets(current_items),
        owners=summarize_owner_workload(current_items),
        daily_volume=summarize_daily_volume(current_items, period_start, period_end, tz),
        categories=summarize_categories(current_items),
        sources=summarize_sources(current_items),
        clients=summarize_client_volume(current_items),
    )


# =============================================================================
# Peer benchmarks
# =============================================================================


class BenchmarkService:
    """
    Peer benchmarks for scorecard metrics.

    Peers are metrics sharing the subject's benchmark group. Their values
    come from the scorecard service for the same window and as_of, so a
    benchmark always agrees with the scorecard it sits next to.
    """

    def __init__(self, storage: StorageBackend, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()
        self.scorecards = ScorecardService(storage, self.settings)
        self.logger = structlog.get_logger()

    def _in_scope(self, metric: Metric, scope: str) -> bool:
        if metric.owner_node_id is None:
            return False
        if metric.owner_node_id == scope:
            return True
        return scope in self.storage.get_ancestors(metric.owner_node_id)

    def population(self, metric: Metric, population_scope: Optional[str] = None) -> list[Metric]:
        """Peer metrics for a subject, subject included, in stable id order."""
        if metric.benchmark_group:
            peers = {m.metric_id: m for m in self.storage.read_metrics_in_group(metric.benchmark_group)}
        else:
            peers = {}
        peers.setdefault(metric.metric_id, metric)
        if population_scope is not None:
            peers = {pid: m for pid, m in peers.items() if self._in_scope(m, population_scope)}
        return [peers[pid] for pid in sorted(peers)]

    def compute_benchmarks(
        self,
        metric_id: str,
        population_scope: Optional[str] = None,
        window: Optional[Union[str, WindowKind]] = None,
        as_of: Optional[datetime] = None,
    ) -> BenchmarkSnapshot:
        """
        Benchmark one metric against its peer population.

        Args:
            metric_id: Subject metric
            population_scope: Org node whose subtree bounds the population
            window: Window to compare over (default: subject's primary window)
            as_of: Instant to pin the query to (default: now)

        Returns:
            BenchmarkSnapshot; peers without data are left out of the population

        Raises:
            MetricNotFound: If the subject metric does not exist
            InvalidWindowKind: If ``window`` is not a known kind
            ScorecardTimeout: If peer computation exceeds the deadline
        """
        metric = self.storage.read_metric(metric_id)
        if metric is None:
            raise MetricNotFound(metric_id)

        kind = parse_window_kind(window) if window is not None else metric.primary_window
        tz = get_timezone(self.settings.default_timezone)
        as_of = ensure_aware(as_of, tz) if as_of is not None else utcnow()

        peers = self.population(metric, population_scope)
        peer_ids = [m.metric_id for m in peers]
        if metric_id not in peer_ids:
            peer_ids.append(metric_id)
        report = self.scorecards.compute_scorecard(peer_ids, window_kinds=[kind], as_of=as_of)

        in_population = {m.metric_id for m in peers}
        values: list[float] = []
        subject_value: Optional[float] = None
        for result in report.results:
            if result.state == ResultState.UNAVAILABLE:
                self.logger.warning(
                    "benchmark_peer_unavailable",
                    metric_id=metric_id,
                    peer_id=result.metric_id,
                    code=result.error.code,
                )
                continue
            if result.value is None:
                continue
            if result.metric_id == metric_id:
                subject_value = result.value
            if result.metric_id in in_population:
                values.append(result.value)

        mean, leader = benchmark_population(values)
        percentile = percentile_of(subject_value, values) if subject_value is not None else 0

        self.logger.info(
            "benchmark_computed",
            metric_id=metric_id,
            benchmark_group=metric.benchmark_group,
            scope=population_scope,
            window=kind.value,
            population_size=len(values),
        )

        return BenchmarkSnapshot(
            metric_id=metric_id,
            benchmark_group=metric.benchmark_group,
            scope_node_id=population_scope,
            window=kind.value,
            as_of=as_of,
            subject_value=subject_value,
            population_values=values,
            population_size=len(values),
            mean=mean,
            max=leader,
            percentile=percentile,
            comparison=BenchmarkComparison(
                metric=metric.name,
                subject_value=subject_value,
                team_average=mean,
                leader=leader,
                percentile=percentile,
            ),
        )
