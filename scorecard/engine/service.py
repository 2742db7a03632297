"""
Scorecard service.

Computes value, status and trend for a batch of (metric, window) pairs.
All inputs are fetched once per request: the metric catalog reachable
through rollups, the hierarchy snapshot, and one observation list per
leaf metric. Structural problems fail only their own item; a timeout
fails the whole request.
"""

import time
from datetime import datetime
from typing import Optional, Sequence, Union

import structlog

from scorecard.config import Settings, get_settings
from scorecard.models.enums import AggregationMode, Provenance, ResultState, WindowKind
from scorecard.models.metrics import Metric, Observation
from scorecard.models.results import (
    ScorecardReport,
    WindowRange,
    WindowResult,
    is_no_data,
)
from scorecard.storage.base import StorageBackend
from scorecard.utils.timeutils import ensure_aware, get_timezone, utcnow

from .aggregator import POINT_MODES, Aggregate
from .classifier import classify
from .errors import InvalidWindowKind, MetricNotFound, StructuralError
from .rollup import Deadline, RollupContext, RollupResolver
from .trend import trend
from .windows import parse_window_kind, previous, resolve

logger = structlog.get_logger(__name__)

# Window label used when a missing metric has no bound windows to report on
DEFAULT_WINDOW_LABEL = "default"


def _provenance(metric: Metric) -> Provenance:
    if metric.is_rollup:
        return Provenance.ROLLUP
    if metric.aggregation == AggregationMode.MANUAL:
        return Provenance.MANUAL
    return Provenance.COMPUTED


def _as_float(value) -> Optional[float]:
    return None if is_no_data(value) else float(value)


class ScorecardService:
    """
    Batch scorecard computation over a storage backend.

    Usage:
        service = ScorecardService(storage)
        report = service.compute_scorecard(["revenue", "nps"], ["week", "mtd"])
    """

    def __init__(self, storage: StorageBackend, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()
        self.tz = get_timezone(self.settings.default_timezone)
        self.logger = structlog.get_logger()

    # =========================================================================
    # Snapshot loading
    # =========================================================================

    def load_catalog(
        self, metric_ids: Sequence[str]
    ) -> tuple[dict[str, Metric], dict[str, list[str]]]:
        """
        Load requested metrics and everything reachable through rollups.

        Breadth-first over ``get_children``; each metric and each child
        list is read once even when the hierarchy shares subtrees.

        Returns:
            (metrics by id, child ids by rollup id)
        """
        metrics: dict[str, Metric] = {}
        children: dict[str, list[str]] = {}
        seen: set[str] = set()
        frontier = list(dict.fromkeys(metric_ids))

        while frontier:
            seen.update(frontier)
            for metric in self.storage.read_metrics(frontier):
                metrics[metric.metric_id] = metric

            next_frontier: list[str] = []
            for metric_id in frontier:
                metric = metrics.get(metric_id)
                if metric is None or not metric.is_rollup:
                    continue
                child_ids = self.storage.get_children(metric_id)
                children[metric_id] = child_ids
                for child_id in child_ids:
                    if child_id not in seen and child_id not in next_frontier:
                        next_frontier.append(child_id)
            frontier = next_frontier

        return metrics, children

    def load_observations(
        self,
        metrics: dict[str, Metric],
        since: Optional[datetime],
        as_of: datetime,
    ) -> dict[str, list[Observation]]:
        """
        Fetch visible observations once per leaf metric.

        Point-in-time metrics (latest, manual) read the whole ledger since
        their value may predate the window start.
        """
        observations: dict[str, list[Observation]] = {}
        for metric_id, metric in metrics.items():
            if metric.is_rollup:
                continue
            metric_since = None if metric.aggregation in POINT_MODES else since
            fetched = self.storage.fetch_observations(metric_id, since=metric_since)
            observations[metric_id] = [obs for obs in fetched if obs.visible_at(as_of)]
        return observations

    # =========================================================================
    # Computation
    # =========================================================================

    def compute_scorecard(
        self,
        metric_ids: Sequence[str],
        window_kinds: Optional[Sequence[Union[str, WindowKind]]] = None,
        as_of: Optional[datetime] = None,
        timeout_seconds: Optional[float] = None,
    ) -> ScorecardReport:
        """
        Compute window results for every requested (metric, window) pair.

        Args:
            metric_ids: Metrics to report on, in output order
            window_kinds: Windows to compute for every metric; None uses each
                metric's own bound windows
            as_of: Instant to pin the query to (default: now). Observations
                recorded or written later, and exclusions made later, are
                ignored, so a past as_of always yields the same report.
            timeout_seconds: Request deadline (default: settings)

        Returns:
            ScorecardReport with one result per pair, in request order

        Raises:
            ScorecardTimeout: If the deadline passes
            StorageError: If the backend fails
        """
        started = time.perf_counter()
        as_of = ensure_aware(as_of, self.tz) if as_of is not None else utcnow()
        deadline = Deadline(
            timeout_seconds if timeout_seconds is not None else self.settings.request_timeout_seconds
        )

        metrics, children = self.load_catalog(metric_ids)
        pairs = self._plan(metric_ids, metrics, window_kinds)

        since: Optional[datetime] = None
        for _, window in pairs:
            if isinstance(window, WindowKind):
                current = resolve(window, as_of, self.tz)
                start = previous(window, current, self.tz).start
                since = start if since is None else min(since, start)

        resolver = RollupResolver(
            RollupContext(
                metrics=metrics,
                children=children,
                observations=self.load_observations(metrics, since, as_of),
                max_depth=self.settings.rollup_max_depth,
                deadline=deadline,
            )
        )

        results = []
        for metric_id, window in pairs:
            deadline.check()
            results.append(self._compute_item(resolver, metrics, metric_id, window, as_of))

        report = ScorecardReport(as_of=as_of, results=results)
        self.logger.info(
            "scorecard_computed",
            metrics=len(metric_ids),
            total=report.total,
            failed=report.failed,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return report

    def _plan(
        self,
        metric_ids: Sequence[str],
        metrics: dict[str, Metric],
        window_kinds: Optional[Sequence[Union[str, WindowKind]]],
    ) -> list[tuple[str, Union[str, WindowKind]]]:
        """Expand the request into ordered (metric, window) pairs."""
        parsed: Optional[list[Union[str, WindowKind]]] = None
        if window_kinds is not None:
            parsed = []
            for raw in window_kinds:
                try:
                    parsed.append(parse_window_kind(raw))
                except InvalidWindowKind:
                    parsed.append(str(raw))

        pairs: list[tuple[str, Union[str, WindowKind]]] = []
        for metric_id in metric_ids:
            if parsed is not None:
                pairs.extend((metric_id, window) for window in parsed)
            elif metric_id in metrics:
                pairs.extend((metric_id, window) for window in metrics[metric_id].windows)
            else:
                pairs.append((metric_id, DEFAULT_WINDOW_LABEL))
        return pairs

    def _compute_item(
        self,
        resolver: RollupResolver,
        metrics: dict[str, Metric],
        metric_id: str,
        window: Union[str, WindowKind],
        as_of: datetime,
    ) -> WindowResult:
        metric = metrics.get(metric_id)
        label = window.value if isinstance(window, WindowKind) else window
        try:
            if metric is None:
                raise MetricNotFound(metric_id)
            kind = parse_window_kind(window)
            current_range = resolve(kind, as_of, self.tz)
            previous_range = previous(kind, current_range, self.tz)
            current = resolver.evaluate(metric_id, current_range)
            prior = resolver.evaluate(metric_id, previous_range)
        except StructuralError as e:
            self.logger.warning(
                "scorecard_item_unavailable",
                metric_id=metric_id,
                window=label,
                code=e.code,
                error=str(e),
            )
            return WindowResult.unavailable(
                metric_id=metric_id,
                window=label,
                as_of=as_of,
                code=e.code,
                message=str(e),
                metric_name=metric.name if metric else None,
            )

        return self._build_result(metric, kind, current_range, current, prior, as_of)

    def _build_result(
        self,
        metric: Metric,
        kind: WindowKind,
        current_range: WindowRange,
        current: Aggregate,
        prior: Aggregate,
        as_of: datetime,
    ) -> WindowResult:
        goal = metric.goal_for(kind)
        status = classify(
            current.value,
            goal=goal,
            thresholds=metric.thresholds_for(kind),
            direction=metric.direction,
            goal_band=self.settings.goal_band,
        )
        movement = trend(
            current.value, prior.value, self.settings.trend_epsilon_for(metric.unit)
        )
        value = _as_float(current.value)

        return WindowResult(
            metric_id=metric.metric_id,
            metric_name=metric.name,
            window=kind.value,
            state=ResultState.NO_DATA if value is None else ResultState.OK,
            value=value,
            previous_value=_as_float(prior.value),
            status=status,
            trend=movement,
            provenance=_provenance(metric),
            unit=metric.unit,
            goal=goal,
            as_of=as_of,
            observed_at=current.observed_at,
            range_start=current_range.start,
            range_end=current_range.end,
        )
