"""
In-memory storage implementation.

Keeps every record in process dictionaries behind a lock. Used by the
test suite and for demos; nothing survives a restart.
"""

import threading
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

import structlog

from scorecard.models.metrics import Metric, Observation, OrgNode
from scorecard.utils.timeutils import ensure_aware

from .base import StorageBackend

logger = structlog.get_logger(__name__)


class InMemoryStorage(StorageBackend):
    """
    Dictionary-backed storage backend.

    Attributes:
        _metrics: Metric definitions by id
        _nodes: Org nodes by id
        _observations: Ledger rows per metric as (sequence, observation)
        clock: Source of the accept instant stamped on appends
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        if clock is not None:
            self.clock = clock
        self._lock = threading.Lock()
        self._metrics: dict[str, Metric] = {}
        self._nodes: dict[str, OrgNode] = {}
        self._observations: dict[str, list[tuple[int, Observation]]] = {}
        self._sequence = 0

    def write_metric(self, metric: Metric) -> str:
        with self._lock:
            self._metrics[metric.metric_id] = metric
        logger.debug("metric_written", metric_id=metric.metric_id)
        return metric.metric_id

    def read_metric(self, metric_id: str) -> Optional[Metric]:
        return self._metrics.get(metric_id)

    def read_metrics(self, metric_ids: Optional[Sequence[str]] = None) -> list[Metric]:
        ids = sorted(self._metrics) if metric_ids is None else sorted(set(metric_ids))
        return [self._metrics[i] for i in ids if i in self._metrics]

    def read_metrics_in_group(self, benchmark_group: str) -> list[Metric]:
        return sorted(
            (m for m in self._metrics.values() if m.benchmark_group == benchmark_group),
            key=lambda m: m.metric_id,
        )

    def get_children(self, metric_id: str) -> list[str]:
        metric = self._metrics.get(metric_id)
        return list(metric.child_metric_ids) if metric else []

    def write_node(self, node: OrgNode) -> str:
        with self._lock:
            self._nodes[node.node_id] = node
        return node.node_id

    def read_node(self, node_id: str) -> Optional[OrgNode]:
        return self._nodes.get(node_id)

    def append_observations(self, observations: Iterable[Observation]) -> int:
        batch = self._validate_append(observations)
        with self._lock:
            for obs in batch:
                self._sequence += 1
                self._observations.setdefault(obs.metric_id, []).append((self._sequence, obs))
        logger.debug("observations_appended", count=len(batch))
        return len(batch)

    def fetch_observations(
        self, metric_id: str, since: Optional[datetime] = None
    ) -> list[Observation]:
        rows = [
            (obs.recorded_at, obs.written_at, seq, obs)
            for seq, obs in self._observations.get(metric_id, [])
            if since is None or obs.recorded_at >= since
        ]
        rows.sort(key=lambda r: r[:3])
        return [r[3] for r in rows]

    def exclude_observation(self, observation_id: str, excluded_at: datetime) -> bool:
        excluded_at = ensure_aware(excluded_at)
        with self._lock:
            for rows in self._observations.values():
                for index, (seq, obs) in enumerate(rows):
                    if obs.observation_id != observation_id:
                        continue
                    if obs.excluded_at is not None:
                        return False
                    rows[index] = (seq, obs.model_copy(update={"excluded_at": excluded_at}))
                    logger.info("observation_excluded", observation_id=observation_id)
                    return True
        return False

    def clear_for_testing(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._nodes.clear()
            self._observations.clear()
            self._sequence = 0
