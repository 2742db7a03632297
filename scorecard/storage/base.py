"""
Abstract storage interface for the scorecard engine.

The engine only reads: metric definitions, the metric hierarchy, the org
tree and the observation ledger. Writes exist for fixtures and for the
external collaborators that own those records (manual entry, sync jobs,
org-chart CRUD). Implementations can be swapped without changing engine
code.

The observation ledger is append-only. Values are never updated in place;
a correction is a new observation, and a retraction is a soft exclusion
stamped with the instant it happened so that past queries stay stable.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from scorecard.models.base import DerivedModel
from scorecard.models.metrics import Metric, Observation, OrgNode
from scorecard.utils.timeutils import ensure_aware, utcnow


class StorageError(Exception):
    """Base exception for all storage operation failures."""

    pass


class LedgerWriteError(StorageError, ValueError):
    """An append the observation ledger refuses to accept."""

    pass


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Storage implementations should ensure:
    - Thread safety for concurrent readers
    - Observations returned in ledger order (recorded_at, then write order)
    - Rejection of derived models and rollup targets on append
    - written_at stamped with the accept instant when the writer left it unset
    - StorageError wrapping for backend failures
    """

    clock: Callable[[], datetime] = staticmethod(utcnow)

    # =========================================================================
    # Metric Catalog
    # =========================================================================

    @abstractmethod
    def write_metric(self, metric: Metric) -> str:
        """
        Create or replace a metric definition.

        Args:
            metric: Metric definition; child references are stored as the
                hierarchy edges returned by get_children

        Returns:
            The metric_id

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def read_metric(self, metric_id: str) -> Optional[Metric]:
        """Read one metric definition, None if absent."""
        pass

    @abstractmethod
    def read_metrics(self, metric_ids: Optional[Sequence[str]] = None) -> list[Metric]:
        """
        Read metric definitions.

        Args:
            metric_ids: Ids to read (default: all). Unknown ids are skipped.

        Returns:
            Metrics found, ordered by metric_id
        """
        pass

    @abstractmethod
    def read_metrics_in_group(self, benchmark_group: str) -> list[Metric]:
        """Read every metric sharing a benchmark group, ordered by metric_id."""
        pass

    @abstractmethod
    def get_children(self, metric_id: str) -> list[str]:
        """Ordered child metric ids of a rollup; empty for leaves and unknown ids."""
        pass

    # =========================================================================
    # Organizational Tree
    # =========================================================================

    @abstractmethod
    def write_node(self, node: OrgNode) -> str:
        """Create or replace an org node. Returns the node_id."""
        pass

    @abstractmethod
    def read_node(self, node_id: str) -> Optional[OrgNode]:
        """Read one org node, None if absent."""
        pass

    def get_ancestors(self, node_id: str) -> list[str]:
        """
        Ancestor node ids, nearest first.

        Stops at the root, at a missing parent, or when a parent repeats
        (a malformed tree must not hang the caller).
        """
        ancestors: list[str] = []
        seen = {node_id}
        node = self.read_node(node_id)
        while node is not None and node.parent_id is not None:
            if node.parent_id in seen:
                break
            seen.add(node.parent_id)
            ancestors.append(node.parent_id)
            node = self.read_node(node.parent_id)
        return ancestors

    # =========================================================================
    # Observation Ledger
    # =========================================================================

    def _validate_append(self, observations: Iterable[Observation]) -> list[Observation]:
        """
        Check a batch before it reaches the ledger.

        Raises:
            LedgerWriteError: For derived models, unknown metrics or rollup targets

        Returns:
            The batch, with written_at set to the accept instant where missing
        """
        batch = list(observations)
        for obs in batch:
            if isinstance(obs, DerivedModel) or not isinstance(obs, Observation):
                raise LedgerWriteError(
                    f"Only observations can be appended, got {type(obs).__name__}"
                )
            metric = self.read_metric(obs.metric_id)
            if metric is None:
                raise LedgerWriteError(f"Unknown metric: {obs.metric_id}")
            if metric.is_rollup:
                raise LedgerWriteError(
                    f"Metric {obs.metric_id} is a rollup; its value is always derived"
                )
        accepted_at = ensure_aware(self.clock())
        return [
            obs if obs.written_at is not None else obs.model_copy(update={"written_at": accepted_at})
            for obs in batch
        ]

    @abstractmethod
    def append_observations(self, observations: Iterable[Observation]) -> int:
        """
        Append observations to the ledger.

        Args:
            observations: New observations

        Returns:
            Number of observations written

        Raises:
            LedgerWriteError: If any observation is rejected (nothing is written)
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def fetch_observations(
        self, metric_id: str, since: Optional[datetime] = None
    ) -> list[Observation]:
        """
        Read a metric's observations, excluded ones included.

        Args:
            metric_id: Metric to read
            since: Lower bound on recorded_at (inclusive), None for all

        Returns:
            Observations ordered by recorded_at, then written_at, then
            ledger write order. Callers filter exclusions against their as_of.
        """
        pass

    @abstractmethod
    def exclude_observation(self, observation_id: str, excluded_at: datetime) -> bool:
        """
        Soft-exclude an observation from the given instant on.

        Returns:
            True if the observation exists and was not already excluded
        """
        pass

    @abstractmethod
    def clear_for_testing(self) -> None:
        """Remove all records. For tests only."""
        pass
