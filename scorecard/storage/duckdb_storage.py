"""
DuckDB storage implementation for the scorecard engine.

Provides a local columnar backend for metric definitions, the metric
hierarchy, the org tree and the observation ledger.

Key features:
- Thread-local connections
- Idempotent schema creation
- Metric definitions stored as JSON alongside queryable columns
- Ledger write order kept in a sequence column for deterministic ties
- Timestamps stored as naive UTC and returned timezone-aware
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

import duckdb
import structlog

from scorecard.config import get_settings
from scorecard.models.metrics import Metric, Observation, OrgNode
from scorecard.utils.timeutils import ensure_aware

from .base import StorageBackend, StorageError

logger = structlog.get_logger(__name__)

TABLES = ["metric_observations", "metric_children", "metrics", "org_nodes"]


def _to_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc).replace(tzinfo=None)


def _from_db(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        threads: DuckDB worker threads per connection
        clock: Source of the accept instant stamped on appends
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(
        self,
        db_path: str = "./data/scorecard.duckdb",
        threads: int = 4,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
            threads: DuckDB thread count
            clock: Overrides the wall clock used to stamp written_at
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.threads = threads
        if clock is not None:
            self.clock = clock

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(
                    str(self.db_path), config={"threads": self.threads}
                )
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except duckdb.Error as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    @contextmanager
    def _transaction(self):
        """Run a block in one transaction, rolling back if it raises."""
        with self._get_connection() as conn:
            conn.begin()
            try:
                yield conn
            except Exception:
                conn.rollback()
                raise
            conn.commit()

    def _initialize_schema(self):
        """
        Create tables and indexes. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS metrics (
                            metric_id VARCHAR PRIMARY KEY,
                            name VARCHAR NOT NULL,
                            owner_node_id VARCHAR,
                            is_rollup BOOLEAN NOT NULL,
                            benchmark_group VARCHAR,
                            definition JSON NOT NULL
                        )
                        """
                    )
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS metric_children (
                            parent_metric_id VARCHAR NOT NULL,
                            child_metric_id VARCHAR NOT NULL,
                            position INTEGER NOT NULL
                        )
                        """
                    )
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS org_nodes (
                            node_id VARCHAR PRIMARY KEY,
                            parent_id VARCHAR,
                            name VARCHAR NOT NULL,
                            level INTEGER NOT NULL
                        )
                        """
                    )
                    conn.execute("CREATE SEQUENCE IF NOT EXISTS observation_seq START 1")
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS metric_observations (
                            observation_id VARCHAR PRIMARY KEY,
                            metric_id VARCHAR NOT NULL,
                            recorded_at TIMESTAMP NOT NULL,
                            written_at TIMESTAMP NOT NULL,
                            value DOUBLE NOT NULL,
                            source VARCHAR NOT NULL,
                            excluded_at TIMESTAMP,
                            notes VARCHAR,
                            seq BIGINT DEFAULT nextval('observation_seq')
                        )
                        """
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_observations_metric "
                        "ON metric_observations(metric_id, recorded_at)"
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_children_parent "
                        "ON metric_children(parent_metric_id)"
                    )
                    conn.execute(
                        "CREATE INDEX IF NOT EXISTS idx_metrics_group "
                        "ON metrics(benchmark_group)"
                    )

                    logger.info("duckdb_schema_initialized")
                    self._initialized = True

            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def clear_for_testing(self) -> None:
        """
        Delete all rows. Only honoured when TESTING=true.
        Allows each test to start with a clean slate.
        """
        if not get_settings().testing:
            logger.warning("clear_for_testing_ignored", reason="testing mode disabled")
            return
        try:
            with self._transaction() as conn:
                for table in TABLES:
                    conn.execute(f"DELETE FROM {table}")
        except duckdb.Error as e:
            logger.error("clear_for_testing_failed", error=str(e))
            raise StorageError(f"Failed to clear tables: {e}") from e

    # =========================================================================
    # Metric Catalog Implementation
    # =========================================================================

    def write_metric(self, metric: Metric) -> str:
        """Write metric definition and its child edges."""
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO metrics (
                        metric_id, name, owner_node_id, is_rollup, benchmark_group, definition
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        metric.metric_id,
                        metric.name,
                        metric.owner_node_id,
                        metric.is_rollup,
                        metric.benchmark_group,
                        metric.model_dump_json(),
                    ],
                )
                conn.execute(
                    "DELETE FROM metric_children WHERE parent_metric_id = ?",
                    [metric.metric_id],
                )
                if metric.child_metric_ids:
                    conn.executemany(
                        """
                        INSERT INTO metric_children (parent_metric_id, child_metric_id, position)
                        VALUES (?, ?, ?)
                        """,
                        [
                            [metric.metric_id, child_id, position]
                            for position, child_id in enumerate(metric.child_metric_ids)
                        ],
                    )
                logger.info("metric_written", metric_id=metric.metric_id)
                return metric.metric_id

        except duckdb.Error as e:
            logger.error("write_metric_failed", metric_id=metric.metric_id, error=str(e))
            raise StorageError(f"Failed to write metric: {e}") from e

    def read_metric(self, metric_id: str) -> Optional[Metric]:
        """Read one metric definition."""
        metrics = self.read_metrics([metric_id])
        return metrics[0] if metrics else None

    def read_metrics(self, metric_ids: Optional[Sequence[str]] = None) -> list[Metric]:
        """Read metric definitions, all of them when no ids are given."""
        try:
            with self._get_connection() as conn:
                query = "SELECT definition FROM metrics WHERE 1=1"
                params: list = []

                if metric_ids is not None:
                    ids = list(dict.fromkeys(metric_ids))
                    if not ids:
                        return []
                    query += f" AND metric_id IN ({', '.join('?' for _ in ids)})"
                    params.extend(ids)

                query += " ORDER BY metric_id"

                result = conn.execute(query, params).fetchall()
                metrics = [Metric.model_validate_json(row[0]) for row in result]

                logger.debug("metrics_read", count=len(metrics))
                return metrics

        except duckdb.Error as e:
            logger.error("read_metrics_failed", error=str(e))
            raise StorageError(f"Failed to read metrics: {e}") from e

    def read_metrics_in_group(self, benchmark_group: str) -> list[Metric]:
        """Read all metrics in a benchmark group."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    """
                    SELECT definition FROM metrics
                    WHERE benchmark_group = ?
                    ORDER BY metric_id
                    """,
                    [benchmark_group],
                ).fetchall()
                return [Metric.model_validate_json(row[0]) for row in result]

        except duckdb.Error as e:
            logger.error("read_metrics_in_group_failed", group=benchmark_group, error=str(e))
            raise StorageError(f"Failed to read benchmark group: {e}") from e

    def get_children(self, metric_id: str) -> list[str]:
        """Read ordered child ids of a rollup."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    """
                    SELECT child_metric_id FROM metric_children
                    WHERE parent_metric_id = ?
                    ORDER BY position
                    """,
                    [metric_id],
                ).fetchall()
                return [row[0] for row in result]

        except duckdb.Error as e:
            logger.error("get_children_failed", metric_id=metric_id, error=str(e))
            raise StorageError(f"Failed to read metric children: {e}") from e

    # =========================================================================
    # Organizational Tree Implementation
    # =========================================================================

    def write_node(self, node: OrgNode) -> str:
        """Write org node."""
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO org_nodes (node_id, parent_id, name, level)
                    VALUES (?, ?, ?, ?)
                    """,
                    [node.node_id, node.parent_id, node.name, node.level],
                )
                return node.node_id

        except duckdb.Error as e:
            logger.error("write_node_failed", node_id=node.node_id, error=str(e))
            raise StorageError(f"Failed to write org node: {e}") from e

    def read_node(self, node_id: str) -> Optional[OrgNode]:
        """Read org node by id."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT node_id, parent_id, name, level FROM org_nodes WHERE node_id = ?",
                    [node_id],
                ).fetchone()

                if row is None:
                    return None

                return OrgNode(node_id=row[0], parent_id=row[1], name=row[2], level=row[3])

        except duckdb.Error as e:
            logger.error("read_node_failed", node_id=node_id, error=str(e))
            raise StorageError(f"Failed to read org node: {e}") from e

    # =========================================================================
    # Observation Ledger Implementation
    # =========================================================================

    def append_observations(self, observations: Iterable[Observation]) -> int:
        """Append observations in one transaction."""
        batch = self._validate_append(observations)
        if not batch:
            return 0

        try:
            with self._transaction() as conn:
                conn.executemany(
                    """
                    INSERT INTO metric_observations (
                        observation_id, metric_id, recorded_at, written_at,
                        value, source, excluded_at, notes
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        [
                            obs.observation_id,
                            obs.metric_id,
                            _to_db(obs.recorded_at),
                            _to_db(obs.written_at),
                            obs.value,
                            obs.source.value,
                            _to_db(obs.excluded_at),
                            obs.notes,
                        ]
                        for obs in batch
                    ],
                )
                logger.info("observations_appended", count=len(batch))
                return len(batch)

        except duckdb.Error as e:
            logger.error("append_observations_failed", count=len(batch), error=str(e))
            raise StorageError(f"Failed to append observations: {e}") from e

    def fetch_observations(
        self, metric_id: str, since: Optional[datetime] = None
    ) -> list[Observation]:
        """Read a metric's observations in ledger order."""
        try:
            with self._get_connection() as conn:
                query = """
                    SELECT observation_id, metric_id, recorded_at, written_at,
                           value, source, excluded_at, notes
                    FROM metric_observations
                    WHERE metric_id = ?
                """
                params: list = [metric_id]

                if since is not None:
                    query += " AND recorded_at >= ?"
                    params.append(_to_db(since))

                query += " ORDER BY recorded_at, written_at, seq"

                result = conn.execute(query, params).fetchall()

                observations = []
                for row in result:
                    observations.append(
                        Observation(
                            observation_id=row[0],
                            metric_id=row[1],
                            recorded_at=_from_db(row[2]),
                            written_at=_from_db(row[3]),
                            value=row[4],
                            source=row[5],
                            excluded_at=_from_db(row[6]),
                            notes=row[7],
                        )
                    )

                logger.debug("observations_read", metric_id=metric_id, count=len(observations))
                return observations

        except duckdb.Error as e:
            logger.error("fetch_observations_failed", metric_id=metric_id, error=str(e))
            raise StorageError(f"Failed to read observations: {e}") from e

    def exclude_observation(self, observation_id: str, excluded_at: datetime) -> bool:
        """Stamp an observation as excluded from ``excluded_at`` on."""
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT excluded_at FROM metric_observations WHERE observation_id = ?",
                    [observation_id],
                ).fetchone()

                if row is None or row[0] is not None:
                    return False

                conn.execute(
                    "UPDATE metric_observations SET excluded_at = ? WHERE observation_id = ?",
                    [_to_db(excluded_at), observation_id],
                )
                logger.info("observation_excluded", observation_id=observation_id)
                return True

        except duckdb.Error as e:
            logger.error("exclude_observation_failed", observation_id=observation_id, error=str(e))
            raise StorageError(f"Failed to exclude observation: {e}") from e
