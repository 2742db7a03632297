"""
Pytest configuration and shared fixtures for the scorecard engine test suite.

Data factories, an in-memory storage fixture, environment isolation and an
API client wired to that storage, shared across unit, property-based and
integration tests.
"""

import os
import tempfile
import uuid as _uuid
from datetime import datetime, timedelta, timezone

import pytest

# Set testing environment BEFORE importing the app
_test_db_path = os.path.join(
    tempfile.gettempdir(), f"scorecard_test_{_uuid.uuid4().hex[:8]}.duckdb"
)
os.environ["TESTING"] = "true"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["DB_PATH"] = _test_db_path
os.environ["DEFAULT_TIMEZONE"] = "UTC"


from scorecard.config import Settings
from scorecard.models.benchmarks import ResolvableItem
from scorecard.models.enums import AggregationMode, Direction, MetricUnit, WindowKind
from scorecard.models.metrics import Metric, Observation, OrgNode, Thresholds
from scorecard.storage.memory import InMemoryStorage

# Wednesday; the surrounding week is Monday 2024-05-13 .. Sunday 2024-05-19
NOW = datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)


class LedgerClock:
    """Settable write clock for storage backends; starts at NOW."""

    def __init__(self, instant: datetime = NOW):
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant

    def advance(self, delta: timedelta) -> None:
        self.instant += delta


# ---------------------------------------------------------------------------
# Pydantic model factories, reusable across all test suites
# ---------------------------------------------------------------------------


def make_metric(
    metric_id: str = "revenue",
    aggregation: AggregationMode = AggregationMode.SUM,
    windows: tuple = (WindowKind.WEEK,),
    **overrides,
) -> Metric:
    """Factory function for creating test Metric objects."""
    defaults = dict(
        metric_id=metric_id,
        name=metric_id.replace("_", " ").title(),
        unit=MetricUnit.COUNT,
        windows=list(windows),
        aggregation=aggregation,
    )
    defaults.update(overrides)
    return Metric(**defaults)


def make_rollup(
    metric_id: str,
    children: list,
    aggregation: AggregationMode = AggregationMode.SUM,
    **overrides,
) -> Metric:
    """Factory function for creating rollup Metric objects."""
    return make_metric(
        metric_id,
        aggregation=aggregation,
        is_rollup=True,
        child_metric_ids=list(children),
        **overrides,
    )


def make_observation(
    metric_id: str = "revenue",
    value: float = 1.0,
    recorded_at: datetime = NOW,
    **overrides,
) -> Observation:
    """Factory function for creating test Observation objects."""
    defaults = dict(metric_id=metric_id, value=value, recorded_at=recorded_at)
    defaults.update(overrides)
    return Observation(**defaults)


def make_item(
    item_id: str = "ticket-1",
    duration_ms: int = 1_000,
    is_closed: bool = True,
    **overrides,
) -> ResolvableItem:
    """Factory function for creating resolvable items."""
    defaults = dict(item_id=item_id, duration_ms=duration_ms, is_closed=is_closed)
    defaults.update(overrides)
    return ResolvableItem(**defaults)


def make_goal_metric(metric_id: str = "nps", goal: float = 100.0, **overrides) -> Metric:
    """Higher-is-better metric classified against a goal only."""
    defaults = dict(goal=goal, direction=Direction.HIGHER_IS_BETTER)
    defaults.update(overrides)
    return make_metric(metric_id, **defaults)


def make_threshold_metric(
    metric_id: str = "uptime", red: float = 90.0, yellow: float = 95.0, **overrides
) -> Metric:
    """Metric classified against red/yellow thresholds."""
    defaults = dict(thresholds=Thresholds(red=red, yellow=yellow))
    defaults.update(overrides)
    return make_metric(metric_id, **defaults)


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    """Fixed reference instant (a Wednesday, mid-month)."""
    return NOW


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the process-wide cache."""
    return Settings(storage_backend="memory", testing=True, request_timeout_seconds=30.0)


@pytest.fixture
def clock() -> LedgerClock:
    """Write clock that stamps appends with NOW until advanced."""
    return LedgerClock()


@pytest.fixture
def storage(clock) -> InMemoryStorage:
    """Fresh in-memory storage for each test."""
    return InMemoryStorage(clock=clock)


@pytest.fixture
def org_tree(storage):
    """
    Small org tree:

        company
        |-- sales
        |   |-- sales_east
        |   `-- sales_west
        `-- support
    """
    nodes = [
        OrgNode(node_id="company", name="Company", level=0),
        OrgNode(node_id="sales", name="Sales", parent_id="company", level=1),
        OrgNode(node_id="sales_east", name="Sales East", parent_id="sales", level=2),
        OrgNode(node_id="sales_west", name="Sales West", parent_id="sales", level=2),
        OrgNode(node_id="support", name="Support", parent_id="company", level=1),
    ]
    for node in nodes:
        storage.write_node(node)
    return nodes


@pytest.fixture
def weekly_revenue(storage, now):
    """Revenue leaf with two values this week and one last week."""
    storage.write_metric(
        make_metric("revenue", goal=100.0, direction=Direction.HIGHER_IS_BETTER)
    )
    storage.append_observations(
        [
            make_observation("revenue", 40.0, now - timedelta(days=1)),
            make_observation("revenue", 30.0, now - timedelta(days=2)),
            make_observation("revenue", 50.0, now - timedelta(days=7)),
        ]
    )
    return storage


@pytest.fixture
def client(storage):
    """API test client backed by the per-test in-memory storage."""
    from fastapi.testclient import TestClient

    from scorecard.main import app
    from scorecard.storage import get_storage

    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
