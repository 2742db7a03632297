"""
Enumeration types for the scorecard engine.

This module defines all enum types used across the system for type safety
and consistent validation. All enums inherit from str to ensure JSON
serialization compatibility.
"""

from enum import Enum
from typing import Optional


class WindowKind(str, Enum):
    """
    Fixed enumeration of reporting periods a metric can be viewed over.

    Calendar kinds (day, week, mtd, qtd, ytd) follow calendar boundaries in
    the configured timezone; trailing kinds are fixed-length look-backs.
    """

    DAY = "day"
    WEEK = "week"
    MTD = "mtd"
    QTD = "qtd"
    YTD = "ytd"
    TRAILING_7 = "trailing_7"
    TRAILING_30 = "trailing_30"
    TRAILING_90 = "trailing_90"

    @property
    def trailing_days(self) -> Optional[int]:
        """Number of days for trailing kinds, None for calendar kinds."""
        if self.value.startswith("trailing_"):
            return int(self.value.split("_", 1)[1])
        return None

    @property
    def is_cumulative(self) -> bool:
        """Whether the previous period is found by re-resolving before start."""
        return self in (WindowKind.WEEK, WindowKind.MTD, WindowKind.QTD, WindowKind.YTD)


class AggregationMode(str, Enum):
    """How observations (or child values) in a window reduce to one number."""

    SUM = "sum"
    AVERAGE = "average"
    MIN = "min"
    MAX = "max"
    LATEST = "latest"
    MANUAL = "manual"


class MetricUnit(str, Enum):
    """Display unit of a metric. Never used to guess direction."""

    CURRENCY = "currency"
    PERCENTAGE = "percentage"
    COUNT = "count"
    CUSTOM = "custom"


class Direction(str, Enum):
    """Which way a metric improves."""

    HIGHER_IS_BETTER = "higher_is_better"
    LOWER_IS_BETTER = "lower_is_better"


class Status(str, Enum):
    """Scorecard status of a window value."""

    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    OFF_TRACK = "off_track"
    UNCLASSIFIED = "unclassified"


class Trend(str, Enum):
    """Direction of change against the preceding period."""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class ResultState(str, Enum):
    """
    Outcome of a single (metric, window) computation.

    no_data is a legitimate empty reading and renders as a dash; unavailable
    means a structural error stopped this one item.
    """

    OK = "ok"
    NO_DATA = "no_data"
    UNAVAILABLE = "unavailable"


class Provenance(str, Enum):
    """Where a window value came from."""

    COMPUTED = "computed"
    MANUAL = "manual"
    ROLLUP = "rollup"


class ObservationSource(str, Enum):
    """Writer that recorded an observation in the ledger."""

    MANUAL = "manual"
    INTEGRATION = "integration"


class ResolutionBand(str, Enum):
    """Latency band for resolved tickets."""

    UNDER_1H = "<1h"
    H1_TO_4 = "1-4h"
    H4_TO_24 = "4-24h"
    D1_TO_3 = "1-3d"
    OVER_3D = "3d+"
