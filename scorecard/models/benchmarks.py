"""
Benchmark and resolution-distribution models.

Benchmark snapshots compare one subject against a population of peer
values for the same metric. Resolution buckets distribute closed-item
durations into fixed latency bands.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .base import DerivedModel
from .enums import ResolutionBand


class BenchmarkComparison(DerivedModel):
    """
    One row of a seller-style comparison table.

    Attributes:
        metric: Label of the compared metric
        subject_value: Subject's own value
        team_average: Mean of the population
        leader: Highest value in the population
        percentile: Share of the population strictly below the subject (0-100)
    """

    metric: str
    subject_value: Optional[float] = None
    team_average: Optional[float] = None
    leader: Optional[float] = None
    percentile: int = Field(ge=0, le=100)


class BenchmarkSnapshot(DerivedModel):
    """
    Peer benchmark for one metric over one window.

    Attributes:
        metric_id: Subject metric
        benchmark_group: Peer-group key the population was drawn from
        scope_node_id: Subtree root constraining the population, if any
        window: Window the peer values were computed over
        as_of: Instant the query was pinned to
        subject_value: Subject's value, None when it has no data
        population_values: Peer values with data, subject included
        population_size: Number of peer values
        mean: Population mean
        max: Population maximum (the leader)
        percentile: Subject percentile rank, 0 for an empty population
        comparison: Same numbers as a comparison-table row
    """

    metric_id: str
    benchmark_group: Optional[str] = None
    scope_node_id: Optional[str] = None
    window: str
    as_of: datetime
    subject_value: Optional[float] = None
    population_values: list[float] = Field(default_factory=list)
    population_size: int = Field(ge=0)
    mean: Optional[float] = None
    max: Optional[float] = None
    percentile: int = Field(ge=0, le=100)
    comparison: BenchmarkComparison


class ResolvableItem(BaseModel):
    """
    A ticket-like item with an optional time-to-close.

    Only closed items with a positive duration are eligible for bucketing.
    """

    item_id: str = Field(description="Source identifier of the item")
    is_closed: bool = Field(default=False, description="Whether the item is closed")
    duration_ms: Optional[int] = Field(
        default=None, description="Time to close in milliseconds"
    )
    owner_id: Optional[str] = Field(default=None, description="Assigned owner")
    created_at: Optional[datetime] = Field(default=None, description="Creation instant")
    first_response_ms: Optional[int] = Field(
        default=None, description="Time to first agent reply in milliseconds"
    )
    category: Optional[str] = Field(default=None, description="Item category")
    source: Optional[str] = Field(default=None, description="Channel the item came in through")
    client_name: Optional[str] = Field(default=None, description="Client the item is for")
    program_name: Optional[str] = Field(default=None, description="Client program, if any")

    @field_validator("duration_ms", "first_response_ms")
    @classmethod
    def validate_duration(cls, v: Optional[int]) -> Optional[int]:
        """Durations cannot be negative."""
        if v is not None and v < 0:
            raise ValueError("Durations must not be negative")
        return v

    @property
    def is_eligible(self) -> bool:
        return self.is_closed and self.duration_ms is not None and self.duration_ms > 0


class ResolutionBucket(DerivedModel):
    """Count and share of closed items in one latency band."""

    bucket: ResolutionBand
    count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)


class OwnerWorkload(DerivedModel):
    """Item load and resolution speed of one owner."""

    owner_id: str
    item_count: int = Field(ge=0)
    open_count: int = Field(ge=0)
    avg_resolution_ms: Optional[int] = None


class DailyVolume(DerivedModel):
    """Items created on one calendar day."""

    day: date
    count: int = Field(ge=0)


class CategoryShare(DerivedModel):
    """Items in one category and their share of the period."""

    category: str
    count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)


class SourceShare(DerivedModel):
    """Items from one intake channel and their share of the period."""

    source: str
    count: int = Field(ge=0)
    percentage: int = Field(ge=0, le=100)


class ClientVolume(DerivedModel):
    """Items raised for one client program."""

    client_name: str
    program_name: Optional[str] = None
    item_count: int = Field(ge=0)


class ResolutionSummary(DerivedModel):
    """
    Period summary of item resolution.

    Attributes:
        total: Items in the current period
        closed: Closed items eligible for bucketing
        open: Items not closed
        avg_time_to_close_ms: Mean duration of eligible items
        previous_total: Items in the previous period
        previous_avg_time_to_close_ms: Mean duration in the previous period
        total_change_pct: Percent change of total vs previous period
        avg_time_to_close_change_pct: Percent change of mean duration
        avg_first_response_ms: Mean time to first reply
        previous_avg_first_response_ms: Mean time to first reply in the previous period
        avg_first_response_change_pct: Percent change of mean first reply time
        buckets: Latency distribution of the current period
        owners: Workload per owner, busiest first
        daily_volume: Items per local calendar day, empty days as 0
        categories: Items per category, largest first
        sources: Items per intake channel, largest first
        clients: Busiest client programs, at most 20
    """

    total: int = Field(ge=0)
    closed: int = Field(ge=0)
    open: int = Field(ge=0)
    avg_time_to_close_ms: Optional[int] = None
    previous_total: int = Field(default=0, ge=0)
    previous_avg_time_to_close_ms: Optional[int] = None
    total_change_pct: float = 0.0
    avg_time_to_close_change_pct: float = 0.0
    avg_first_response_ms: Optional[int] = None
    previous_avg_first_response_ms: Optional[int] = None
    avg_first_response_change_pct: float = 0.0
    buckets: list[ResolutionBucket] = Field(default_factory=list)
    owners: list[OwnerWorkload] = Field(default_factory=list)
    daily_volume: list[DailyVolume] = Field(default_factory=list)
    categories: list[CategoryShare] = Field(default_factory=list)
    sources: list[SourceShare] = Field(default_factory=list)
    clients: list[ClientVolume] = Field(default_factory=list)
