"""
Benchmarks router.

Wired to:
- BenchmarkService for peer percentiles
- Resolution bucketing and period summaries for ticket-like items
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from scorecard.engine.benchmark import (
    BenchmarkService,
    compute_resolution_buckets,
    summarize_resolution,
)
from scorecard.engine.errors import InvalidWindowKind, MetricNotFound, ScorecardTimeout
from scorecard.models.benchmarks import ResolvableItem
from scorecard.storage import StorageBackend, get_storage
from scorecard.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ResolutionItemsRequest(BaseModel):
    """Items to bucket."""

    items: List[ResolvableItem] = Field(default_factory=list)


class ResolutionSummaryRequest(BaseModel):
    """Items for the current and previous period."""

    current: List[ResolvableItem] = Field(default_factory=list)
    previous: List[ResolvableItem] = Field(default_factory=list)
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None


@router.post("/resolution-buckets")
async def resolution_buckets(request: ResolutionItemsRequest):
    """Distribute closed items over the latency bands."""
    buckets = compute_resolution_buckets(request.items)
    logger.info("resolution_buckets_computed", items_count=len(request.items))
    return {"success": True, "data": [b.model_dump(mode="json") for b in buckets]}


@router.post("/resolution-summary")
async def resolution_summary(request: ResolutionSummaryRequest):
    """Summarize resolution for a period against the previous one."""
    summary = summarize_resolution(
        request.current,
        request.previous,
        period_start=request.period_start,
        period_end=request.period_end,
    )
    logger.info(
        "resolution_summary_computed",
        current_count=len(request.current),
        previous_count=len(request.previous),
    )
    return {"success": True, "data": summary.model_dump(mode="json")}


@router.get("/{metric_id}")
async def get_benchmark(
    metric_id: str,
    scope: Optional[str] = None,
    window: Optional[str] = None,
    as_of: Optional[datetime] = None,
    storage: StorageBackend = Depends(get_storage),
):
    """
    Benchmark a metric against peers in its benchmark group.

    Optional ``scope`` restricts peers to an org subtree.
    """
    logger.info("benchmark_requested", metric_id=metric_id, scope=scope, window=window)

    service = BenchmarkService(storage=storage)

    try:
        snapshot = service.compute_benchmarks(
            metric_id=metric_id,
            population_scope=scope,
            window=window,
            as_of=as_of,
        )
    except MetricNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidWindowKind as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ScorecardTimeout as e:
        raise HTTPException(status_code=504, detail=str(e))

    return {"success": True, "data": snapshot.model_dump(mode="json")}
