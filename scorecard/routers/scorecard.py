"""
Scorecard router.

Wired to:
- ScorecardService for batch window computation
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from scorecard.engine.errors import ScorecardTimeout
from scorecard.engine.service import ScorecardService
from scorecard.storage import StorageBackend, get_storage
from scorecard.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class ScorecardRequest(BaseModel):
    """Batch scorecard request."""

    metric_ids: List[str] = Field(min_length=1, description="Metrics to report on")
    windows: Optional[List[str]] = Field(
        default=None, description="Window kinds; omit to use each metric's own windows"
    )
    as_of: Optional[datetime] = Field(default=None, description="Pin the query to an instant")
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Request deadline")


@router.post("")
async def compute_scorecard(
    request: ScorecardRequest,
    storage: StorageBackend = Depends(get_storage),
):
    """
    Compute value, status and trend for every (metric, window) pair.

    Unknown window kinds and structural problems are reported per item as
    unavailable; they never fail the request.
    """
    logger.info(
        "scorecard_requested",
        metrics_count=len(request.metric_ids),
        windows=request.windows,
        as_of=request.as_of.isoformat() if request.as_of else None,
    )

    service = ScorecardService(storage=storage)

    try:
        report = service.compute_scorecard(
            metric_ids=request.metric_ids,
            window_kinds=request.windows,
            as_of=request.as_of,
            timeout_seconds=request.timeout_seconds,
        )
    except ScorecardTimeout as e:
        logger.warning("scorecard_timeout", timeout_seconds=e.timeout_seconds)
        raise HTTPException(status_code=504, detail=str(e))

    return {"success": True, "data": report.model_dump(mode="json")}
