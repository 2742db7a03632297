"""
Metric catalog and manual entry router.

Wired to:
- StorageBackend for metric definitions and the observation ledger
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from scorecard.models.enums import ObservationSource
from scorecard.models.metrics import Metric, Observation
from scorecard.storage import LedgerWriteError, StorageBackend, get_storage
from scorecard.utils.logging import get_logger
from scorecard.utils.timeutils import utcnow

logger = get_logger(__name__)
router = APIRouter()


class ManualValueRequest(BaseModel):
    """A manually entered value."""

    value: float
    recorded_at: Optional[datetime] = Field(
        default=None, description="Instant the value describes (default: now)"
    )
    notes: Optional[str] = None


@router.put("")
async def upsert_metric(
    metric: Metric,
    storage: StorageBackend = Depends(get_storage),
):
    """Create or replace a metric definition."""
    metric_id = storage.write_metric(metric)
    logger.info("metric_upserted", metric_id=metric_id, is_rollup=metric.is_rollup)
    return {"success": True, "data": metric.model_dump(mode="json")}


@router.get("/{metric_id}")
async def get_metric(
    metric_id: str,
    storage: StorageBackend = Depends(get_storage),
):
    """Read a metric definition."""
    metric = storage.read_metric(metric_id)
    if metric is None:
        raise HTTPException(status_code=404, detail=f"Metric not found: {metric_id}")
    return {"success": True, "data": metric.model_dump(mode="json")}


@router.post("/{metric_id}/values")
async def record_value(
    metric_id: str,
    request: ManualValueRequest,
    storage: StorageBackend = Depends(get_storage),
):
    """
    Record a manual value for a metric.

    Rollup metrics are always derived and reject manual values.
    """
    if storage.read_metric(metric_id) is None:
        raise HTTPException(status_code=404, detail=f"Metric not found: {metric_id}")

    now = utcnow()
    observation = Observation(
        metric_id=metric_id,
        recorded_at=request.recorded_at or now,
        written_at=now,
        value=request.value,
        source=ObservationSource.MANUAL,
        notes=request.notes,
    )

    try:
        storage.append_observations([observation])
    except LedgerWriteError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info("manual_value_recorded", metric_id=metric_id, observation_id=observation.observation_id)
    return {"success": True, "data": observation.model_dump(mode="json")}


@router.delete("/values/{observation_id}")
async def exclude_value(
    observation_id: str,
    storage: StorageBackend = Depends(get_storage),
):
    """Soft-exclude an observation from now on. Earlier as_of queries still see it."""
    if not storage.exclude_observation(observation_id, utcnow()):
        raise HTTPException(
            status_code=404, detail=f"Observation not found or already excluded: {observation_id}"
        )
    logger.info("observation_excluded", observation_id=observation_id)
    return {"success": True, "data": {"observation_id": observation_id, "excluded": True}}
