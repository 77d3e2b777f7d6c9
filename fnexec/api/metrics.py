"""Invocation metrics endpoints."""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Query

from ..dependencies import MetricsServiceDep, RecordStoreDep
from ..models.metrics import TimeRange

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/api/metrics", tags=["metrics"])

TIME_RANGE_DESCRIPTION = "Look-back window: 1h, 6h, 24h, 7d or 30d (default 24h)"


@router.get("/function/{function_id}", summary="Function statistics")
async def function_metrics(
    function_id: str,
    metrics_service: MetricsServiceDep,
    store: RecordStoreDep,
    time_range: Optional[str] = Query(
        None, alias="timeRange", description=TIME_RANGE_DESCRIPTION
    ),
) -> Dict[str, Any]:
    """Statistics and raw metric records for one function."""
    await store.get_function(function_id)
    return await metrics_service.get_function_statistics(
        function_id, TimeRange.parse(time_range)
    )


@router.get("/system", summary="System statistics")
async def system_metrics(
    metrics_service: MetricsServiceDep,
    time_range: Optional[str] = Query(
        None, alias="timeRange", description=TIME_RANGE_DESCRIPTION
    ),
) -> Dict[str, Any]:
    """Statistics across all functions plus the most recent invocations."""
    return await metrics_service.get_system_statistics(TimeRange.parse(time_range))
