"""Metrics service: metric emission, in-memory counters and statistics.

Metric records are persisted through the record store. Statistics are
computed over a time window (1h, 6h, 24h, 7d, 30d) either per function or
system-wide.
"""

import time
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from ..config import settings
from ..models.execution import ExecutionStatus
from ..models.function import IsolationBackend
from ..models.metrics import MetricFilter, MetricRecord, TimeRange
from .interfaces import RecordStoreInterface

logger = structlog.get_logger(__name__)


def _average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def calculate_function_statistics(metrics: List[MetricRecord]) -> Dict[str, Any]:
    """Aggregate statistics for one function's metric records."""
    if not metrics:
        return {
            "total_invocations": 0,
            "avg_execution_time": 0,
            "avg_memory_usage": 0,
            "avg_cpu_usage": 0,
            "success_rate": 0,
            "cold_starts": 0,
            "errors_count": 0,
            "fastest_execution": 0,
            "slowest_execution": 0,
        }

    total = len(metrics)
    execution_times = [m.execution_time for m in metrics]
    successes = sum(1 for m in metrics if m.status == ExecutionStatus.SUCCESS.value)

    return {
        "total_invocations": total,
        "avg_execution_time": _average(execution_times),
        "avg_memory_usage": _average([m.memory_usage for m in metrics]),
        "avg_cpu_usage": _average([m.cpu_usage for m in metrics]),
        "success_rate": successes / total * 100,
        "cold_starts": sum(1 for m in metrics if m.cold_start),
        "errors_count": sum(
            1 for m in metrics if m.status == ExecutionStatus.ERROR.value
        ),
        "fastest_execution": min(execution_times),
        "slowest_execution": max(execution_times),
    }


def calculate_system_statistics(metrics: List[MetricRecord]) -> Dict[str, Any]:
    """Aggregate statistics across all functions."""
    backend_breakdown = {backend.value: 0 for backend in IsolationBackend}
    status_breakdown = {status.value: 0 for status in ExecutionStatus}

    for metric in metrics:
        backend_breakdown[metric.isolation_backend] = (
            backend_breakdown.get(metric.isolation_backend, 0) + 1
        )
        status_breakdown[metric.status] = status_breakdown.get(metric.status, 0) + 1

    total = len(metrics)
    return {
        "total_invocations": total,
        "avg_execution_time": _average([m.execution_time for m in metrics]),
        "avg_memory_usage": _average([m.memory_usage for m in metrics]),
        "avg_cpu_usage": _average([m.cpu_usage for m in metrics]),
        "success_rate": (
            status_breakdown[ExecutionStatus.SUCCESS.value] / total * 100
            if total
            else 0
        ),
        "backend_breakdown": backend_breakdown,
        "status_breakdown": status_breakdown,
    }


class MetricsService:
    """Records invocation metrics and answers statistics queries.

    Combines:
    - Persistence of MetricRecords through the record store
    - In-memory counters for fast health-check responses
    """

    def __init__(self, store: RecordStoreInterface):
        self._store = store
        self._start_time = time.time()
        self._counters: Dict[str, int] = defaultdict(int)
        self._failed_writes = 0

    async def record(self, metric: MetricRecord) -> None:
        """Persist a metric record.

        Write failures are logged and counted, never raised, so that a
        store outage cannot mask the invocation's own outcome.
        """
        self._counters["total"] += 1
        self._counters[metric.status] += 1
        try:
            await self._store.create_metric(metric)
        except Exception as e:
            self._failed_writes += 1
            logger.error(
                "Failed to persist metric",
                function_id=metric.function_id,
                request_id=metric.request_id,
                status=metric.status,
                error=str(e),
            )

    async def get_function_statistics(
        self, function_id: str, time_range: TimeRange = TimeRange.LAST_24_HOURS
    ) -> Dict[str, Any]:
        """Get statistics and raw metrics for one function."""
        metrics = await self._store.query_metrics(
            MetricFilter(function_id=function_id, start=time_range.start_time())
        )
        return {
            "function_id": function_id,
            "time_range": time_range.value,
            "statistics": calculate_function_statistics(metrics),
            "metrics": [m.to_dict() for m in metrics],
        }

    async def get_system_statistics(
        self,
        time_range: TimeRange = TimeRange.LAST_24_HOURS,
        recent_limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Get system-wide statistics, function count and recent invocations."""
        metrics = await self._store.query_metrics(
            MetricFilter(start=time_range.start_time())
        )
        recent = metrics[: recent_limit or settings.metrics_recent_limit]
        return {
            "time_range": time_range.value,
            "statistics": calculate_system_statistics(metrics),
            "functions_count": await self._store.count_functions(),
            "recent_invocations": [m.to_dict() for m in recent],
        }

    def get_counters(self) -> Dict[str, Any]:
        """In-memory counters since process start."""
        return {
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "invocations_total": self._counters["total"],
            "invocations_success": self._counters[ExecutionStatus.SUCCESS.value],
            "invocations_error": self._counters[ExecutionStatus.ERROR.value],
            "invocations_timeout": self._counters[ExecutionStatus.TIMEOUT.value],
            "failed_metric_writes": self._failed_writes,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
