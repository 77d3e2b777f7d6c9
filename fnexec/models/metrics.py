"""Metrics data models for invocation tracking and analytics."""

import uuid
from dataclasses import dataclass, asdict, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional


class TimeRange(str, Enum):
    """Look-back windows accepted by the metrics endpoints."""

    LAST_HOUR = "1h"
    LAST_6_HOURS = "6h"
    LAST_24_HOURS = "24h"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"

    @property
    def delta(self) -> timedelta:
        return _TIME_RANGE_DELTAS[self]

    def start_time(self, now: Optional[datetime] = None) -> datetime:
        """Get the start of this window ending at ``now``."""
        return (now or datetime.now(timezone.utc)) - self.delta

    @classmethod
    def parse(cls, value: Optional[str]) -> "TimeRange":
        """Parse a time range string, defaulting to the last 24 hours."""
        try:
            return cls(value)
        except ValueError:
            return cls.LAST_24_HOURS


_TIME_RANGE_DELTAS = {
    TimeRange.LAST_HOUR: timedelta(hours=1),
    TimeRange.LAST_6_HOURS: timedelta(hours=6),
    TimeRange.LAST_24_HOURS: timedelta(hours=24),
    TimeRange.LAST_7_DAYS: timedelta(days=7),
    TimeRange.LAST_30_DAYS: timedelta(days=30),
}


@dataclass
class MetricRecord:
    """One record per invocation that reached execution.

    Append-only. Error and timeout records carry zeroed resource fields.
    """

    function_id: str
    execution_time: float  # milliseconds
    memory_usage: int  # bytes
    cpu_usage: float  # percent
    status: str  # success, error, timeout
    status_code: int
    isolation_backend: str
    request_id: str
    cold_start: bool = False
    error_message: Optional[str] = None
    metric_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricRecord":
        """Create from dictionary."""
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        elif timestamp is None:
            timestamp = datetime.now(timezone.utc)

        return cls(
            metric_id=data.get("metric_id") or uuid.uuid4().hex,
            function_id=data["function_id"],
            execution_time=data.get("execution_time", 0.0),
            memory_usage=data.get("memory_usage", 0),
            cpu_usage=data.get("cpu_usage", 0.0),
            status=data["status"],
            status_code=data.get("status_code", 500),
            isolation_backend=data.get("isolation_backend", "standard"),
            request_id=data.get("request_id", ""),
            cold_start=bool(data.get("cold_start", False)),
            error_message=data.get("error_message"),
            timestamp=timestamp,
        )


@dataclass
class MetricFilter:
    """Query filter for stored metric records."""

    function_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    status: Optional[str] = None
    limit: Optional[int] = None  # newest first when set

    def matches(self, metric: MetricRecord) -> bool:
        if self.function_id is not None and metric.function_id != self.function_id:
            return False
        if self.start is not None and metric.timestamp < self.start:
            return False
        if self.end is not None and metric.timestamp > self.end:
            return False
        if self.status is not None and metric.status != self.status:
            return False
        return True
