"""In-memory record store."""

from typing import Dict, List, Optional

import structlog

from ...models.errors import FunctionNotFoundError
from ...models.function import FunctionRecord
from ...models.metrics import MetricFilter, MetricRecord
from ..interfaces import RecordStoreInterface

logger = structlog.get_logger(__name__)


class InMemoryRecordStore(RecordStoreInterface):
    """Process-local store. Records are copied in and out."""

    def __init__(self):
        self._functions: Dict[str, FunctionRecord] = {}
        self._metrics: List[MetricRecord] = []

    async def get_function(self, function_id: str) -> FunctionRecord:
        record = self._functions.get(function_id)
        if record is None:
            raise FunctionNotFoundError(function_id)
        return record.model_copy(deep=True)

    async def find_function(
        self, name: Optional[str] = None, route: Optional[str] = None
    ) -> Optional[FunctionRecord]:
        for record in self._functions.values():
            if (name is not None and record.name == name) or (
                route is not None and record.route == route
            ):
                return record.model_copy(deep=True)
        return None

    async def list_functions(self) -> List[FunctionRecord]:
        records = sorted(
            self._functions.values(), key=lambda r: r.created_at, reverse=True
        )
        return [r.model_copy(deep=True) for r in records]

    async def count_functions(self) -> int:
        return len(self._functions)

    async def save_function(self, record: FunctionRecord) -> FunctionRecord:
        record.touch()
        self._functions[record.id] = record.model_copy(deep=True)
        return record

    async def delete_function(self, function_id: str) -> bool:
        return self._functions.pop(function_id, None) is not None

    async def create_metric(self, metric: MetricRecord) -> None:
        self._metrics.append(metric)

    async def query_metrics(self, metric_filter: MetricFilter) -> List[MetricRecord]:
        matches = [m for m in self._metrics if metric_filter.matches(m)]
        matches.sort(key=lambda m: m.timestamp, reverse=True)
        if metric_filter.limit is not None:
            matches = matches[: metric_filter.limit]
        return matches
