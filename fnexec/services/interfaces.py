"""Service interfaces for dependency injection."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.function import FunctionRecord
from ..models.metrics import MetricFilter, MetricRecord


class RecordStoreInterface(ABC):
    """Persistence for function records and metric records."""

    async def start(self) -> None:
        """Open connections and create schema if needed."""

    async def stop(self) -> None:
        """Release connections."""

    @abstractmethod
    async def get_function(self, function_id: str) -> FunctionRecord:
        """Get a function record.

        Raises:
            FunctionNotFoundError: If no record has this id
        """
        pass

    @abstractmethod
    async def find_function(
        self, name: Optional[str] = None, route: Optional[str] = None
    ) -> Optional[FunctionRecord]:
        """Find a function whose name or route matches."""
        pass

    @abstractmethod
    async def list_functions(self) -> List[FunctionRecord]:
        """List function records, newest first."""
        pass

    @abstractmethod
    async def count_functions(self) -> int:
        pass

    @abstractmethod
    async def save_function(self, record: FunctionRecord) -> FunctionRecord:
        """Insert or replace a function record."""
        pass

    @abstractmethod
    async def delete_function(self, function_id: str) -> bool:
        """Delete a function record. Returns False if it did not exist."""
        pass

    @abstractmethod
    async def create_metric(self, metric: MetricRecord) -> None:
        """Append a metric record."""
        pass

    @abstractmethod
    async def query_metrics(self, metric_filter: MetricFilter) -> List[MetricRecord]:
        """Get metric records matching a filter, newest first."""
        pass
