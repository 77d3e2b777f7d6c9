"""Function management service.

Owns the record lifecycle (create, update, redeploy, delete) and hands
deployment and invocation to the orchestrator.
"""

from typing import Any, List

import structlog

from ..models.api import FunctionCreate, FunctionUpdate
from ..models.errors import ConflictError
from ..models.execution import ExecutionResult
from ..models.function import FunctionRecord, FunctionStatus
from .interfaces import RecordStoreInterface
from .orchestrator import ExecutionOrchestrator

logger = structlog.get_logger(__name__)


class FunctionService:
    """CRUD over function records with deploy-on-write."""

    def __init__(
        self, store: RecordStoreInterface, orchestrator: ExecutionOrchestrator
    ):
        self.store = store
        self.orchestrator = orchestrator

    async def create(self, request: FunctionCreate) -> FunctionRecord:
        """Register and deploy a new function.

        The record is persisted before the build, so a failed deployment
        leaves it behind with ``status=error``.

        Raises:
            ConflictError: If the name or route is taken
            DeploymentError: If the initial deployment fails
        """
        existing = await self.store.find_function(
            name=request.name, route=request.route
        )
        if existing is not None:
            raise ConflictError("Function with this name or route already exists")

        record = FunctionRecord(
            **request.model_dump(),
            status=FunctionStatus.CREATING,
        )
        await self.store.save_function(record)
        logger.info(
            "Function created",
            function_id=record.id,
            function_name=record.name,
            route=record.route,
        )

        await self.orchestrator.deploy(record)
        return record

    async def get(self, function_id: str) -> FunctionRecord:
        return await self.store.get_function(function_id)

    async def list(self) -> List[FunctionRecord]:
        return await self.store.list_functions()

    async def update(self, function_id: str, request: FunctionUpdate) -> FunctionRecord:
        """Apply changes, redeploying when code, language or backend changed.

        Raises:
            FunctionNotFoundError: If the function does not exist
            ConflictError: If the new name or route is taken
            DeploymentError: If a triggered redeploy fails
        """
        record = await self.store.get_function(function_id)
        changes = request.changes()

        if "name" in changes and changes["name"] != record.name:
            await self._ensure_unique(record, name=changes["name"])
        if "route" in changes and changes["route"] != record.route:
            await self._ensure_unique(record, route=changes["route"])

        return await self.orchestrator.update(record, changes)

    async def redeploy(self, function_id: str) -> FunctionRecord:
        """Rebuild a function's artifact from its current definition."""
        record = await self.store.get_function(function_id)
        await self.orchestrator.deploy(record)
        return record

    async def delete(self, function_id: str) -> None:
        """Reclaim engine resources, then delete the record.

        Reclamation never raises, so the record is always removed.
        """
        record = await self.store.get_function(function_id)
        await self.orchestrator.reclaim(record)
        await self.store.delete_function(function_id)
        logger.info("Function deleted", function_id=function_id)

    async def invoke(
        self, function_id: str, payload: Any, request_id: str
    ) -> ExecutionResult:
        record = await self.store.get_function(function_id)
        return await self.orchestrator.invoke(record, payload, request_id)

    async def _ensure_unique(self, record: FunctionRecord, **criteria: str) -> None:
        existing = await self.store.find_function(**criteria)
        if existing is not None and existing.id != record.id:
            field_name = next(iter(criteria))
            raise ConflictError(f"Function with this {field_name} already exists")
