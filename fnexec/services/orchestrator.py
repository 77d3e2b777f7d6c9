"""Execution Orchestrator - Coordinates deployment and invocation of functions.

Deployment renders the function, resolves its strategy and builds inside a
bounded build pool, moving the record through creating -> ready | error.
Invocation dispatches to the strategy under the function's timeout and
emits exactly one metric record per attempt that reaches execution.

Usage:
    orchestrator = ExecutionOrchestrator(
        store=store,
        strategies=strategies,
        metrics_service=metrics_service,
        reclaimer=reclaimer,
    )
    image_ref = await orchestrator.deploy(record)
    result = await orchestrator.invoke(record, {"a": 1}, request_id)
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import structlog

from ..config import settings
from ..core.locks import KeyedLock
from ..models.errors import (
    DeploymentError,
    ExecutionError,
    FunctionNotFoundError,
    FunctionPlatformException,
    MissingArtifactError,
    NotReadyError,
    TimeoutError,
)
from ..models.execution import ExecutionResult, ExecutionStatus
from ..models.function import FunctionRecord, FunctionStatus
from ..models.metrics import MetricRecord
from .artifact import ArtifactRenderer
from .interfaces import RecordStoreInterface
from .metrics import MetricsService
from .reclaimer import ResourceReclaimer
from .strategies import StrategyTable

logger = structlog.get_logger(__name__)

TIMEOUT_STATUS_CODE = 504


@dataclass
class InvocationContext:
    """State carried through a single invocation."""

    function: FunctionRecord
    payload: Any
    request_id: str
    cold_start: bool
    started_at: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000


class ExecutionOrchestrator:
    """Coordinates deploy, invoke and reclaim for function records.

    Record writes for one function are serialized by a per-function lock;
    deployments of one function are serialized by a second lock so that
    invocations never wait on a build.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        strategies: StrategyTable,
        metrics_service: MetricsService,
        reclaimer: ResourceReclaimer,
        renderer: Optional[ArtifactRenderer] = None,
        max_concurrent_builds: Optional[int] = None,
    ):
        self.store = store
        self.strategies = strategies
        self.metrics_service = metrics_service
        self.reclaimer = reclaimer
        self.renderer = renderer or ArtifactRenderer()
        self._deploy_locks = KeyedLock()
        self._record_locks = KeyedLock()
        self._build_semaphore = asyncio.Semaphore(
            max_concurrent_builds or settings.resources.max_concurrent_builds
        )

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    async def deploy(self, record: FunctionRecord) -> str:
        """Build (or prepare) the execution artifact for a function.

        On failure the record is left with ``status=error`` and its previous
        ``image_ref`` untouched.

        Args:
            record: Function to deploy; updated in place

        Returns:
            The new image reference

        Raises:
            DeploymentError: If rendering or building fails
        """
        return await self._deploy(record, _set_status(FunctionStatus.CREATING))

    async def _deploy(
        self, record: FunctionRecord, prepare: Callable[[FunctionRecord], None]
    ) -> str:
        """Deploy under the function's deploy lock.

        ``prepare`` runs in the same record write that moves the function to
        ``creating``.
        """
        async with self._deploy_locks.acquire(record.id):
            stored = await self._mutate_record(record, prepare)
            previous_image = stored.image_ref

            logger.info(
                "Deploying function",
                function_id=record.id,
                function_name=record.name,
                language=record.language.value,
                backend=record.isolation_backend.value,
            )

            try:
                artifact = self.renderer.render(record.language, record.code)
                strategy = self.strategies.resolve(
                    record.language, record.isolation_backend
                )
                async with self._build_semaphore:
                    image_ref = await strategy.build(artifact, record)
            except FunctionPlatformException as e:
                await self._fail_deployment(record, e.message)
                raise DeploymentError(record.name, e.message) from e
            except Exception as e:
                await self._fail_deployment(record, str(e))
                raise DeploymentError(record.name, str(e)) from e

            def _mark_ready(target: FunctionRecord) -> None:
                target.image_ref = image_ref
                target.status = FunctionStatus.READY
                target.deployment_count += 1

            updated = await self._mutate_record(record, _mark_ready)
            logger.info(
                "Function deployed",
                function_id=record.id,
                image_ref=image_ref,
                deployment_count=updated.deployment_count,
            )

        if previous_image and previous_image != image_ref:
            await self.reclaimer.remove_image(previous_image, function_id=record.id)

        return image_ref

    async def _fail_deployment(self, record: FunctionRecord, reason: str) -> None:
        logger.error(
            "Function deployment failed",
            function_id=record.id,
            function_name=record.name,
            error=reason,
        )
        await self._mutate_record(record, _set_status(FunctionStatus.ERROR))

    async def update(
        self, record: FunctionRecord, changes: Dict[str, Any]
    ) -> FunctionRecord:
        """Apply field changes, redeploying when the built image is invalidated.

        Raises:
            DeploymentError: If a triggered redeploy fails
        """
        changes = {k: v for k, v in changes.items() if v is not None}
        needs_redeploy = record.requires_redeploy(changes)

        def _apply(target: FunctionRecord) -> None:
            for name, value in changes.items():
                setattr(target, name, value)

        if not needs_redeploy:
            await self._mutate_record(record, _apply)
            return record

        def _apply_and_rebuild(target: FunctionRecord) -> None:
            _apply(target)
            target.status = FunctionStatus.CREATING

        logger.info(
            "Function changed, redeploying",
            function_id=record.id,
            changed=sorted(changes),
        )
        # The changes and the creating status land in a single write
        await self._deploy(record, _apply_and_rebuild)
        return record

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke(
        self, record: FunctionRecord, payload: Any, request_id: str
    ) -> ExecutionResult:
        """Invoke a deployed function once.

        Args:
            record: Function to invoke
            payload: JSON-serializable request payload
            request_id: Identifier recorded on the metric

        Returns:
            ExecutionResult of the invocation

        Raises:
            NotReadyError: If the function is not ready
            MissingArtifactError: If the function has no image reference
            TimeoutError: If the function exceeded its timeout
            ExecutionError: If the function failed
        """
        if not record.is_ready:
            raise NotReadyError(record.name, record.status.value, request_id=request_id)
        if not record.image_ref:
            raise MissingArtifactError(record.name, request_id=request_id)

        ctx = InvocationContext(
            function=record,
            payload=payload,
            request_id=request_id,
            cold_start=record.last_invoked is None,
        )
        strategy = self.strategies.resolve(record.language, record.isolation_backend)

        logger.info(
            "Invoking function",
            function_id=record.id,
            request_id=request_id,
            strategy=strategy.name,
            timeout_ms=record.timeout,
        )

        try:
            result = await asyncio.wait_for(
                strategy.execute(record, payload, request_id),
                timeout=record.timeout / 1000,
            )
        except asyncio.TimeoutError:
            error = TimeoutError(record.timeout, request_id=request_id)
            await self._emit_failure(
                ctx, ExecutionStatus.TIMEOUT, TIMEOUT_STATUS_CODE, error.message
            )
            logger.warning(
                "Function timed out",
                function_id=record.id,
                request_id=request_id,
                timeout_ms=record.timeout,
            )
            raise error
        except FunctionPlatformException as e:
            e.request_id = e.request_id or request_id
            await self._emit_failure(ctx, ExecutionStatus.ERROR, e.status_code, e.message)
            logger.error(
                "Function execution failed",
                function_id=record.id,
                request_id=request_id,
                error_type=e.error_type.value,
                error=e.message,
            )
            raise
        except Exception as e:
            await self._emit_failure(ctx, ExecutionStatus.ERROR, 500, str(e))
            logger.error(
                "Function execution failed unexpectedly",
                function_id=record.id,
                request_id=request_id,
                error=str(e),
            )
            raise ExecutionError(str(e), request_id=request_id) from e

        result.cold_start = await self._mark_invoked(ctx)
        await self._emit(
            ctx,
            status=ExecutionStatus.SUCCESS,
            status_code=result.status_code,
            execution_time=result.execution_time,
            memory_usage=result.memory_usage,
            cpu_usage=result.cpu_usage,
            cold_start=result.cold_start,
        )
        logger.info(
            "Function invoked",
            function_id=record.id,
            request_id=request_id,
            execution_time_ms=round(result.execution_time, 1),
            cold_start=result.cold_start,
        )
        return result

    async def _mark_invoked(self, ctx: InvocationContext) -> bool:
        """Set ``last_invoked``; returns whether this was the first success."""
        now = datetime.now(timezone.utc)
        first_success = ctx.cold_start

        def _touch(target: FunctionRecord) -> None:
            nonlocal first_success
            first_success = target.last_invoked is None
            target.last_invoked = now

        try:
            await self._mutate_record(ctx.function, _touch, create_missing=False)
        except FunctionNotFoundError:
            logger.warning(
                "Function deleted during invocation",
                function_id=ctx.function.id,
                request_id=ctx.request_id,
            )
        return first_success

    # ------------------------------------------------------------------
    # Reclamation
    # ------------------------------------------------------------------

    async def reclaim(self, record: FunctionRecord) -> None:
        """Remove the function's engine resources. Never raises."""
        async with self._deploy_locks.acquire(record.id):
            await self.reclaimer.delete(record)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _mutate_record(
        self,
        record: FunctionRecord,
        mutate: Callable[[FunctionRecord], None],
        create_missing: bool = True,
    ) -> FunctionRecord:
        """Read-modify-write the stored record under the per-function lock.

        The caller's ``record`` is updated in place with the stored result.
        """
        async with self._record_locks.acquire(record.id):
            try:
                stored = await self.store.get_function(record.id)
            except FunctionNotFoundError:
                if not create_missing:
                    raise
                stored = record.model_copy(deep=True)
            mutate(stored)
            stored = await self.store.save_function(stored)

        for name in type(stored).model_fields:
            setattr(record, name, getattr(stored, name))
        return stored

    async def _emit_failure(
        self,
        ctx: InvocationContext,
        status: ExecutionStatus,
        status_code: int,
        error_message: str,
    ) -> None:
        await self._emit(
            ctx,
            status=status,
            status_code=status_code,
            execution_time=ctx.elapsed_ms(),
            cold_start=ctx.cold_start,
            error_message=error_message,
        )

    async def _emit(
        self,
        ctx: InvocationContext,
        status: ExecutionStatus,
        status_code: int,
        execution_time: float,
        cold_start: bool,
        memory_usage: int = 0,
        cpu_usage: float = 0.0,
        error_message: Optional[str] = None,
    ) -> None:
        await self.metrics_service.record(
            MetricRecord(
                function_id=ctx.function.id,
                execution_time=execution_time,
                memory_usage=memory_usage,
                cpu_usage=cpu_usage,
                status=status.value,
                status_code=status_code,
                isolation_backend=ctx.function.isolation_backend.value,
                request_id=ctx.request_id,
                cold_start=cold_start,
                error_message=error_message,
            )
        )


def _set_status(status: FunctionStatus) -> Callable[[FunctionRecord], None]:
    def _apply(target: FunctionRecord) -> None:
        target.status = status

    return _apply
