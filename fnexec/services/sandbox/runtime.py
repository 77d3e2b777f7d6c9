"""Container-backed execution of built function images.

Each invocation gets its own execution unit: the container is created from
the function image, started, given a fixed settle delay, and the wrapper is
run inside it with an exec call. The unit is torn down on every exit path.
"""

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

import structlog
from docker.errors import APIError, ImageNotFound
from docker.models.containers import Container

from ...config import settings
from ...config.languages import get_language
from ...models.errors import (
    ExecutionError,
    ResourceStatError,
    SandboxStartError,
)
from ...models.execution import ExecutionResult, ExecutionStatus
from ...models.function import IsolationBackend
from ..container import (
    DockerClientFactory,
    get_container_state,
    read_container_logs,
    run_in_executor,
    stop_and_remove,
)
from ..execution.output import decode_stream, interpret_output
from .stats import ZERO_USAGE, ResourceUsage, compute_resource_usage

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResourceLimits:
    """Limits applied to every execution unit regardless of backend."""

    memory_bytes: int
    cpu_period: int
    cpu_quota: int

    @classmethod
    def from_settings(cls) -> "ResourceLimits":
        resources = settings.resources
        return cls(
            memory_bytes=resources.get_memory_limit_bytes(),
            cpu_period=resources.container_cpu_period,
            cpu_quota=resources.container_cpu_quota,
        )


class SandboxRuntime:
    """Runs a function image once per invocation in a fresh container."""

    def __init__(self, docker_factory: DockerClientFactory):
        self._docker_factory = docker_factory
        sandbox_config = settings.sandbox
        self._sandboxed_runtime = sandbox_config.sandboxed_runtime
        self._log_tail = sandbox_config.container_log_tail
        self._stop_timeout = sandbox_config.container_stop_timeout
        self._app_dir = sandbox_config.container_app_dir
        self._sandbox_config = sandbox_config
        self._reap_tasks: Set["asyncio.Task"] = set()

    def build_create_kwargs(
        self,
        image_ref: str,
        environment: Dict[str, str],
        limits: ResourceLimits,
        backend: IsolationBackend,
        labels: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Keyword arguments for ``containers.create``."""
        kwargs: Dict[str, Any] = {
            "image": image_ref,
            "environment": dict(environment or {}),
            "mem_limit": limits.memory_bytes,
            "memswap_limit": limits.memory_bytes,
            "cpu_period": limits.cpu_period,
            "cpu_quota": limits.cpu_quota,
            "labels": dict(labels or {}),
            "detach": True,
        }
        if backend == IsolationBackend.SANDBOXED:
            kwargs["runtime"] = self._sandboxed_runtime
        return kwargs

    async def run(
        self,
        image_ref: str,
        environment: Dict[str, str],
        payload: Any,
        limits: ResourceLimits,
        backend: IsolationBackend,
        language: str,
        labels: Optional[Dict[str, str]] = None,
    ) -> ExecutionResult:
        """Execute a function image against a payload.

        Args:
            image_ref: Image built for the function
            environment: Function environment variables
            payload: JSON-serializable request payload
            limits: Memory and CPU limits for the unit
            backend: Isolation backend (selects the container runtime)
            language: Function language (selects the interpreter)
            labels: Labels attached to the container

        Returns:
            ExecutionResult with parsed data and resource usage

        Raises:
            SandboxStartError: If the unit cannot be created or never runs
            ExecutionError: If the function fails
            InvalidOutputError: If the function output breaks the protocol
        """
        language_config = get_language(language)
        command = [
            language_config.container_interpreter,
            f"{self._app_dir}/{language_config.wrapper_filename}",
            _encode_payload(payload),
        ]
        create_kwargs = self.build_create_kwargs(
            image_ref, environment, limits, backend, labels
        )

        container = await self._create_unit(create_kwargs)
        try:
            await self._start_unit(container, backend)

            stats_before = await self._snapshot_stats(container)
            start = time.perf_counter()
            try:
                exit_code, output = await run_in_executor(
                    container.exec_run, command, demux=True
                )
            except APIError as e:
                raise ExecutionError(f"Exec in execution unit failed: {e}")
            execution_time = (time.perf_counter() - start) * 1000
            stats_after = await self._snapshot_stats(container)

            stdout_bytes, stderr_bytes = output or (None, None)
            stdout = decode_stream(stdout_bytes)
            stderr = decode_stream(stderr_bytes)
            usage = self._measure(stats_before, stats_after, container)

            data = interpret_output(stdout, stderr, exit_code)

            logger.debug(
                "Execution unit finished",
                container_id=container.id[:12],
                exit_code=exit_code,
                execution_time_ms=round(execution_time, 1),
            )
            return ExecutionResult(
                data=data,
                execution_time=execution_time,
                memory_usage=usage.memory_usage,
                cpu_usage=usage.cpu_usage,
                status=ExecutionStatus.SUCCESS,
                status_code=200,
            )
        finally:
            await self._teardown(container)

    async def _create_unit(self, create_kwargs: Dict[str, Any]) -> Container:
        client = self._docker_factory.get_client()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(
            None, lambda: client.containers.create(**create_kwargs)
        )
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # The create call keeps running in its thread; reap what it makes
            future.add_done_callback(self._reap_orphan)
            raise
        except ImageNotFound as e:
            raise SandboxStartError(f"Image not found: {create_kwargs['image']}: {e}")
        except APIError as e:
            raise SandboxStartError(f"Failed to create execution unit: {e}")

    def _reap_orphan(self, future: "asyncio.Future") -> None:
        if future.cancelled() or future.exception() is not None:
            return
        container = future.result()
        logger.warning(
            "Reaping execution unit created after cancellation",
            container_id=container.id[:12],
        )
        task = asyncio.ensure_future(self._teardown(container))
        self._reap_tasks.add(task)
        task.add_done_callback(self._reap_tasks.discard)

    async def _start_unit(self, container: Container, backend: IsolationBackend) -> None:
        try:
            await run_in_executor(container.start)
        except APIError as e:
            raise SandboxStartError(f"Failed to start execution unit: {e}")

        # Fixed settle delay, not a readiness poll
        await asyncio.sleep(
            self._sandbox_config.settle_delay_seconds(
                backend == IsolationBackend.SANDBOXED
            )
        )

        try:
            await run_in_executor(container.reload)
        except APIError as e:
            raise SandboxStartError(f"Failed to inspect execution unit: {e}")

        state = get_container_state(container)
        running = state.get("Running", container.status == "running")
        if running:
            return

        logs = await run_in_executor(read_container_logs, container, self._log_tail)
        status = state.get("Status") or container.status
        exit_code = state.get("ExitCode")
        logger.error(
            "Execution unit failed to start",
            container_id=container.id[:12],
            status=status,
            exit_code=exit_code,
            logs=logs,
        )
        raise SandboxStartError(
            f"Execution unit is not running (status: {status}, exit code: "
            f"{exit_code}). Logs: {logs}",
            container_status=status,
            exit_code=exit_code,
            logs=logs,
        )

    async def _snapshot_stats(self, container: Container) -> Optional[Dict[str, Any]]:
        try:
            return await run_in_executor(container.stats, stream=False)
        except Exception as e:
            logger.warning(
                "Stats snapshot unavailable",
                container_id=container.id[:12],
                error=str(e),
            )
            return None

    def _measure(
        self,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        container: Container,
    ) -> ResourceUsage:
        try:
            return compute_resource_usage(before, after)
        except ResourceStatError as e:
            logger.warning(
                "Resource usage unavailable, reporting zeros",
                container_id=container.id[:12],
                error=e.message,
            )
            return ZERO_USAGE

    async def _teardown(self, container: Container) -> None:
        try:
            error = await run_in_executor(
                stop_and_remove, container, self._stop_timeout
            )
        except Exception as e:
            error = str(e)
        if error:
            logger.warning(
                "Execution unit teardown failed",
                container_id=container.id[:12],
                error=error,
            )


def _encode_payload(payload: Any) -> str:
    return json.dumps(payload)
