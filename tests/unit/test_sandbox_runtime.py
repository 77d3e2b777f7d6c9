"""Unit tests for the container-backed sandbox runtime."""

import asyncio
import json
import threading
import time
from unittest.mock import MagicMock

import pytest
from docker.errors import APIError, ImageNotFound

from fnexec.models.errors import (
    ExecutionError,
    InvalidOutputError,
    SandboxStartError,
)
from fnexec.models.execution import ExecutionStatus
from fnexec.models.function import IsolationBackend
from fnexec.services.sandbox import ResourceLimits, SandboxRuntime

LIMITS = ResourceLimits(memory_bytes=128 * 1024 * 1024, cpu_period=100000, cpu_quota=50000)


@pytest.fixture
def container(stats_snapshots):
    """A container that starts, runs and echoes its payload."""
    container = MagicMock()
    container.id = "c0ffee1234567890"
    container.status = "running"
    container.attrs = {"State": {"Running": True, "Status": "running", "ExitCode": 0}}
    container.stats.side_effect = list(stats_snapshots)
    container.exec_run.return_value = (0, (b'{"echo": {"a": 1}}\n', None))
    container.logs.return_value = b""
    return container


@pytest.fixture
def runtime(docker_factory, mock_docker_client, container):
    mock_docker_client.containers.create.return_value = container
    return SandboxRuntime(docker_factory)


async def _run(runtime, backend=IsolationBackend.STANDARD, payload=None, language="python"):
    return await runtime.run(
        image_ref="function-echo:1",
        environment={"GREETING": "hi"},
        payload={"a": 1} if payload is None else payload,
        limits=LIMITS,
        backend=backend,
        language=language,
        labels={"com.fnexec.function-id": "fn-1"},
    )


class TestCreateKwargs:
    def test_standard_has_limits_and_no_runtime(self, docker_factory):
        kwargs = SandboxRuntime(docker_factory).build_create_kwargs(
            "img:1", {"K": "V"}, LIMITS, IsolationBackend.STANDARD
        )

        assert kwargs["mem_limit"] == LIMITS.memory_bytes
        assert kwargs["memswap_limit"] == LIMITS.memory_bytes
        assert kwargs["cpu_period"] == 100000
        assert kwargs["cpu_quota"] == 50000
        assert kwargs["environment"] == {"K": "V"}
        assert "runtime" not in kwargs

    def test_sandboxed_selects_runsc_with_same_limits(self, docker_factory):
        kwargs = SandboxRuntime(docker_factory).build_create_kwargs(
            "img:1", {}, LIMITS, IsolationBackend.SANDBOXED
        )

        assert kwargs["runtime"] == "runsc"
        assert kwargs["mem_limit"] == LIMITS.memory_bytes


class TestRun:
    """Tests for a single invocation."""

    @pytest.mark.asyncio
    async def test_success_returns_data_and_usage(self, runtime, container):
        result = await _run(runtime)

        assert result.status == ExecutionStatus.SUCCESS
        assert result.status_code == 200
        assert result.data == {"echo": {"a": 1}}
        assert result.memory_usage == 8 * 1024 * 1024
        assert result.cpu_usage == pytest.approx(10.0)
        assert result.execution_time >= 0

    @pytest.mark.asyncio
    async def test_exec_command_passes_payload_as_argument(self, runtime, container):
        await _run(runtime, payload={"k": [1, 2]})

        command = container.exec_run.call_args.args[0]
        assert command == ["python", "/app/wrapper.py", json.dumps({"k": [1, 2]})]
        assert container.exec_run.call_args.kwargs["demux"] is True

    @pytest.mark.asyncio
    async def test_javascript_uses_node(self, runtime, container):
        await _run(runtime, language="javascript")

        assert container.exec_run.call_args.args[0][:2] == ["node", "/app/wrapper.js"]

    @pytest.mark.asyncio
    async def test_unit_torn_down_once_on_success(self, runtime, container):
        await _run(runtime)

        container.stop.assert_called_once()
        container.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_stderr_raises_execution_error_and_tears_down(self, runtime, container):
        container.exec_run.return_value = (1, (None, b"Error: boom\n"))

        with pytest.raises(ExecutionError) as exc_info:
            await _run(runtime)

        assert "boom" in exc_info.value.message
        container.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_invalid_output(self, runtime, container):
        container.exec_run.return_value = (0, (b"not json\n", None))

        with pytest.raises(InvalidOutputError):
            await _run(runtime)
        container.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_stats_failure_reports_zero_usage(self, runtime, container):
        container.stats.side_effect = APIError("stats unavailable")

        result = await _run(runtime)

        assert result.data == {"echo": {"a": 1}}
        assert result.memory_usage == 0
        assert result.cpu_usage == 0.0

    @pytest.mark.asyncio
    async def test_not_running_after_settle_raises_with_logs(self, runtime, container):
        container.status = "exited"
        container.attrs = {"State": {"Running": False, "Status": "exited", "ExitCode": 127}}
        container.logs.return_value = b"exec format error\n"

        with pytest.raises(SandboxStartError) as exc_info:
            await _run(runtime)

        error = exc_info.value
        assert error.container_status == "exited"
        assert error.exit_code == 127
        assert "exec format error" in error.logs
        container.exec_run.assert_not_called()
        container.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_missing_image_raises_start_error(
        self, runtime, mock_docker_client, container
    ):
        mock_docker_client.containers.create.side_effect = ImageNotFound("no such image")

        with pytest.raises(SandboxStartError):
            await _run(runtime)
        container.start.assert_not_called()

    @pytest.mark.asyncio
    async def test_sandboxed_backend_creates_with_runtime(
        self, runtime, mock_docker_client
    ):
        await _run(runtime, backend=IsolationBackend.SANDBOXED)

        create_kwargs = mock_docker_client.containers.create.call_args.kwargs
        assert create_kwargs["runtime"] == "runsc"
        assert create_kwargs["labels"] == {"com.fnexec.function-id": "fn-1"}

    @pytest.mark.asyncio
    async def test_teardown_failure_is_absorbed(self, runtime, container):
        container.remove.side_effect = APIError("removal in progress")

        result = await _run(runtime)

        assert result.status == ExecutionStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_execution_time_excludes_stats_sampling(
        self, runtime, container, stats_snapshots
    ):
        snapshots = iter(stats_snapshots)

        def slow_stats(**kwargs):
            time.sleep(0.3)
            return next(snapshots)

        container.stats.side_effect = slow_stats

        result = await _run(runtime)

        assert result.execution_time < 300
        assert result.cpu_usage == pytest.approx(10.0)


class TestCancellation:
    """The timeout guard cancels a run that is still in flight."""

    @pytest.mark.asyncio
    async def test_cancel_during_exec_tears_unit_down_once(self, runtime, container):
        release = threading.Event()

        def blocking_exec(*args, **kwargs):
            release.wait(5)
            return 0, (b"null\n", None)

        container.exec_run.side_effect = blocking_exec

        try:
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(_run(runtime), 0.1)
        finally:
            release.set()

        container.stop.assert_called_once()
        container.remove.assert_called_once_with(force=True)

    @pytest.mark.asyncio
    async def test_unit_created_after_cancel_is_reaped(
        self, runtime, mock_docker_client, container
    ):
        release = threading.Event()

        def blocking_create(**kwargs):
            release.wait(5)
            return container

        mock_docker_client.containers.create.side_effect = blocking_create

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(_run(runtime), 0.1)
        container.remove.assert_not_called()

        release.set()
        for _ in range(200):
            if container.remove.called and not runtime._reap_tasks:
                break
            await asyncio.sleep(0.01)

        container.start.assert_not_called()
        container.remove.assert_called_once_with(force=True)
        assert not runtime._reap_tasks
