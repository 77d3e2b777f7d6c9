"""Unit tests for the execution orchestrator."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from fnexec.models.errors import (
    BuildError,
    DeploymentError,
    ExecutionError,
    FunctionNotFoundError,
    MissingArtifactError,
    NotReadyError,
    TimeoutError as InvocationTimeoutError,
)
from fnexec.models.execution import ExecutionResult
from fnexec.models.function import FunctionStatus, IsolationBackend, Language
from fnexec.models.metrics import MetricFilter
from fnexec.services.orchestrator import ExecutionOrchestrator
from fnexec.services.strategies import StrategyTable


@pytest.fixture
def strategy():
    """A strategy that builds "function-echo:2" and echoes payloads."""
    strategy = MagicMock()
    strategy.name = "container"
    strategy.build = AsyncMock(return_value="function-echo:2")
    strategy.execute = AsyncMock(
        side_effect=lambda function, payload, request_id: ExecutionResult(
            data={"echo": payload},
            execution_time=12.5,
            memory_usage=4096,
            cpu_usage=3.0,
        )
    )
    return strategy


@pytest.fixture
def reclaimer():
    reclaimer = MagicMock()
    reclaimer.delete = AsyncMock()
    reclaimer.remove_image = AsyncMock(return_value=True)
    return reclaimer


@pytest.fixture
def orchestrator(memory_store, metrics_service, strategy, reclaimer):
    return ExecutionOrchestrator(
        store=memory_store,
        strategies=StrategyTable(
            {(Language.PYTHON, IsolationBackend.STANDARD): strategy}
        ),
        metrics_service=metrics_service,
        reclaimer=reclaimer,
        max_concurrent_builds=2,
    )


@pytest_asyncio.fixture
async def stored_function(memory_store, make_function):
    """A ready function persisted in the store."""
    function = make_function(image_ref="function-echo:1")
    await memory_store.save_function(function)
    return function


async def all_metrics(store):
    return await store.query_metrics(MetricFilter())


class TestDeploy:
    """Tests for the deployment state machine."""

    @pytest.mark.asyncio
    async def test_success_sets_ready_and_counts(
        self, orchestrator, memory_store, make_function
    ):
        function = make_function(status=FunctionStatus.CREATING, image_ref=None)
        await memory_store.save_function(function)

        image_ref = await orchestrator.deploy(function)

        assert image_ref == "function-echo:2"
        stored = await memory_store.get_function(function.id)
        assert stored.status == FunctionStatus.READY
        assert stored.image_ref == "function-echo:2"
        assert stored.deployment_count == 1
        assert function.status == FunctionStatus.READY

    @pytest.mark.asyncio
    async def test_status_is_creating_while_building(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        seen = {}

        async def build(artifact, function):
            seen["status"] = (await memory_store.get_function(function.id)).status
            seen["files"] = sorted(artifact.files)
            return "function-echo:2"

        strategy.build.side_effect = build

        await orchestrator.deploy(stored_function)

        assert seen["status"] == FunctionStatus.CREATING
        assert seen["files"] == ["function.py", "wrapper.py"]

    @pytest.mark.asyncio
    async def test_failure_sets_error_and_keeps_previous_image(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        strategy.build.side_effect = BuildError("Image build failed: bad base")

        with pytest.raises(DeploymentError) as exc_info:
            await orchestrator.deploy(stored_function)

        assert "bad base" in exc_info.value.message
        stored = await memory_store.get_function(stored_function.id)
        assert stored.status == FunctionStatus.ERROR
        assert stored.image_ref == "function-echo:1"
        assert stored.deployment_count == 0

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_wrapped(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        strategy.build.side_effect = RuntimeError("disk full")

        with pytest.raises(DeploymentError):
            await orchestrator.deploy(stored_function)

        stored = await memory_store.get_function(stored_function.id)
        assert stored.status == FunctionStatus.ERROR

    @pytest.mark.asyncio
    async def test_unsupported_pair_fails_deployment(
        self, orchestrator, memory_store, make_function
    ):
        function = make_function(
            language=Language.JAVASCRIPT, isolation_backend=IsolationBackend.SANDBOXED
        )
        await memory_store.save_function(function)

        with pytest.raises(DeploymentError):
            await orchestrator.deploy(function)

        assert (await memory_store.get_function(function.id)).status == FunctionStatus.ERROR

    @pytest.mark.asyncio
    async def test_redeploy_removes_previous_image(
        self, orchestrator, reclaimer, stored_function
    ):
        await orchestrator.deploy(stored_function)

        reclaimer.remove_image.assert_awaited_once_with(
            "function-echo:1", function_id=stored_function.id
        )

    @pytest.mark.asyncio
    async def test_same_image_ref_is_not_removed(
        self, orchestrator, reclaimer, strategy, stored_function
    ):
        strategy.build.return_value = "function-echo:1"

        await orchestrator.deploy(stored_function)

        reclaimer.remove_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_redeploy_removes_nothing(
        self, orchestrator, reclaimer, strategy, stored_function
    ):
        strategy.build.side_effect = BuildError("nope")

        with pytest.raises(DeploymentError):
            await orchestrator.deploy(stored_function)

        reclaimer.remove_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_builds_are_bounded(
        self, orchestrator, memory_store, strategy, make_function
    ):
        functions = [make_function(name=f"fn{i}") for i in range(5)]
        for function in functions:
            await memory_store.save_function(function)

        active = 0
        peak = 0

        async def build(artifact, function):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return f"function-{function.name}:2"

        strategy.build.side_effect = build

        await asyncio.gather(*(orchestrator.deploy(f) for f in functions))

        assert peak == 2

    @pytest.mark.asyncio
    async def test_deploys_of_one_function_are_serialized(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        active = 0
        peak = 0

        async def build(artifact, function):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return "function-echo:2"

        strategy.build.side_effect = build

        await asyncio.gather(
            orchestrator.deploy(stored_function), orchestrator.deploy(stored_function)
        )

        assert peak == 1
        stored = await memory_store.get_function(stored_function.id)
        assert stored.deployment_count == 2


class TestInvoke:
    """Tests for invocation outcomes and metrics."""

    @pytest.mark.asyncio
    async def test_success(self, orchestrator, memory_store, stored_function):
        result = await orchestrator.invoke(stored_function, {"a": 1}, "req-1")

        assert result.data == {"echo": {"a": 1}}
        assert result.cold_start is True

        stored = await memory_store.get_function(stored_function.id)
        assert stored.last_invoked is not None

        metrics = await all_metrics(memory_store)
        assert len(metrics) == 1
        metric = metrics[0]
        assert metric.status == "success"
        assert metric.status_code == 200
        assert metric.memory_usage == 4096
        assert metric.cpu_usage == 3.0
        assert metric.execution_time == 12.5
        assert metric.cold_start is True
        assert metric.request_id == "req-1"
        assert metric.isolation_backend == "standard"

    @pytest.mark.asyncio
    async def test_second_invocation_is_warm(self, orchestrator, stored_function):
        await orchestrator.invoke(stored_function, {}, "req-1")
        result = await orchestrator.invoke(stored_function, {}, "req-2")

        assert result.cold_start is False

    @pytest.mark.asyncio
    async def test_concurrent_first_invocations_have_one_cold_start(
        self, orchestrator, stored_function
    ):
        results = await asyncio.gather(
            *(orchestrator.invoke(stored_function, {"n": n}, f"req-{n}") for n in range(4))
        )

        assert sum(1 for r in results if r.cold_start) == 1
        assert sorted(r.data["echo"]["n"] for r in results) == [0, 1, 2, 3]

    @pytest.mark.parametrize("status", [FunctionStatus.CREATING, FunctionStatus.ERROR])
    @pytest.mark.asyncio
    async def test_not_ready_is_rejected_without_metric(
        self, orchestrator, memory_store, strategy, make_function, status
    ):
        function = make_function(status=status)
        await memory_store.save_function(function)

        with pytest.raises(NotReadyError):
            await orchestrator.invoke(function, {}, "req-1")

        strategy.execute.assert_not_called()
        assert await all_metrics(memory_store) == []

    @pytest.mark.asyncio
    async def test_missing_image_is_rejected_without_metric(
        self, orchestrator, memory_store, strategy, make_function
    ):
        function = make_function(image_ref=None)
        await memory_store.save_function(function)

        with pytest.raises(MissingArtifactError):
            await orchestrator.invoke(function, {}, "req-1")

        strategy.execute.assert_not_called()
        assert await all_metrics(memory_store) == []

    @pytest.mark.asyncio
    async def test_execution_error_records_metric_and_reraises(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        strategy.execute.side_effect = ExecutionError("Error: boom", exit_code=1)

        with pytest.raises(ExecutionError) as exc_info:
            await orchestrator.invoke(stored_function, {}, "req-1")

        assert exc_info.value.request_id == "req-1"
        metrics = await all_metrics(memory_store)
        assert len(metrics) == 1
        assert metrics[0].status == "error"
        assert metrics[0].status_code == 500
        assert metrics[0].memory_usage == 0
        assert metrics[0].cpu_usage == 0.0
        assert metrics[0].error_message == "Error: boom"
        assert metrics[0].execution_time >= 0

    @pytest.mark.asyncio
    async def test_error_does_not_set_last_invoked(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        strategy.execute.side_effect = ExecutionError("Error: boom")

        with pytest.raises(ExecutionError):
            await orchestrator.invoke(stored_function, {}, "req-1")

        stored = await memory_store.get_function(stored_function.id)
        assert stored.last_invoked is None

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        strategy.execute.side_effect = RuntimeError("socket closed")

        with pytest.raises(ExecutionError):
            await orchestrator.invoke(stored_function, {}, "req-1")

        metrics = await all_metrics(memory_store)
        assert metrics[0].status == "error"

    @pytest.mark.asyncio
    async def test_timeout_cancels_and_records_504(
        self, orchestrator, memory_store, strategy, make_function
    ):
        cancelled = asyncio.Event()

        async def slow(function, payload, request_id):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        strategy.execute.side_effect = slow
        function = make_function(timeout=50)
        await memory_store.save_function(function)

        with pytest.raises(InvocationTimeoutError) as exc_info:
            await orchestrator.invoke(function, {}, "req-1")

        assert exc_info.value.status_code == 504
        assert cancelled.is_set()
        metrics = await all_metrics(memory_store)
        assert len(metrics) == 1
        assert metrics[0].status == "timeout"
        assert metrics[0].status_code == 504
        assert metrics[0].execution_time >= 40

    @pytest.mark.asyncio
    async def test_metric_write_failure_does_not_fail_invocation(
        self, orchestrator, memory_store, stored_function
    ):
        memory_store.create_metric = AsyncMock(side_effect=RuntimeError("store down"))

        result = await orchestrator.invoke(stored_function, {"a": 1}, "req-1")

        assert result.data == {"echo": {"a": 1}}

    @pytest.mark.asyncio
    async def test_deleted_during_invocation_still_returns(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        async def delete_then_return(function, payload, request_id):
            await memory_store.delete_function(function.id)
            return ExecutionResult(data=1)

        strategy.execute.side_effect = delete_then_return

        result = await orchestrator.invoke(stored_function, {}, "req-1")

        assert result.data == 1
        with pytest.raises(FunctionNotFoundError):
            await memory_store.get_function(stored_function.id)


class TestUpdate:
    @pytest.mark.asyncio
    async def test_code_change_triggers_redeploy(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        updated = await orchestrator.update(stored_function, {"code": "return 2"})

        strategy.build.assert_awaited_once()
        assert updated.code == "return 2"
        assert updated.image_ref == "function-echo:2"
        assert (await memory_store.get_function(stored_function.id)).code == "return 2"

    @pytest.mark.asyncio
    async def test_timeout_change_does_not_redeploy(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        updated = await orchestrator.update(stored_function, {"timeout": 1000})

        strategy.build.assert_not_awaited()
        assert updated.timeout == 1000
        assert updated.image_ref == "function-echo:1"
        assert (await memory_store.get_function(stored_function.id)).timeout == 1000

    @pytest.mark.asyncio
    async def test_unchanged_code_does_not_redeploy(
        self, orchestrator, strategy, stored_function
    ):
        await orchestrator.update(stored_function, {"code": stored_function.code})

        strategy.build.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_new_code_is_never_stored_as_ready_before_rebuild(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        saved = []
        save_function = memory_store.save_function

        async def recording_save(record):
            saved.append((record.code, record.status))
            return await save_function(record)

        memory_store.save_function = recording_save

        await orchestrator.update(stored_function, {"code": "return 2"})

        assert saved == [
            ("return 2", FunctionStatus.CREATING),
            ("return 2", FunctionStatus.READY),
        ]

    @pytest.mark.asyncio
    async def test_invoke_during_redeploy_is_rejected(
        self, orchestrator, memory_store, strategy, stored_function
    ):
        building = asyncio.Event()
        finish = asyncio.Event()

        async def build(artifact, function):
            building.set()
            await finish.wait()
            return "function-echo:2"

        strategy.build.side_effect = build
        update = asyncio.create_task(
            orchestrator.update(stored_function, {"code": "return 2"})
        )
        await building.wait()

        current = await memory_store.get_function(stored_function.id)
        with pytest.raises(NotReadyError):
            await orchestrator.invoke(current, {}, "req-mid")

        finish.set()
        await update
        strategy.execute.assert_not_awaited()


class TestReclaim:
    @pytest.mark.asyncio
    async def test_delegates_to_reclaimer(self, orchestrator, reclaimer, stored_function):
        await orchestrator.reclaim(stored_function)

        reclaimer.delete.assert_awaited_once_with(stored_function)
