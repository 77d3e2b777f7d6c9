"""Unit tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from fnexec.dependencies import (
    get_docker_factory,
    get_function_service,
    get_metrics_service,
    get_record_store,
)
from fnexec.main import app
from fnexec.models.errors import BuildError, ExecutionError
from fnexec.models.execution import ExecutionResult
from fnexec.models.function import IsolationBackend, Language
from fnexec.services.functions import FunctionService
from fnexec.services.orchestrator import ExecutionOrchestrator
from fnexec.services.strategies import StrategyTable

PY_ECHO = {
    "name": "echo",
    "route": "/echo",
    "code": "return {'echo': event}",
    "language": "python",
}


@pytest.fixture
def strategy():
    strategy = MagicMock()
    strategy.name = "container"
    strategy.build = AsyncMock(return_value="function-echo:2")
    strategy.execute = AsyncMock(
        side_effect=lambda function, payload, request_id: ExecutionResult(
            data={"echo": payload}, execution_time=5.0, memory_usage=2048, cpu_usage=1.0
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
def client(memory_store, metrics_service, strategy, reclaimer, docker_factory):
    table = StrategyTable(
        {
            (language, backend): strategy
            for language in Language
            for backend in IsolationBackend
        }
    )
    orchestrator = ExecutionOrchestrator(
        store=memory_store,
        strategies=table,
        metrics_service=metrics_service,
        reclaimer=reclaimer,
    )
    service = FunctionService(memory_store, orchestrator)

    app.dependency_overrides[get_function_service] = lambda: service
    app.dependency_overrides[get_metrics_service] = lambda: metrics_service
    app.dependency_overrides[get_record_store] = lambda: memory_store
    app.dependency_overrides[get_docker_factory] = lambda: docker_factory
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, **overrides):
    body = dict(PY_ECHO)
    body.update(overrides)
    return client.post("/api/functions", json=body)


class TestFunctionCrud:
    """Create, read, update and delete."""

    def test_create_deploys(self, client):
        response = create(client)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "ready"
        assert body["image_ref"] == "function-echo:2"
        assert body["deployment_count"] == 1
        assert body["timeout"] == 30000
        assert body["isolation_backend"] == "standard"

    def test_duplicate_name_or_route_conflicts(self, client):
        create(client)

        assert create(client, route="/other").status_code == 409
        assert create(client, name="other").status_code == 409

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "bad name!"},
            {"route": "no-slash"},
            {"timeout": 0},
            {"timeout": 300001},
            {"language": "ruby"},
            {"isolation_backend": "vm"},
            {"code": ""},
            {"environment": {"A": {"nested": 1}}},
        ],
    )
    def test_validation_errors_are_400(self, client, overrides):
        response = create(client, **overrides)

        assert response.status_code == 400
        assert response.json()["error_type"] == "validation"

    def test_failed_deploy_leaves_record_in_error(self, client, strategy):
        strategy.build.side_effect = BuildError("Image build failed: pull denied")

        response = create(client)

        assert response.status_code == 500
        assert response.json()["error_type"] == "deployment_failed"
        (function,) = client.get("/api/functions").json()
        assert function["status"] == "error"
        assert function["image_ref"] is None

    def test_get_and_list(self, client):
        function_id = create(client).json()["id"]

        assert client.get(f"/api/functions/{function_id}").json()["name"] == "echo"
        assert len(client.get("/api/functions").json()) == 1

    def test_get_missing_is_404(self, client):
        response = client.get("/api/functions/missing")

        assert response.status_code == 404
        assert response.json()["error_type"] == "resource_not_found"

    def test_update_code_redeploys(self, client, strategy):
        function_id = create(client).json()["id"]
        strategy.build.return_value = "function-echo:3"

        response = client.put(f"/api/functions/{function_id}", json={"code": "return 1"})

        assert response.status_code == 200
        assert response.json()["deployment_count"] == 2
        assert response.json()["image_ref"] == "function-echo:3"

    def test_update_timeout_keeps_image(self, client, strategy):
        function_id = create(client).json()["id"]

        response = client.put(f"/api/functions/{function_id}", json={"timeout": 1000})

        assert response.json()["timeout"] == 1000
        assert response.json()["deployment_count"] == 1
        assert strategy.build.await_count == 1

    def test_update_to_taken_name_conflicts(self, client):
        create(client)
        other_id = create(client, name="other", route="/other").json()["id"]

        response = client.put(f"/api/functions/{other_id}", json={"name": "echo"})

        assert response.status_code == 409

    def test_explicit_redeploy(self, client, strategy):
        function_id = create(client).json()["id"]

        response = client.post(f"/api/functions/{function_id}/deploy")

        assert response.status_code == 200
        assert response.json()["deployment_count"] == 2
        assert strategy.build.await_count == 2

    def test_delete_reclaims_then_removes_record(self, client, reclaimer):
        function_id = create(client).json()["id"]

        response = client.delete(f"/api/functions/{function_id}")

        assert response.status_code == 200
        assert response.json()["id"] == function_id
        reclaimer.delete.assert_awaited_once()
        assert client.get(f"/api/functions/{function_id}").status_code == 404


class TestInvoke:
    """Invocation over HTTP."""

    def test_success(self, client):
        function_id = create(client).json()["id"]

        response = client.post(f"/api/functions/{function_id}/invoke", json={"a": 1})

        assert response.status_code == 200
        body = response.json()
        assert body["result"] == {"echo": {"a": 1}}
        assert body["status"] == "success"
        assert body["cold_start"] is True
        assert body["memory_usage"] == 2048
        assert body["request_id"]

    def test_empty_body_is_empty_event(self, client):
        function_id = create(client).json()["id"]

        response = client.post(f"/api/functions/{function_id}/invoke")

        assert response.json()["result"] == {"echo": {}}

    def test_invalid_json_rejected_without_metric(self, client, strategy):
        function_id = create(client).json()["id"]

        response = client.post(
            f"/api/functions/{function_id}/invoke",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_type"] == "validation"
        strategy.execute.assert_not_called()
        assert client.get("/api/metrics/system").json()["statistics"]["total_invocations"] == 0

    def test_function_error_is_500_with_metric(self, client, strategy):
        function_id = create(client).json()["id"]
        strategy.execute.side_effect = ExecutionError("Error: boom", exit_code=1)

        response = client.post(f"/api/functions/{function_id}/invoke", json={})

        assert response.status_code == 500
        assert response.json()["error"] == "Error: boom"
        assert response.json()["error_type"] == "execution_failed"
        stats = client.get(f"/api/metrics/function/{function_id}").json()["statistics"]
        assert stats["errors_count"] == 1

    def test_not_ready_is_409(self, client, strategy):
        strategy.build.side_effect = BuildError("nope")
        create(client)
        (function,) = client.get("/api/functions").json()

        response = client.post(f"/api/functions/{function['id']}/invoke", json={})

        assert response.status_code == 409
        assert response.json()["error_type"] == "not_ready"

    def test_invoke_missing_function_is_404(self, client):
        assert client.post("/api/functions/missing/invoke", json={}).status_code == 404


class TestMetricsEndpoints:
    def test_function_metrics(self, client):
        function_id = create(client).json()["id"]
        client.post(f"/api/functions/{function_id}/invoke", json={})
        client.post(f"/api/functions/{function_id}/invoke", json={})

        body = client.get(
            f"/api/metrics/function/{function_id}", params={"timeRange": "1h"}
        ).json()

        assert body["time_range"] == "1h"
        assert body["statistics"]["total_invocations"] == 2
        assert body["statistics"]["cold_starts"] == 1
        assert len(body["metrics"]) == 2

    def test_unknown_time_range_defaults_to_24h(self, client):
        function_id = create(client).json()["id"]

        body = client.get(
            f"/api/metrics/function/{function_id}", params={"timeRange": "2w"}
        ).json()

        assert body["time_range"] == "24h"

    def test_function_metrics_for_missing_function(self, client):
        assert client.get("/api/metrics/function/missing").status_code == 404

    def test_system_metrics(self, client):
        function_id = create(client).json()["id"]
        client.post(f"/api/functions/{function_id}/invoke", json={})

        body = client.get("/api/metrics/system").json()

        assert body["functions_count"] == 1
        assert body["statistics"]["status_breakdown"]["success"] == 1
        assert len(body["recent_invocations"]) == 1


class TestHealth:
    def test_basic(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_healthy(self, client):
        response = client.get("/health/detailed")

        assert response.status_code == 200
        assert response.json()["services"]["docker"]["status"] == "healthy"

    def test_detailed_degraded_without_docker(self, client, docker_factory):
        docker_factory.ping.return_value = False

        response = client.get("/health/detailed")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
