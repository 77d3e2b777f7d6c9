"""Pytest configuration and shared fixtures."""

import os
import tempfile
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

# Set test environment before importing config
# Use setdefault to allow environment variables to override defaults
_TEST_ROOT = tempfile.mkdtemp(prefix="fnexec-tests-")
os.environ.setdefault("RECORD_STORE_BACKEND", "memory")
os.environ.setdefault("BUILD_WORKSPACE_DIR", os.path.join(_TEST_ROOT, "builds"))
os.environ.setdefault("DIRECT_EXEC_BASE_DIR", os.path.join(_TEST_ROOT, "direct"))
os.environ.setdefault("STANDARD_SETTLE_DELAY_MS", "0")
os.environ.setdefault("SANDBOXED_SETTLE_DELAY_MS", "0")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fnexec.models.function import (  # noqa: E402
    FunctionRecord,
    FunctionStatus,
    IsolationBackend,
    Language,
)
from fnexec.models.metrics import MetricRecord  # noqa: E402
from fnexec.services.image.context import BuildContextArena  # noqa: E402
from fnexec.services.metrics import MetricsService  # noqa: E402
from fnexec.services.store import InMemoryRecordStore  # noqa: E402


@pytest.fixture
def make_function():
    """Factory for function records with sensible defaults."""

    def _make(
        name: str = "echo",
        route: Optional[str] = None,
        code: str = "return event",
        language: Language = Language.PYTHON,
        isolation_backend: IsolationBackend = IsolationBackend.STANDARD,
        status: FunctionStatus = FunctionStatus.READY,
        image_ref: Optional[str] = "function-echo:1700000000000",
        **kwargs: Any,
    ) -> FunctionRecord:
        return FunctionRecord(
            name=name,
            route=route or f"/{name}",
            code=code,
            language=language,
            isolation_backend=isolation_backend,
            status=status,
            image_ref=image_ref,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_metric():
    """Factory for metric records."""

    def _make(
        function_id: str = "fn-1",
        status: str = "success",
        execution_time: float = 10.0,
        timestamp: Optional[datetime] = None,
        **kwargs: Any,
    ) -> MetricRecord:
        values: Dict[str, Any] = {
            "memory_usage": 1024,
            "cpu_usage": 1.5,
            "status_code": 200 if status == "success" else 500,
            "isolation_backend": "standard",
            "request_id": "req-1",
        }
        values.update(kwargs)
        return MetricRecord(
            function_id=function_id,
            execution_time=execution_time,
            status=status,
            timestamp=timestamp or datetime.now(timezone.utc),
            **values,
        )

    return _make


@pytest.fixture
def memory_store():
    """Fresh in-memory record store."""
    return InMemoryRecordStore()


@pytest.fixture
def metrics_service(memory_store):
    return MetricsService(memory_store)


@pytest.fixture
def arena(tmp_path):
    """Build context arena rooted in a temporary directory."""
    return BuildContextArena(root=str(tmp_path / "contexts"))


@pytest.fixture
def mock_docker_client():
    """Mock Docker client for testing."""
    client = MagicMock()
    client.ping.return_value = True
    client.images.build.return_value = (MagicMock(id="sha256:abc"), iter([]))
    client.images.remove.return_value = None
    client.containers.list.return_value = []
    return client


@pytest.fixture
def docker_factory(mock_docker_client):
    """Mock DockerClientFactory returning the mock client."""
    factory = MagicMock()
    factory.get_client.return_value = mock_docker_client
    factory.ping.return_value = True
    return factory


def _make_stats(
    total_usage: int,
    system_usage: int,
    memory_usage: int = 10 * 1024 * 1024,
    cache: int = 2 * 1024 * 1024,
    online_cpus: int = 2,
) -> Dict[str, Any]:
    """Build a docker stats snapshot."""
    return {
        "cpu_stats": {
            "cpu_usage": {"total_usage": total_usage},
            "system_cpu_usage": system_usage,
            "online_cpus": online_cpus,
        },
        "memory_stats": {"usage": memory_usage, "stats": {"cache": cache}},
    }


@pytest.fixture
def stats_snapshots():
    """Before/after stats pair: 10% delta on two CPUs, 8 MiB working set."""
    return (
        _make_stats(total_usage=1_000, system_usage=100_000),
        _make_stats(total_usage=6_000, system_usage=200_000),
    )


@pytest.fixture
def make_stats():
    """Factory for docker stats snapshots."""
    return _make_stats
