"""Services package for the function execution platform."""

from .artifact import Artifact, ArtifactRenderer
from .container import DockerClientFactory
from .direct import DirectExecutor
from .functions import FunctionService
from .image import DirectExecBuilder, ImageBuilder
from .interfaces import RecordStoreInterface
from .metrics import MetricsService
from .orchestrator import ExecutionOrchestrator
from .reclaimer import ResourceReclaimer
from .sandbox import ResourceLimits, SandboxRuntime
from .store import InMemoryRecordStore, SQLiteRecordStore, create_record_store
from .strategies import (
    ContainerStrategy,
    DirectStrategy,
    ExecutionStrategy,
    StrategyTable,
    build_default_strategies,
)

__all__ = [
    "Artifact",
    "ArtifactRenderer",
    "ContainerStrategy",
    "DirectExecBuilder",
    "DirectExecutor",
    "DirectStrategy",
    "DockerClientFactory",
    "ExecutionOrchestrator",
    "ExecutionStrategy",
    "FunctionService",
    "ImageBuilder",
    "InMemoryRecordStore",
    "MetricsService",
    "RecordStoreInterface",
    "ResourceLimits",
    "ResourceReclaimer",
    "SQLiteRecordStore",
    "SandboxRuntime",
    "StrategyTable",
    "build_default_strategies",
    "create_record_store",
]
