"""Execution strategies keyed by (language, isolation backend).

Each strategy pairs a builder with the executor able to run what the
builder produced:

    javascript / standard   -> ImageBuilder(standard)  + SandboxRuntime
    python     / standard   -> ImageBuilder(standard)  + SandboxRuntime
    javascript / sandboxed  -> ImageBuilder(sandboxed) + SandboxRuntime (runsc)
    python     / sandboxed  -> DirectExecBuilder        + DirectExecutor
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

import structlog

from ..models.errors import UnsupportedLanguageError
from ..models.execution import ExecutionResult
from ..models.function import FunctionRecord, IsolationBackend, Language
from .artifact import Artifact, ArtifactRenderer
from .container import DockerClientFactory
from .direct import DirectExecutor
from .image import (
    DirectExecBuilder,
    ImageBuilder,
    LABEL_REQUEST_ID,
    function_labels,
)
from .sandbox import ResourceLimits, SandboxRuntime

logger = structlog.get_logger(__name__)

StrategyKey = Tuple[Language, IsolationBackend]


class ExecutionStrategy(ABC):
    """Builds and runs functions of one (language, backend) pair."""

    name: str = "strategy"

    @abstractmethod
    async def build(self, artifact: Artifact, function: FunctionRecord) -> str:
        """Produce the image reference for a deployment."""
        pass

    @abstractmethod
    async def execute(
        self, function: FunctionRecord, payload: Any, request_id: str
    ) -> ExecutionResult:
        """Run a deployed function once."""
        pass


class ContainerStrategy(ExecutionStrategy):
    """Image build plus one container per invocation."""

    name = "container"

    def __init__(
        self,
        builder: ImageBuilder,
        runtime: SandboxRuntime,
        limits: Optional[ResourceLimits] = None,
    ):
        self.builder = builder
        self.runtime = runtime
        self.limits = limits or ResourceLimits.from_settings()

    async def build(self, artifact: Artifact, function: FunctionRecord) -> str:
        return await self.builder.build(artifact, function)

    async def execute(
        self, function: FunctionRecord, payload: Any, request_id: str
    ) -> ExecutionResult:
        labels = function_labels(function)
        labels[LABEL_REQUEST_ID] = request_id
        return await self.runtime.run(
            image_ref=function.image_ref,
            environment=function.environment,
            payload=payload,
            limits=self.limits,
            backend=function.isolation_backend,
            language=function.language.value,
            labels=labels,
        )


class DirectStrategy(ExecutionStrategy):
    """No image; the artifact is rendered and run on the host per invocation."""

    name = "direct"

    def __init__(
        self,
        builder: DirectExecBuilder,
        executor: DirectExecutor,
        renderer: ArtifactRenderer,
    ):
        self.builder = builder
        self.executor = executor
        self.renderer = renderer

    async def build(self, artifact: Artifact, function: FunctionRecord) -> str:
        return await self.builder.build(artifact, function)

    async def execute(
        self, function: FunctionRecord, payload: Any, request_id: str
    ) -> ExecutionResult:
        artifact = self.renderer.render(function.language, function.code)
        return await self.executor.run(artifact, payload, function.environment)


class StrategyTable:
    """Capability lookup from (language, backend) to a strategy."""

    def __init__(self, strategies: Dict[StrategyKey, ExecutionStrategy]):
        self._strategies = dict(strategies)

    def resolve(
        self, language: Language, backend: IsolationBackend
    ) -> ExecutionStrategy:
        """Get the strategy for a pair.

        Raises:
            UnsupportedLanguageError: If the pair has no strategy
        """
        language_name = getattr(language, "value", language)
        backend_name = getattr(backend, "value", backend)
        try:
            key = (Language(language), IsolationBackend(backend))
        except ValueError:
            key = None
        strategy = self._strategies.get(key) if key else None
        if strategy is None:
            raise UnsupportedLanguageError(
                str(language_name),
                message=(
                    f"No execution strategy for language {language_name} "
                    f"with backend {backend_name}"
                ),
            )
        return strategy

    def __len__(self) -> int:
        return len(self._strategies)


def build_default_strategies(
    docker_factory: DockerClientFactory,
    renderer: Optional[ArtifactRenderer] = None,
) -> StrategyTable:
    """Wire the default capability table."""
    renderer = renderer or ArtifactRenderer()
    runtime = SandboxRuntime(docker_factory)
    standard = ContainerStrategy(
        ImageBuilder(IsolationBackend.STANDARD, docker_factory), runtime
    )
    sandboxed = ContainerStrategy(
        ImageBuilder(IsolationBackend.SANDBOXED, docker_factory), runtime
    )
    direct = DirectStrategy(DirectExecBuilder(), DirectExecutor(), renderer)

    return StrategyTable(
        {
            (Language.JAVASCRIPT, IsolationBackend.STANDARD): standard,
            (Language.PYTHON, IsolationBackend.STANDARD): standard,
            (Language.JAVASCRIPT, IsolationBackend.SANDBOXED): sandboxed,
            (Language.PYTHON, IsolationBackend.SANDBOXED): direct,
        }
    )
