"""Service dependency injection for the function execution platform."""

# Standard library imports
from functools import lru_cache
from typing import Annotated

# Third-party imports
from fastapi import Depends
import structlog

# Local application imports
from ..services import (
    ArtifactRenderer,
    DockerClientFactory,
    ExecutionOrchestrator,
    FunctionService,
    MetricsService,
    ResourceReclaimer,
    build_default_strategies,
    create_record_store,
)
from ..services.interfaces import RecordStoreInterface

logger = structlog.get_logger(__name__)


@lru_cache()
def get_record_store() -> RecordStoreInterface:
    """Get the record store selected by configuration."""
    return create_record_store()


@lru_cache()
def get_docker_factory() -> DockerClientFactory:
    """Get the shared docker client factory."""
    return DockerClientFactory()


@lru_cache()
def get_metrics_service() -> MetricsService:
    """Get metrics service instance."""
    return MetricsService(get_record_store())


@lru_cache()
def get_orchestrator() -> ExecutionOrchestrator:
    """Get the execution orchestrator wired with the default strategies."""
    docker_factory = get_docker_factory()
    renderer = ArtifactRenderer()
    orchestrator = ExecutionOrchestrator(
        store=get_record_store(),
        strategies=build_default_strategies(docker_factory, renderer),
        metrics_service=get_metrics_service(),
        reclaimer=ResourceReclaimer(docker_factory),
        renderer=renderer,
    )
    logger.info("Execution orchestrator initialized")
    return orchestrator


@lru_cache()
def get_function_service() -> FunctionService:
    """Get function service instance."""
    return FunctionService(get_record_store(), get_orchestrator())


def reset_services() -> None:
    """Drop cached service instances."""
    for provider in (
        get_function_service,
        get_orchestrator,
        get_metrics_service,
        get_docker_factory,
        get_record_store,
    ):
        provider.cache_clear()


# Type aliases for dependency injection
RecordStoreDep = Annotated[RecordStoreInterface, Depends(get_record_store)]
MetricsServiceDep = Annotated[MetricsService, Depends(get_metrics_service)]
FunctionServiceDep = Annotated[FunctionService, Depends(get_function_service)]
DockerFactoryDep = Annotated[DockerClientFactory, Depends(get_docker_factory)]
