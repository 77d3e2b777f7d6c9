"""Dependencies package for the function execution platform."""

from .services import (
    DockerFactoryDep,
    FunctionServiceDep,
    MetricsServiceDep,
    RecordStoreDep,
    get_docker_factory,
    get_function_service,
    get_metrics_service,
    get_orchestrator,
    get_record_store,
    reset_services,
)

__all__ = [
    "DockerFactoryDep",
    "FunctionServiceDep",
    "MetricsServiceDep",
    "RecordStoreDep",
    "get_docker_factory",
    "get_function_service",
    "get_metrics_service",
    "get_orchestrator",
    "get_record_store",
    "reset_services",
]
