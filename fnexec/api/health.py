"""Health check endpoints."""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import settings
from ..dependencies import DockerFactoryDep, MetricsServiceDep, RecordStoreDep
from ..services.container import run_in_executor

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", summary="Basic health check")
async def basic_health_check():
    """Liveness probe that touches no dependency."""
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "fnexec",
    }


@router.get("/health/detailed", summary="Detailed health check")
async def detailed_health_check(
    docker_factory: DockerFactoryDep,
    store: RecordStoreDep,
    metrics_service: MetricsServiceDep,
):
    """Check the container engine and the record store.

    The engine being unreachable degrades the service (direct execution
    still works); a failing store makes it unhealthy.
    """
    services = {}

    docker_ok = await run_in_executor(docker_factory.ping)
    services["docker"] = {"status": "healthy" if docker_ok else "unhealthy"}

    try:
        functions_count = await store.count_functions()
        services["store"] = {
            "status": "healthy",
            "backend": settings.record_store_backend,
            "functions": functions_count,
        }
    except Exception as e:
        logger.error("Record store health check failed", error=str(e))
        services["store"] = {
            "status": "unhealthy",
            "backend": settings.record_store_backend,
            "error": str(e) if settings.api_debug else "Store check failed",
        }

    if services["store"]["status"] != "healthy":
        overall, status_code = "unhealthy", 503
    elif not docker_ok:
        overall, status_code = "degraded", 200
    else:
        overall, status_code = "healthy", 200

    return JSONResponse(
        status_code=status_code,
        content={
            "status": overall,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": services,
            "counters": metrics_service.get_counters(),
        },
        headers={"X-Health-Status": overall},
    )
