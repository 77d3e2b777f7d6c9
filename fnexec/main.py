"""Main FastAPI application for the function execution platform."""

# Standard library imports
from contextlib import asynccontextmanager

# Third-party imports
import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Local application imports
from . import __version__
from .api import functions, health, metrics
from .config import settings
from .dependencies import get_docker_factory, get_record_store
from .services.container import run_in_executor
from .utils.error_handlers import register_exception_handlers
from .utils.logging import setup_logging

# Setup logging
setup_logging()
logger = structlog.get_logger()


async def _startup_store() -> None:
    """Open the record store. Failure aborts startup."""
    store = get_record_store()
    await store.start()
    logger.info("Record store started", backend=settings.record_store_backend)


async def _check_docker() -> None:
    """Warn when the container engine is unreachable.

    Only the container-backed strategies need it, so the service still starts.
    """
    docker_factory = get_docker_factory()
    if await run_in_executor(docker_factory.ping):
        logger.info("Docker engine reachable")
    else:
        logger.warning(
            "Docker engine unreachable - container-backed deployments will fail"
        )


async def _shutdown_services() -> None:
    try:
        await get_record_store().stop()
        logger.info("Record store stopped")
    except Exception as e:
        logger.error("Error stopping record store", error=str(e))

    try:
        get_docker_factory().close()
    except Exception as e:
        logger.error("Error closing Docker client", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting function execution platform", version=__version__)

    if settings.api_debug:
        logger.warning("Debug mode is enabled - disable in production")

    await _startup_store()
    await _check_docker()

    logger.info("Function execution platform startup completed")

    yield

    logger.info("Shutting down function execution platform")
    await _shutdown_services()
    logger.info("Function execution platform shutdown completed")


app = FastAPI(
    title="Function Execution Platform",
    description="Deploys user functions into isolated execution units and invokes them on demand",
    version=__version__,
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    debug=settings.api_debug,
    lifespan=lifespan,
)

if settings.enable_cors:
    origins = settings.cors_origins if settings.cors_origins else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    logger.info("CORS enabled", origins=origins)

register_exception_handlers(app)

app.include_router(functions.router)
app.include_router(metrics.router)
app.include_router(health.router)


def run_server():
    logger.info(f"Starting HTTP server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "fnexec.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
        access_log=settings.enable_access_logs,
        timeout_keep_alive=120,
    )


if __name__ == "__main__":
    run_server()
