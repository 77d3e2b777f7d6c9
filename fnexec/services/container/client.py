"""Docker client factory and initialization."""

from typing import Optional

import docker
import structlog
from docker.errors import DockerException

from ...config import settings
from ...models.errors import ServiceUnavailableError

logger = structlog.get_logger(__name__)


class DockerClientFactory:
    """Creates and caches a single Docker client for the process.

    The client is created lazily so that importing the service layer never
    requires a reachable engine.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None):
        sandbox_config = settings.sandbox
        self._base_url = base_url or sandbox_config.docker_base_url
        self._timeout = timeout or sandbox_config.docker_timeout
        self._client: Optional[docker.DockerClient] = None

    def get_client(self) -> docker.DockerClient:
        """Get the Docker client, creating it on first use.

        Raises:
            ServiceUnavailableError: If the Docker engine cannot be reached
        """
        if self._client is not None:
            return self._client

        try:
            if self._base_url:
                client = docker.DockerClient(
                    base_url=self._base_url, timeout=self._timeout
                )
            else:
                client = docker.from_env(timeout=self._timeout)
        except DockerException as e:
            logger.error("Failed to create Docker client", error=str(e))
            raise ServiceUnavailableError("docker", f"Docker is not available: {e}")

        self._client = client
        logger.info("Docker client initialized", base_url=self._base_url or "env")
        return client

    def ping(self) -> bool:
        """Check whether the engine responds."""
        try:
            return bool(self.get_client().ping())
        except Exception as e:
            logger.warning("Docker ping failed", error=str(e))
            return False

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            finally:
                self._client = None
