"""Reclamation of engine resources belonging to a function.

Every operation here is best effort: failures are logged as cleanup errors
and never raised, so deleting a function record is never blocked by the
engine.
"""

from typing import Dict, List, Optional

import structlog
from docker.errors import APIError, ImageNotFound, NotFound
from docker.models.containers import Container

from ..models.errors import CleanupError, FunctionPlatformException
from ..models.function import FunctionRecord, is_direct_exec_ref
from .container import DockerClientFactory, run_in_executor
from .image import LABEL_FUNCTION_ID

logger = structlog.get_logger(__name__)


class ResourceReclaimer:
    """Removes a function's execution units and built images."""

    def __init__(self, docker_factory: DockerClientFactory):
        self._docker_factory = docker_factory

    async def delete(self, function: FunctionRecord) -> None:
        """Remove every engine resource of a function. Idempotent, never raises."""
        image_ref = function.image_ref
        if not image_ref or function.uses_direct_exec:
            logger.debug(
                "Nothing to reclaim",
                function_id=function.id,
                image_ref=image_ref,
            )
            return

        try:
            client = self._docker_factory.get_client()
        except FunctionPlatformException as e:
            self._log_failure(CleanupError("docker client", e.message), function.id)
            return

        containers = await self._collect_units(client, function, image_ref)
        for container in containers:
            await self._remove_unit(container, function.id)

        await self.remove_image(image_ref, function_id=function.id)
        logger.info(
            "Function resources reclaimed",
            function_id=function.id,
            image_ref=image_ref,
            containers_removed=len(containers),
        )

    async def remove_image(self, image_ref: str, function_id: Optional[str] = None) -> bool:
        """Remove a built image, tolerating "in use" and "not found".

        Returns:
            True if the image was removed
        """
        if not image_ref or is_direct_exec_ref(image_ref):
            return False
        try:
            client = self._docker_factory.get_client()
            await run_in_executor(client.images.remove, image=image_ref)
            logger.info("Image removed", function_id=function_id, image_ref=image_ref)
            return True
        except ImageNotFound:
            logger.debug("Image already removed", image_ref=image_ref)
            return False
        except APIError as e:
            if e.status_code == 409:
                logger.warning(
                    "Image is in use and was not removed",
                    function_id=function_id,
                    image_ref=image_ref,
                )
            else:
                self._log_failure(CleanupError(f"image {image_ref}", str(e)), function_id)
            return False
        except Exception as e:
            self._log_failure(CleanupError(f"image {image_ref}", str(e)), function_id)
            return False

    async def _collect_units(
        self, client, function: FunctionRecord, image_ref: str
    ) -> List[Container]:
        """Containers labelled with the function id or created from its image."""
        found: Dict[str, Container] = {}
        for filters in (
            {"label": f"{LABEL_FUNCTION_ID}={function.id}"},
            {"ancestor": image_ref},
        ):
            try:
                containers = await run_in_executor(
                    client.containers.list, all=True, filters=filters
                )
            except Exception as e:
                self._log_failure(
                    CleanupError("container listing", str(e)), function.id
                )
                continue
            for container in containers:
                found[container.id] = container
        return list(found.values())

    async def _remove_unit(self, container: Container, function_id: str) -> None:
        try:
            if container.status == "running":
                await run_in_executor(container.stop)
            await run_in_executor(container.remove, force=True)
            logger.debug(
                "Execution unit removed",
                function_id=function_id,
                container_id=container.id[:12],
            )
        except NotFound:
            pass
        except Exception as e:
            self._log_failure(
                CleanupError(f"container {container.id[:12]}", str(e)), function_id
            )

    def _log_failure(self, error: CleanupError, function_id: Optional[str]) -> None:
        logger.warning(
            "Cleanup failed",
            function_id=function_id,
            error_type=error.error_type.value,
            error=error.message,
        )
