"""Image builders, one per isolation backend.

Images carry the rendered artifact under the app directory and run an idle
keep-alive command, so an execution unit launches nothing by itself and the
function is invoked with an exec call.
"""

import time
from typing import Dict, List, Optional

import structlog
from docker.errors import APIError, BuildError as DockerBuildError

from ...config import settings
from ...models.errors import BuildError
from ...models.function import (
    FunctionRecord,
    IsolationBackend,
    direct_exec_image_ref,
)
from ..artifact import Artifact
from ..container import DockerClientFactory, run_in_executor
from .context import BuildContextArena

logger = structlog.get_logger(__name__)

LABEL_MANAGED = "com.fnexec.managed"
LABEL_FUNCTION_ID = "com.fnexec.function-id"
LABEL_BACKEND = "com.fnexec.backend"
LABEL_REQUEST_ID = "com.fnexec.request-id"

BUILD_LOG_TAIL = 20

DOCKERFILE_TEMPLATE = """\
FROM {base_image}
WORKDIR {app_dir}
COPY . {app_dir}
{hardening}CMD ["tail", "-f", "/dev/null"]
"""

SANDBOXED_HARDENING = """\
RUN chmod -R a+rX {app_dir}
USER nobody
"""


def function_labels(function: FunctionRecord) -> Dict[str, str]:
    """Labels identifying engine objects that belong to a function."""
    return {
        LABEL_MANAGED: "true",
        LABEL_FUNCTION_ID: function.id,
        LABEL_BACKEND: function.isolation_backend.value,
    }


def _format_build_log(build_log) -> str:
    lines: List[str] = []
    for entry in build_log or []:
        if isinstance(entry, dict):
            text = entry.get("stream") or entry.get("error") or ""
        else:
            text = str(entry)
        lines.extend(line for line in text.splitlines() if line.strip())
    return "\n".join(lines[-BUILD_LOG_TAIL:])


class ImageBuilder:
    """Builds a function image through the Docker image build API."""

    def __init__(
        self,
        backend: IsolationBackend,
        docker_factory: DockerClientFactory,
        arena: Optional[BuildContextArena] = None,
    ):
        self.backend = backend
        self._docker_factory = docker_factory
        self._arena = arena or BuildContextArena()

    def image_tag(self, function_name: str) -> str:
        """Tag for a new build, unique per function and build time."""
        prefix = (
            "function-sandboxed"
            if self.backend == IsolationBackend.SANDBOXED
            else "function"
        )
        return f"{prefix}-{function_name.lower()}:{int(time.time() * 1000)}"

    def render_dockerfile(self, language: str) -> str:
        app_dir = settings.container_app_dir
        hardening = ""
        if self.backend == IsolationBackend.SANDBOXED:
            hardening = SANDBOXED_HARDENING.format(app_dir=app_dir)
        return DOCKERFILE_TEMPLATE.format(
            base_image=settings.get_base_image(language),
            app_dir=app_dir,
            hardening=hardening,
        )

    async def build(self, artifact: Artifact, function: FunctionRecord) -> str:
        """Build an image for a rendered artifact.

        Args:
            artifact: Rendered sources
            function: Function being deployed

        Returns:
            Image reference (the image tag)

        Raises:
            BuildError: If the engine rejects or fails the build
        """
        tag = self.image_tag(function.name)
        labels = function_labels(function)

        with self._arena.acquire() as context:
            files = dict(artifact.files)
            files["Dockerfile"] = self.render_dockerfile(artifact.language)
            context.write_files(files)

            logger.info(
                "Building function image",
                function_id=function.id,
                function_name=function.name,
                backend=self.backend.value,
                tag=tag,
                build_id=context.build_id,
            )
            start = time.perf_counter()
            try:
                client = self._docker_factory.get_client()
                await run_in_executor(
                    client.images.build,
                    path=str(context.path),
                    tag=tag,
                    rm=True,
                    forcerm=True,
                    labels=labels,
                )
            except DockerBuildError as e:
                build_log = _format_build_log(e.build_log)
                logger.error(
                    "Image build failed",
                    function_id=function.id,
                    tag=tag,
                    error=e.msg,
                    build_log=build_log,
                )
                raise BuildError(f"Image build failed: {e.msg}", build_log=build_log)
            except APIError as e:
                logger.error(
                    "Image build rejected by engine",
                    function_id=function.id,
                    tag=tag,
                    error=str(e),
                )
                raise BuildError(f"Image build failed: {e.explanation or e}")

        logger.info(
            "Function image built",
            function_id=function.id,
            tag=tag,
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        return tag


class DirectExecBuilder:
    """Skips the build for functions executed directly on the host."""

    backend = IsolationBackend.SANDBOXED

    async def build(self, artifact: Artifact, function: FunctionRecord) -> str:
        image_ref = direct_exec_image_ref(function.name)
        logger.info(
            "Using direct execution, no image built",
            function_id=function.id,
            function_name=function.name,
            image_ref=image_ref,
        )
        return image_ref
