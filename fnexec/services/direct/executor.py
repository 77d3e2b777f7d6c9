"""Direct execution of rendered artifacts on the host.

Used when the container build is skipped. The artifact is written to a
scoped scratch directory and run by the host interpreter in a subprocess.

Isolation here is strictly weaker than the container paths: no memory or
CPU limits are applied and the process shares the host kernel and
filesystem view of the service user.
"""

import asyncio
import os
import signal
import time
from typing import Any, Dict, Optional

import structlog

from ...config import settings
from ...config.languages import get_language
from ...models.errors import ExecutionError
from ...models.execution import ExecutionResult, ExecutionStatus
from ..artifact import Artifact
from ..execution.output import decode_stream, interpret_output
from ..image.context import BuildContextArena

logger = structlog.get_logger(__name__)

DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"


class DirectExecutor:
    """Runs an artifact once in a host subprocess."""

    def __init__(self, arena: Optional[BuildContextArena] = None):
        self._arena = arena or BuildContextArena(
            root=settings.sandbox.direct_exec_base_dir, prefix="exec"
        )

    async def run(
        self,
        artifact: Artifact,
        payload: Any,
        environment: Optional[Dict[str, str]] = None,
    ) -> ExecutionResult:
        """Execute an artifact against a payload.

        Cancelling the calling task kills the whole process group.

        Args:
            artifact: Rendered sources
            payload: JSON-serializable request payload
            environment: Function environment variables

        Returns:
            ExecutionResult with parsed data; resource fields are zero

        Raises:
            ExecutionError: If the interpreter is missing or the function fails
            InvalidOutputError: If the function output breaks the protocol
        """
        interpreter = settings.get_direct_interpreter(artifact.language)

        with self._arena.acquire() as context:
            context.write_files(artifact.files)
            command = artifact.invocation_command(
                interpreter, str(context.path), payload
            )
            env = self._build_sanitized_env(
                artifact.language, str(context.path), environment
            )

            logger.debug(
                "Direct execution without resource limits",
                language=artifact.language,
                build_id=context.build_id,
            )

            start = time.perf_counter()
            try:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=str(context.path),
                    env=env,
                    start_new_session=True,  # New process group for clean kill
                )
            except OSError as e:
                raise ExecutionError(f"Failed to start {interpreter}: {e}")

            try:
                stdout_bytes, stderr_bytes = await proc.communicate()
            except asyncio.CancelledError:
                await self._kill(proc)
                logger.warning(
                    "Direct execution cancelled, process group killed",
                    pid=proc.pid,
                    build_id=context.build_id,
                )
                raise
            execution_time = (time.perf_counter() - start) * 1000

        data = interpret_output(
            decode_stream(stdout_bytes), decode_stream(stderr_bytes), proc.returncode
        )
        return ExecutionResult(
            data=data,
            execution_time=execution_time,
            memory_usage=0,
            cpu_usage=0.0,
            status=ExecutionStatus.SUCCESS,
            status_code=200,
        )

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            proc.kill()
        await proc.wait()

    def _build_sanitized_env(
        self,
        language: str,
        workdir: str,
        environment: Optional[Dict[str, str]],
    ) -> Dict[str, str]:
        """Build environment whitelist for execution."""
        env: Dict[str, str] = {
            "PATH": os.environ.get("PATH", DEFAULT_PATH),
            "HOME": workdir,
            "TMPDIR": workdir,
            "LANG": "C.UTF-8",
        }
        env.update(get_language(language).environment)
        if language == "python":
            env["PYTHONPATH"] = workdir
        env.update(environment or {})
        return env
