"""Output protocol shared by every execution path.

Success is exactly one line of valid JSON on stdout with nothing on stderr.
"""

import json
from typing import Any, Optional

from ...models.errors import ExecutionError, InvalidOutputError

MAX_ERROR_OUTPUT = 4000


def decode_stream(data: Optional[bytes]) -> str:
    """Decode a captured stream, tolerating invalid UTF-8."""
    if not data:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")


def parse_output(stdout: str) -> Any:
    """Parse stdout strictly as a single JSON line.

    Raises:
        InvalidOutputError: If stdout is empty, has more than one line, or
            is not valid JSON
    """
    lines = [line for line in stdout.splitlines() if line.strip()]
    if not lines:
        raise InvalidOutputError("no output produced", raw_output=stdout)
    if len(lines) > 1:
        raise InvalidOutputError(
            f"expected exactly one line of JSON, got {len(lines)}",
            raw_output=stdout[:MAX_ERROR_OUTPUT],
        )
    try:
        return json.loads(lines[0])
    except ValueError as e:
        raise InvalidOutputError(str(e), raw_output=stdout[:MAX_ERROR_OUTPUT])


def interpret_output(stdout: str, stderr: str, exit_code: Optional[int]) -> Any:
    """Apply the output protocol to one finished execution.

    Args:
        stdout: Decoded standard output
        stderr: Decoded standard error
        exit_code: Process exit code, if known

    Returns:
        The parsed JSON value

    Raises:
        ExecutionError: If anything was written to stderr or the exit code
            is non-zero
        InvalidOutputError: If stdout does not hold exactly one JSON line
    """
    if stderr.strip():
        raise ExecutionError(
            stderr.strip()[:MAX_ERROR_OUTPUT], stderr=stderr, exit_code=exit_code
        )
    if exit_code not in (0, None):
        raise ExecutionError(
            f"Function exited with code {exit_code}", exit_code=exit_code
        )
    return parse_output(stdout)
