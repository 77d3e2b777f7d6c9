"""Shared utilities for container operations."""

import asyncio
import functools
from typing import Any, Dict, Optional

import structlog
from docker.errors import APIError, NotFound
from docker.models.containers import Container

logger = structlog.get_logger(__name__)


async def run_in_executor(func, *args, **kwargs):
    """
    Run a blocking function in the default thread pool executor.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    if kwargs:
        func = functools.partial(func, *args, **kwargs)
        args = ()
    return await loop.run_in_executor(None, func, *args)


def get_container_state(container: Container) -> Dict[str, Any]:
    """Get the engine's State block for a reloaded container."""
    attrs = getattr(container, "attrs", None)
    if not isinstance(attrs, dict):
        return {}
    state = attrs.get("State")
    return state if isinstance(state, dict) else {}


def read_container_logs(container: Container, tail: int) -> str:
    """Read the last ``tail`` log lines of a container.

    Returns:
        Decoded log text, or an empty string if logs are unavailable
    """
    try:
        logs = container.logs(stdout=True, stderr=True, tail=tail)
    except (APIError, NotFound) as e:
        logger.debug("Could not read container logs", error=str(e))
        return ""
    if isinstance(logs, bytes):
        return logs.decode("utf-8", errors="replace")
    return str(logs or "")


def stop_and_remove(container: Container, stop_timeout: int = 1) -> Optional[str]:
    """Stop then force-remove a container.

    Blocking. Intended to be run through ``run_in_executor``.

    Returns:
        None on success, otherwise a description of the failure
    """
    errors = []
    try:
        container.stop(timeout=stop_timeout)
    except NotFound:
        return None
    except APIError as e:
        errors.append(f"stop: {e}")
    try:
        container.remove(force=True)
    except NotFound:
        pass
    except APIError as e:
        errors.append(f"remove: {e}")
    return "; ".join(errors) or None
