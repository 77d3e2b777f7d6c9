"""Container engine access.

- client.py: Docker client factory and initialization
- utils.py: Shared utilities for container operations
"""

from .client import DockerClientFactory
from .utils import (
    get_container_state,
    read_container_logs,
    run_in_executor,
    stop_and_remove,
)

__all__ = [
    "DockerClientFactory",
    "get_container_state",
    "read_container_logs",
    "run_in_executor",
    "stop_and_remove",
]
