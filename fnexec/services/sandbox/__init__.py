"""Container execution units and resource accounting."""

from .runtime import ResourceLimits, SandboxRuntime
from .stats import ResourceUsage, compute_resource_usage

__all__ = [
    "ResourceLimits",
    "ResourceUsage",
    "SandboxRuntime",
    "compute_resource_usage",
]
