"""Resource usage computed from two container stats snapshots."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ...models.errors import ResourceStatError


@dataclass(frozen=True)
class ResourceUsage:
    """Memory (bytes) and CPU (percent) used by one execution."""

    memory_usage: int = 0
    cpu_usage: float = 0.0


ZERO_USAGE = ResourceUsage()


def _memory_cache(memory_stats: Dict[str, Any]) -> int:
    # cgroup v1 reports "cache", cgroup v2 only "inactive_file"
    detail = memory_stats.get("stats") or {}
    for key in ("cache", "inactive_file", "total_inactive_file"):
        if key in detail:
            return int(detail[key] or 0)
    return 0


def compute_memory_usage(after: Dict[str, Any]) -> int:
    """Working-set memory: usage minus page cache, never negative."""
    memory_stats = after.get("memory_stats") or {}
    if "usage" not in memory_stats:
        raise ResourceStatError("memory usage missing from stats snapshot")
    usage = int(memory_stats["usage"] or 0)
    return max(usage - _memory_cache(memory_stats), 0)


def compute_cpu_usage(before: Dict[str, Any], after: Dict[str, Any]) -> float:
    """CPU percent between two snapshots, scaled by online CPUs."""
    try:
        cpu_after = after["cpu_stats"]
        cpu_before = before["cpu_stats"]
        cpu_delta = (
            cpu_after["cpu_usage"]["total_usage"]
            - cpu_before["cpu_usage"]["total_usage"]
        )
        system_delta = cpu_after.get("system_cpu_usage", 0) - cpu_before.get(
            "system_cpu_usage", 0
        )
    except (KeyError, TypeError) as e:
        raise ResourceStatError(f"cpu usage missing from stats snapshot: {e}")

    online_cpus = cpu_after.get("online_cpus") or len(
        cpu_after["cpu_usage"].get("percpu_usage") or []
    ) or 1

    if system_delta <= 0 or cpu_delta <= 0:
        return 0.0
    return max((cpu_delta / system_delta) * online_cpus * 100.0, 0.0)


def compute_resource_usage(
    before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]
) -> ResourceUsage:
    """Compute usage from before/after snapshots.

    Raises:
        ResourceStatError: If either snapshot is unavailable or incomplete
    """
    if not before or not after:
        raise ResourceStatError("stats snapshot unavailable")
    return ResourceUsage(
        memory_usage=compute_memory_usage(after),
        cpu_usage=round(compute_cpu_usage(before, after), 4),
    )
