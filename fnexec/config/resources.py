"""Resource limits configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ResourcesConfig(BaseSettings):
    """Resource limits for execution units and builds."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    # Execution unit limits
    container_memory_limit_mb: int = Field(default=128, ge=16, le=4096)
    container_cpu_period: int = Field(default=100000, ge=1000, le=1000000)
    container_cpu_quota: int = Field(default=50000, ge=1000)

    # Builds
    max_concurrent_builds: int = Field(default=4, ge=1, le=64)

    def get_memory_limit_bytes(self) -> int:
        """Get the memory cap in bytes."""
        return self.container_memory_limit_mb * 1024 * 1024
