"""Sandbox (container engine) configuration."""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SandboxConfig(BaseSettings):
    """Container engine and execution unit lifecycle settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    docker_base_url: Optional[str] = Field(default=None)
    docker_timeout: int = Field(default=120, ge=5, le=600)
    sandboxed_runtime: str = Field(default="runsc")
    standard_settle_delay_ms: int = Field(default=500, ge=0, le=10000)
    sandboxed_settle_delay_ms: int = Field(default=1000, ge=0, le=10000)
    container_log_tail: int = Field(default=50, ge=1, le=1000)
    container_stop_timeout: int = Field(default=1, ge=0, le=30)
    build_workspace_dir: str = Field(default="/tmp/fnexec/builds")
    direct_exec_base_dir: str = Field(default="/tmp/fnexec/direct")
    container_app_dir: str = Field(default="/app")

    def settle_delay_seconds(self, sandboxed: bool) -> float:
        """Fixed wait after starting an execution unit."""
        delay = (
            self.sandboxed_settle_delay_ms if sandboxed else self.standard_settle_delay_ms
        )
        return delay / 1000.0
