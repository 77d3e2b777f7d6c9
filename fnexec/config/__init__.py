"""Configuration management for the function execution platform.

This module provides a single Settings class with flat fields read from the
environment (or a ``.env`` file) and grouped views over them.

Usage:
    from fnexec.config import settings

    # Access grouped settings
    settings.sandbox.sandboxed_runtime
    settings.resources.get_memory_limit_bytes()

    # Or the flat fields
    settings.sandboxed_runtime
    settings.get_base_image("python")
"""

from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Import grouped configurations
from .resources import ResourcesConfig
from .logging import LoggingConfig
from .sandbox import SandboxConfig
from .languages import (
    LANGUAGES,
    LanguageConfig,
    get_language,
    get_supported_languages,
    is_supported_language,
)


class Settings(BaseSettings):
    """Application settings with environment variable support.

    Fields are flat for environment mapping; ``settings.sandbox``,
    ``settings.resources`` and ``settings.logging`` expose them grouped.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # API Configuration
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    api_debug: bool = Field(default=False)
    api_reload: bool = Field(default=False)
    enable_docs: bool = Field(default=True)
    enable_cors: bool = Field(default=False)
    cors_origins: List[str] = Field(default_factory=list)

    # Container engine
    docker_base_url: Optional[str] = Field(
        default=None,
        description="Docker daemon URL; the environment (DOCKER_HOST) is used when unset",
    )
    docker_timeout: int = Field(default=120, ge=5, le=600)

    # Base images per language
    javascript_base_image: str = Field(default="node:16-alpine")
    python_base_image: str = Field(default="python:3.9-alpine")

    # Execution unit configuration
    sandboxed_runtime: str = Field(
        default="runsc",
        description="Container runtime requested for the sandboxed backend",
    )
    standard_settle_delay_ms: int = Field(
        default=500,
        ge=0,
        le=10000,
        description="Fixed wait after starting a standard execution unit",
    )
    sandboxed_settle_delay_ms: int = Field(
        default=1000,
        ge=0,
        le=10000,
        description="Fixed wait after starting a sandboxed execution unit",
    )
    container_log_tail: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Log lines collected when an execution unit fails to start",
    )
    container_stop_timeout: int = Field(default=1, ge=0, le=30)
    container_app_dir: str = Field(default="/app")

    # Resource Limits
    container_memory_limit_mb: int = Field(default=128, ge=16, le=4096)
    container_cpu_period: int = Field(default=100000, ge=1000, le=1000000)
    container_cpu_quota: int = Field(
        default=50000, ge=1000, description="50% of one core with the default period"
    )
    max_concurrent_builds: int = Field(
        default=4, ge=1, le=64, description="Concurrent image builds across functions"
    )

    # Workspaces
    build_workspace_dir: str = Field(
        default="/tmp/fnexec/builds",
        description="Root directory for disposable build contexts",
    )
    direct_exec_base_dir: str = Field(
        default="/tmp/fnexec/direct",
        description="Root directory for direct (host) execution scratch space",
    )

    # Direct execution interpreters (host)
    direct_python_interpreter: str = Field(default="python3")
    direct_javascript_interpreter: str = Field(default="node")

    # Record store
    record_store_backend: str = Field(
        default="memory", description="Record store backend: memory or sqlite"
    )
    sqlite_db_path: str = Field(default="data/fnexec.db")
    metrics_recent_limit: int = Field(default=10, ge=1, le=100)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    log_max_size_mb: int = Field(default=100, ge=1)
    log_backup_count: int = Field(default=5, ge=1)
    enable_access_logs: bool = Field(default=True)

    @field_validator("record_store_backend")
    @classmethod
    def validate_record_store_backend(cls, v):
        """Only the in-memory and SQLite stores exist."""
        v = v.lower().strip()
        if v not in ("memory", "sqlite"):
            raise ValueError("record_store_backend must be 'memory' or 'sqlite'")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        v = v.lower().strip()
        if v not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        return v

    # ========================================================================
    # GROUPED CONFIG ACCESS
    # ========================================================================

    @property
    def sandbox(self) -> SandboxConfig:
        """Access container engine configuration group."""
        return SandboxConfig(
            docker_base_url=self.docker_base_url,
            docker_timeout=self.docker_timeout,
            sandboxed_runtime=self.sandboxed_runtime,
            standard_settle_delay_ms=self.standard_settle_delay_ms,
            sandboxed_settle_delay_ms=self.sandboxed_settle_delay_ms,
            container_log_tail=self.container_log_tail,
            container_stop_timeout=self.container_stop_timeout,
            build_workspace_dir=self.build_workspace_dir,
            direct_exec_base_dir=self.direct_exec_base_dir,
            container_app_dir=self.container_app_dir,
        )

    @property
    def resources(self) -> ResourcesConfig:
        """Access resources configuration group."""
        return ResourcesConfig(
            container_memory_limit_mb=self.container_memory_limit_mb,
            container_cpu_period=self.container_cpu_period,
            container_cpu_quota=self.container_cpu_quota,
            max_concurrent_builds=self.max_concurrent_builds,
        )

    @property
    def logging(self) -> LoggingConfig:
        """Access logging configuration group."""
        return LoggingConfig(
            log_level=self.log_level,
            log_format=self.log_format,
            log_file=self.log_file,
            log_max_size_mb=self.log_max_size_mb,
            log_backup_count=self.log_backup_count,
            enable_access_logs=self.enable_access_logs,
        )

    # ========================================================================
    # HELPER METHODS
    # ========================================================================

    def get_base_image(self, language: str) -> str:
        """Get the configured base image for a language."""
        overrides = {
            "javascript": self.javascript_base_image,
            "python": self.python_base_image,
        }
        return overrides.get(language) or get_language(language).default_base_image

    def get_direct_interpreter(self, language: str) -> str:
        """Get the host interpreter used for direct execution."""
        interpreters = {
            "javascript": self.direct_javascript_interpreter,
            "python": self.direct_python_interpreter,
        }
        return interpreters[get_language(language).code]


# Global settings instance
settings = Settings()

__all__ = [
    "Settings",
    "settings",
    # Grouped configs
    "ResourcesConfig",
    "LoggingConfig",
    "SandboxConfig",
    # Language configuration
    "LANGUAGES",
    "LanguageConfig",
    "get_language",
    "get_supported_languages",
    "is_supported_language",
]
