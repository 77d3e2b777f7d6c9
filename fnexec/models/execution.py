"""Execution result data models."""

# Standard library imports
from enum import Enum
from typing import Any, Optional

# Third-party imports
from pydantic import BaseModel, Field


class ExecutionStatus(str, Enum):
    """Outcome of a single invocation."""

    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class ExecutionResult(BaseModel):
    """Structured result of running a function once."""

    data: Any = Field(default=None, description="Parsed JSON returned by the handler")
    execution_time: float = Field(default=0.0, ge=0, description="Wall time in ms")
    memory_usage: int = Field(default=0, ge=0, description="Memory in bytes")
    cpu_usage: float = Field(default=0.0, ge=0, description="CPU percent")
    status: ExecutionStatus = Field(default=ExecutionStatus.SUCCESS)
    status_code: int = Field(default=200)
    error_message: Optional[str] = None
    cold_start: bool = False
