"""Data models for the function execution platform."""

from .function import (
    FunctionRecord,
    FunctionStatus,
    IsolationBackend,
    Language,
    DIRECT_EXEC_TAG,
    direct_exec_image_ref,
    is_direct_exec_ref,
)
from .execution import ExecutionResult, ExecutionStatus
from .metrics import MetricRecord, MetricFilter, TimeRange
from .api import FunctionCreate, FunctionUpdate, InvokeResponse, DeleteResponse
from .errors import (
    ErrorType,
    ErrorDetail,
    ErrorResponse,
    FunctionPlatformException,
    ValidationError,
    FunctionNotFoundError,
    ConflictError,
    UnsupportedLanguageError,
    BuildError,
    DeploymentError,
    SandboxStartError,
    ExecutionError,
    InvalidOutputError,
    TimeoutError,
    ResourceStatError,
    CleanupError,
    NotReadyError,
    MissingArtifactError,
    ServiceUnavailableError,
)

__all__ = [
    # Function models
    "FunctionRecord",
    "FunctionStatus",
    "IsolationBackend",
    "Language",
    "DIRECT_EXEC_TAG",
    "direct_exec_image_ref",
    "is_direct_exec_ref",
    # Execution models
    "ExecutionResult",
    "ExecutionStatus",
    # Metrics models
    "MetricRecord",
    "MetricFilter",
    "TimeRange",
    # API models
    "FunctionCreate",
    "FunctionUpdate",
    "InvokeResponse",
    "DeleteResponse",
    # Error models
    "ErrorType",
    "ErrorDetail",
    "ErrorResponse",
    "FunctionPlatformException",
    "ValidationError",
    "FunctionNotFoundError",
    "ConflictError",
    "UnsupportedLanguageError",
    "BuildError",
    "DeploymentError",
    "SandboxStartError",
    "ExecutionError",
    "InvalidOutputError",
    "TimeoutError",
    "ResourceStatError",
    "CleanupError",
    "NotReadyError",
    "MissingArtifactError",
    "ServiceUnavailableError",
]
