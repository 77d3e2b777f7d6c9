"""Error models and exception classes for the function execution platform."""

import time
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class ErrorType(str, Enum):
    """Error type enumeration."""

    VALIDATION = "validation"
    RESOURCE_NOT_FOUND = "resource_not_found"
    RESOURCE_CONFLICT = "resource_conflict"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    BUILD_FAILED = "build_failed"
    DEPLOYMENT_FAILED = "deployment_failed"
    SANDBOX_START_FAILED = "sandbox_start_failed"
    EXECUTION_FAILED = "execution_failed"
    INVALID_OUTPUT = "invalid_output"
    TIMEOUT = "timeout"
    NOT_READY = "not_ready"
    MISSING_ARTIFACT = "missing_artifact"
    RESOURCE_STAT = "resource_stat"
    CLEANUP = "cleanup"
    INTERNAL_SERVER = "internal_server"
    SERVICE_UNAVAILABLE = "service_unavailable"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Standardized error response model."""

    model_config = ConfigDict(use_enum_values=True)

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    request_id: Optional[str] = Field(
        None, description="Request identifier for tracking"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")


# Custom Exception Classes


class FunctionPlatformException(Exception):
    """Base exception for the function execution platform."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INTERNAL_SERVER,
        status_code: int = 500,
        details: Optional[List[ErrorDetail]] = None,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        self.request_id = request_id
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            details=self.details if self.details else None,
            request_id=self.request_id,
        )


class ValidationError(FunctionPlatformException):
    """Request validation errors."""

    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(
            message=message, error_type=ErrorType.VALIDATION, status_code=400, **kwargs
        )


class FunctionNotFoundError(FunctionPlatformException):
    """Requested function record does not exist."""

    def __init__(self, function_id: str, **kwargs):
        self.function_id = function_id
        super().__init__(
            message=f"Function {function_id} not found",
            error_type=ErrorType.RESOURCE_NOT_FOUND,
            status_code=404,
            **kwargs,
        )


class ConflictError(FunctionPlatformException):
    """A function with the same name or route already exists."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.RESOURCE_CONFLICT,
            status_code=409,
            **kwargs,
        )


class UnsupportedLanguageError(FunctionPlatformException):
    """No renderer or strategy exists for the requested language."""

    def __init__(self, language: str, message: Optional[str] = None, **kwargs):
        self.language = language
        super().__init__(
            message=message or f"Unsupported language: {language}",
            error_type=ErrorType.UNSUPPORTED_LANGUAGE,
            status_code=400,
            **kwargs,
        )


class BuildError(FunctionPlatformException):
    """Image build failed in the container engine."""

    def __init__(self, message: str, build_log: Optional[str] = None, **kwargs):
        self.build_log = build_log
        super().__init__(
            message=message,
            error_type=ErrorType.BUILD_FAILED,
            status_code=500,
            **kwargs,
        )


class DeploymentError(FunctionPlatformException):
    """Deployment of a function failed; the record is left in error state."""

    def __init__(self, function_name: str, reason: str, **kwargs):
        self.function_name = function_name
        self.reason = reason
        super().__init__(
            message=f"Failed to deploy function {function_name}: {reason}",
            error_type=ErrorType.DEPLOYMENT_FAILED,
            status_code=500,
            **kwargs,
        )


class SandboxStartError(FunctionPlatformException):
    """Execution unit did not reach a running state."""

    def __init__(
        self,
        message: str,
        container_status: Optional[str] = None,
        exit_code: Optional[int] = None,
        logs: str = "",
        **kwargs,
    ):
        self.container_status = container_status
        self.exit_code = exit_code
        self.logs = logs
        super().__init__(
            message=message,
            error_type=ErrorType.SANDBOX_START_FAILED,
            status_code=500,
            **kwargs,
        )


class ExecutionError(FunctionPlatformException):
    """The function raised, wrote to stderr or exited non-zero."""

    def __init__(
        self,
        message: str,
        stderr: Optional[str] = None,
        exit_code: Optional[int] = None,
        error_type: ErrorType = ErrorType.EXECUTION_FAILED,
        **kwargs,
    ):
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(
            message=message,
            error_type=error_type,
            status_code=500,
            **kwargs,
        )


class InvalidOutputError(ExecutionError):
    """Standard output was not exactly one line of valid JSON."""

    def __init__(self, message: str, raw_output: str = "", **kwargs):
        self.raw_output = raw_output
        super().__init__(
            message=f"Invalid function output: {message}",
            error_type=ErrorType.INVALID_OUTPUT,
            **kwargs,
        )


class TimeoutError(FunctionPlatformException):
    """Execution exceeded the function's timeout and was terminated."""

    def __init__(self, timeout_ms: int, message: Optional[str] = None, **kwargs):
        self.timeout_ms = timeout_ms
        super().__init__(
            message=message or f"Function execution timed out after {timeout_ms}ms",
            error_type=ErrorType.TIMEOUT,
            status_code=504,
            **kwargs,
        )


class ResourceStatError(FunctionPlatformException):
    """Resource statistics could not be read. Non-fatal."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_type=ErrorType.RESOURCE_STAT,
            status_code=500,
            **kwargs,
        )


class CleanupError(FunctionPlatformException):
    """Teardown of an execution unit, image or directory failed. Non-fatal."""

    def __init__(self, resource: str, message: str, **kwargs):
        self.resource = resource
        super().__init__(
            message=f"Cleanup of {resource} failed: {message}",
            error_type=ErrorType.CLEANUP,
            status_code=500,
            **kwargs,
        )


class NotReadyError(FunctionPlatformException):
    """Invocation rejected because the function is not deployed."""

    def __init__(self, function_name: str, status: str, **kwargs):
        self.function_name = function_name
        self.status = status
        super().__init__(
            message=f"Function {function_name} is not ready (status: {status})",
            error_type=ErrorType.NOT_READY,
            status_code=409,
            **kwargs,
        )


class MissingArtifactError(FunctionPlatformException):
    """Invocation rejected because the function has no image reference."""

    def __init__(self, function_name: str, **kwargs):
        self.function_name = function_name
        super().__init__(
            message=f"Function {function_name} has no associated image",
            error_type=ErrorType.MISSING_ARTIFACT,
            status_code=409,
            **kwargs,
        )


class ServiceUnavailableError(FunctionPlatformException):
    """Service unavailable errors."""

    def __init__(self, service: str, message: str = None, **kwargs):
        error_message = message or f"{service} service is currently unavailable"
        super().__init__(
            message=error_message,
            error_type=ErrorType.SERVICE_UNAVAILABLE,
            status_code=503,
            **kwargs,
        )
