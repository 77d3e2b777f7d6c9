"""Request and response models for the HTTP API."""

# Standard library imports
from typing import Any, Dict, Optional

# Third-party imports
from pydantic import BaseModel, Field

# Local application imports
from .function import IsolationBackend, Language

FUNCTION_NAME_PATTERN = r"^[a-zA-Z0-9_-]+$"
FUNCTION_ROUTE_PATTERN = r"^/[a-zA-Z0-9_/-]+$"
MAX_TIMEOUT_MS = 300000


class FunctionCreate(BaseModel):
    """Request model for registering a function."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        pattern=FUNCTION_NAME_PATTERN,
        description="Alphanumeric characters, hyphens and underscores only",
    )
    route: str = Field(
        ...,
        max_length=200,
        pattern=FUNCTION_ROUTE_PATTERN,
        description="Must start with / and contain only URL-safe path characters",
    )
    code: str = Field(..., min_length=1, description="Handler body")
    language: Language
    timeout: int = Field(
        default=30000, gt=0, le=MAX_TIMEOUT_MS, description="Timeout in milliseconds"
    )
    environment: Dict[str, str] = Field(default_factory=dict)
    isolation_backend: IsolationBackend = Field(default=IsolationBackend.STANDARD)


class FunctionUpdate(BaseModel):
    """Request model for updating a function. Omitted fields are unchanged."""

    name: Optional[str] = Field(
        default=None, min_length=1, max_length=100, pattern=FUNCTION_NAME_PATTERN
    )
    route: Optional[str] = Field(
        default=None, max_length=200, pattern=FUNCTION_ROUTE_PATTERN
    )
    code: Optional[str] = Field(default=None, min_length=1)
    language: Optional[Language] = None
    timeout: Optional[int] = Field(default=None, gt=0, le=MAX_TIMEOUT_MS)
    environment: Optional[Dict[str, str]] = None
    isolation_backend: Optional[IsolationBackend] = None

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly provided by the caller."""
        return self.model_dump(exclude_none=True)


class InvokeResponse(BaseModel):
    """Response model for a successful invocation."""

    request_id: str
    result: Any = None
    execution_time: float
    memory_usage: int = 0
    cpu_usage: float = 0.0
    cold_start: bool = False
    status: str = "success"


class DeleteResponse(BaseModel):
    """Response model for function deletion."""

    id: str
    message: str = "Function deleted successfully"
