"""Function record data models."""

# Standard library imports
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

# Third-party imports
from pydantic import BaseModel, Field

# Image tag suffix meaning "no image was built, execute directly on the host"
DIRECT_EXEC_TAG = "direct-exec"

# Fields whose change invalidates the built image
REDEPLOY_FIELDS = frozenset({"code", "language", "isolation_backend"})


class Language(str, Enum):
    """Supported function languages."""

    JAVASCRIPT = "javascript"
    PYTHON = "python"


class IsolationBackend(str, Enum):
    """Isolation strategy a function is deployed with."""

    STANDARD = "standard"
    SANDBOXED = "sandboxed"


class FunctionStatus(str, Enum):
    """Deployment status of a function."""

    CREATING = "creating"
    READY = "ready"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def direct_exec_image_ref(function_name: str) -> str:
    """Image reference recorded for functions that run on the host."""
    return f"function-sandboxed-{function_name.lower()}:{DIRECT_EXEC_TAG}"


def is_direct_exec_ref(image_ref: Optional[str]) -> bool:
    """Check whether an image reference is the direct execution sentinel."""
    return bool(image_ref) and image_ref.endswith(f":{DIRECT_EXEC_TAG}")


class FunctionRecord(BaseModel):
    """A registered user function and its deployment state.

    ``status == ready`` holds only while ``image_ref`` points at the image
    produced by the last successful build.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str = Field(..., description="Unique function name")
    route: str = Field(..., description="Unique invocation route")
    code: str = Field(default="", description="Handler body")
    language: Language
    timeout: int = Field(
        default=30000, gt=0, le=300000, description="Execution timeout in milliseconds"
    )
    environment: Dict[str, str] = Field(default_factory=dict)
    isolation_backend: IsolationBackend = Field(default=IsolationBackend.STANDARD)
    image_ref: Optional[str] = Field(
        default=None, description="Built image reference or direct execution sentinel"
    )
    status: FunctionStatus = Field(default=FunctionStatus.CREATING)
    last_invoked: Optional[datetime] = None
    deployment_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_ready(self) -> bool:
        return self.status == FunctionStatus.READY

    @property
    def uses_direct_exec(self) -> bool:
        return is_direct_exec_ref(self.image_ref)

    def requires_redeploy(self, changes: Dict[str, Any]) -> bool:
        """Check whether applying ``changes`` invalidates the built image."""
        for field_name in REDEPLOY_FIELDS:
            if field_name in changes and changes[field_name] is not None:
                if changes[field_name] != getattr(self, field_name):
                    return True
        return False

    def touch(self) -> None:
        self.updated_at = _utcnow()
