"""Image building."""

from .builder import (
    DirectExecBuilder,
    ImageBuilder,
    function_labels,
    LABEL_BACKEND,
    LABEL_FUNCTION_ID,
    LABEL_MANAGED,
    LABEL_REQUEST_ID,
)
from .context import BuildContext, BuildContextArena

__all__ = [
    "BuildContext",
    "BuildContextArena",
    "DirectExecBuilder",
    "ImageBuilder",
    "function_labels",
    "LABEL_BACKEND",
    "LABEL_FUNCTION_ID",
    "LABEL_MANAGED",
    "LABEL_REQUEST_ID",
]
