"""Host subprocess execution."""

from .executor import DirectExecutor

__all__ = ["DirectExecutor"]
