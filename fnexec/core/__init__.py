"""Core concurrency primitives."""

from .locks import KeyedLock

__all__ = ["KeyedLock"]
