"""API endpoints for the function execution platform."""

from . import functions, health, metrics

__all__ = ["functions", "health", "metrics"]
