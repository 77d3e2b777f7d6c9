"""Utility modules for the function execution platform."""

from .logging import setup_logging, get_logger
from .id_generator import generate_request_id, generate_build_id

__all__ = [
    "setup_logging",
    "get_logger",
    "generate_request_id",
    "generate_build_id",
]
