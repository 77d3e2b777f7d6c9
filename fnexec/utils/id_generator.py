"""Identifier generation helpers."""

import uuid


def generate_request_id() -> str:
    """Generate a unique request ID for invocation and error tracking."""
    return str(uuid.uuid4())


def generate_build_id() -> str:
    """Generate a short unique ID for a build context."""
    return uuid.uuid4().hex[:16]
