"""Function execution platform.

Renders user functions into runnable artifacts, builds container images for
them and invokes them on demand with resource accounting.
"""

__version__ = "1.0.0"
