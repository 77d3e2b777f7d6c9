"""Execution output protocol."""

from .output import decode_stream, interpret_output, parse_output

__all__ = ["decode_stream", "interpret_output", "parse_output"]
