"""
Language registry for function runtimes.

Each entry describes how a rendered artifact for that language is laid out
and which interpreter runs it, both inside a built image and on the host.
"""

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class LanguageConfig:
    """Configuration for a function runtime language."""

    code: str  # Language identifier stored on function records
    name: str  # Display name
    file_extension: str  # Extension of the rendered handler and wrapper
    container_interpreter: str  # Interpreter inside the built image
    default_base_image: str  # Base image when no override is configured
    environment: Dict[str, str] = None  # Additional environment variables

    def __post_init__(self):
        if self.environment is None:
            object.__setattr__(self, "environment", {})

    @property
    def handler_filename(self) -> str:
        return f"function.{self.file_extension}"

    @property
    def wrapper_filename(self) -> str:
        return f"wrapper.{self.file_extension}"


LANGUAGES: Dict[str, LanguageConfig] = {
    "javascript": LanguageConfig(
        code="javascript",
        name="JavaScript",
        file_extension="js",
        container_interpreter="node",
        default_base_image="node:16-alpine",
        environment={"NODE_ENV": "production"},
    ),
    "python": LanguageConfig(
        code="python",
        name="Python",
        file_extension="py",
        container_interpreter="python",
        default_base_image="python:3.9-alpine",
        environment={"PYTHONUNBUFFERED": "1", "PYTHONDONTWRITEBYTECODE": "1"},
    ),
}


def get_language(code: str) -> LanguageConfig:
    """Get configuration for a language.

    Raises:
        KeyError: If the language is not registered
    """
    return LANGUAGES[code.lower().strip()]


def is_supported_language(code: str) -> bool:
    """Check if a language is supported."""
    return bool(code) and code.lower().strip() in LANGUAGES


def get_supported_languages() -> List[str]:
    """Get list of supported language codes."""
    return list(LANGUAGES.keys())
