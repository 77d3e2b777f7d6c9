"""Scoped, disposable working directories.

Build contexts (and direct execution scratch space) are created under a
single root, keyed by a generated id, and removed when their scope exits.
"""

import shutil
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional

import structlog

from ...config import settings
from ...utils.id_generator import generate_build_id

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BuildContext:
    """A directory owned by exactly one build or execution."""

    build_id: str
    path: Path

    def write_files(self, files: Dict[str, str]) -> None:
        """Write text files relative to the context root."""
        for relative_path, content in files.items():
            target = (self.path / relative_path).resolve()
            if self.path.resolve() not in target.parents:
                raise ValueError(f"Path escapes build context: {relative_path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")


class BuildContextArena:
    """Allocates context directories and guarantees their removal."""

    def __init__(self, root: Optional[str] = None, prefix: str = "build"):
        self._root = Path(root or settings.sandbox.build_workspace_dir)
        self._prefix = prefix
        self._active: Dict[str, Path] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def active_count(self) -> int:
        return len(self._active)

    @contextmanager
    def acquire(self) -> Iterator[BuildContext]:
        """Create a fresh directory and remove it when the block exits."""
        build_id = generate_build_id()
        path = self._root / f"{self._prefix}-{build_id}"
        path.mkdir(parents=True, exist_ok=False)
        self._active[build_id] = path
        logger.debug("Context acquired", build_id=build_id, path=str(path))
        try:
            yield BuildContext(build_id=build_id, path=path)
        finally:
            self.release(build_id)

    def release(self, build_id: str) -> bool:
        """Remove a context directory.

        Returns:
            True if the context was active and has been released
        """
        path = self._active.pop(build_id, None)
        if path is None:
            return False
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Failed to remove context directory",
                build_id=build_id,
                path=str(path),
                error=str(e),
            )
        return True
