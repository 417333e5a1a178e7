from __future__ import annotations

from pathlib import Path
from types import TracebackType
from typing import List, Optional, Type

from app.core.logging import get_logger


class TemporaryArtifacts:
    """Scoped registry of local files created during one ingestion.

    Every registered path is removed when the ``with`` block exits, whichever
    stage failed. Removal is best-effort: errors are logged and never replace
    the exception that ended the block. ``cleanup`` may be called repeatedly
    and only ever touches registered paths.
    """

    def __init__(self) -> None:
        self._paths: List[Path] = []
        self.logger = get_logger(component="temp_artifacts")

    def register(self, path: Path) -> Path:
        if path not in self._paths:
            self._paths.append(path)
        return path

    @property
    def paths(self) -> tuple[Path, ...]:
        return tuple(self._paths)

    def cleanup(self) -> None:
        for path in reversed(self._paths):
            try:
                path.unlink(missing_ok=True)
                self.logger.debug("temp_artifact_removed", path=str(path))
            except OSError as exc:
                self.logger.warning("temp_cleanup_failed", path=str(path), error=str(exc))

    def __enter__(self) -> "TemporaryArtifacts":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.cleanup()


__all__ = ["TemporaryArtifacts"]
