"""File primitives shared by the baseline and metadata stores.

``atomic_write_text`` writes to a sibling temp file, fsyncs, and renames
over the target, so a reader only ever sees the old or the new content.
``FileLease`` is an advisory lock file created with ``O_CREAT | O_EXCL``.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from types import TracebackType

from hardenforge.core.errors import BaselineLockedError, IOFailureError

logger = logging.getLogger(__name__)


def atomic_write_text(path: Path, content: str) -> None:
    """Replace *path* with *content*, or leave it untouched on failure."""
    path = Path(path)
    temp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="",
            delete=False,
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except OSError as exc:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise IOFailureError(f"cannot write {path}: {exc}") from exc


class FileLease:
    """Advisory, non-blocking lock held for the duration of a ``with`` block."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._held = False

    def acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            holder = self._holder()
            raise BaselineLockedError(
                f"{self.path} is held{f' by pid {holder}' if holder else ''}; "
                "another reconciliation or pipeline run is in progress"
            ) from exc
        except OSError as exc:
            raise IOFailureError(f"cannot create lock {self.path}: {exc}") from exc
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(str(os.getpid()))
        self._held = True
        logger.debug("acquired %s", self.path)

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False
            logger.debug("released %s", self.path)

    def _holder(self) -> str:
        try:
            return self.path.read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def __enter__(self) -> FileLease:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
