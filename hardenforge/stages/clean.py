"""Clean: remove the rendered build file and the run's build metadata."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, ClassVar

from hardenforge.core.errors import IOFailureError
from hardenforge.stages.base import BaseStage

logger = logging.getLogger(__name__)


class CleanStage(BaseStage):
    """Best-effort cleanup.  Failures are reported, never fatal to the run."""

    is_gate: ClassVar[bool] = False

    def __init__(self, *, paths: list[Path]) -> None:
        self.paths = [Path(p) for p in paths]

    @property
    def stage_id(self) -> str:
        return "clean"

    @property
    def display_name(self) -> str:
        return "Clean"

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        removed: list[str] = []
        failures: list[str] = []
        for path in self.paths:
            if not path.exists():
                continue
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Failed to remove %s: %s", path, exc)
                failures.append(f"{path}: {exc}")
                continue
            logger.info("Removed %s", path)
            removed.append(str(path))

        if failures:
            raise IOFailureError("could not remove " + "; ".join(failures))
        return {"removed": removed}
