"""Abstract base stage with an enforced lifecycle.

Every concrete stage inherits from BaseStage and implements only
``execute()``.  The ``run_stage()`` wrapper is **not overridable**; it
logs, times and records every stage the same way:

    execute -> record result in run_context -> return result

Failures keep their taxonomy type and gain the stage id as their operation.
"""

from __future__ import annotations

import abc
import logging
import time
from typing import Any, ClassVar, final

from hardenforge.core.errors import HardenForgeError

logger = logging.getLogger(__name__)


class BaseStage(abc.ABC):
    """Abstract base for all hardened-image pipeline stages.

    Subclasses **must** implement:
        * ``stage_id``: unique identifier (e.g. ``"verify"``).
        * ``display_name``: human-readable name for logs and tables.
        * ``execute(run_context)``: the stage's core logic.

    Subclasses **must not** override ``run_stage()``.
    """

    # Gate stages abort the run on failure; Clean overrides this.
    is_gate: ClassVar[bool] = True

    @property
    @abc.abstractmethod
    def stage_id(self) -> str:
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        ...

    @abc.abstractmethod
    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        """Execute the stage's core logic.

        Parameters
        ----------
        run_context:
            Mutable dict carrying run-wide state: ``run_id``, ``variant``
            and prior ``stage_results``.

        Returns
        -------
        dict:
            Structured result for the run summary.
        """
        ...

    @final
    def run_stage(self, run_context: dict[str, Any]) -> dict[str, Any]:
        """Execute the full stage lifecycle.  **Do not override.**"""
        logger.info("%s [%s] starting", self.display_name, self.stage_id)
        started = time.monotonic()
        try:
            result = self.execute(run_context)
        except HardenForgeError as exc:
            exc.in_operation(self.stage_id)
            logger.error(
                "%s [%s] failed: %s", self.display_name, self.stage_id, exc
            )
            raise

        result["duration_seconds"] = round(time.monotonic() - started, 3)
        run_context.setdefault("stage_results", {})[self.stage_id] = result
        logger.info(
            "%s [%s] completed in %.1fs",
            self.display_name,
            self.stage_id,
            result["duration_seconds"],
        )
        return result

    def __repr__(self) -> str:
        gate = " [GATE]" if self.is_gate else ""
        return f"<{type(self).__name__} stage_id={self.stage_id!r}{gate}>"
