"""Pipeline orchestrator: the central coordinator for hardened image runs.

The Orchestrator wires the StageMachine and the registered stages into a
single sequential run.  Prepare, Build, Verify and Promote are hard gates:
the first failure stops the run.  Clean is best-effort and only ever ends
in ``passed`` or ``warned``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from hardenforge.config import HardenConfig
from hardenforge.core.errors import HardenForgeError, StageFailedError
from hardenforge.core.stage_machine import StageMachine
from hardenforge.models.pipeline import PipelineRunResult, PipelineVariant, StageOutcome
from hardenforge.models.stages import (
    BUILD,
    CLEAN,
    PREPARE,
    PROMOTE,
    VERIFY,
    StageState,
)
from hardenforge.stages import default_stages
from hardenforge.stages.base import BaseStage

logger = logging.getLogger(__name__)

_VARIANT_GATES: dict[PipelineVariant, list[str]] = {
    PipelineVariant.ALL: [PREPARE, BUILD, VERIFY, PROMOTE],
    PipelineVariant.TEST: [PREPARE, BUILD, VERIFY],
}


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"hf-{ts}-{uuid.uuid4().hex[:3]}"


class Orchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    config:
        Pipeline configuration.  Uses defaults (environment) if not provided.
    stages:
        Stage instances keyed by stage id.  Defaults to the docker, trivy
        and kubectl wiring from ``hardenforge.stages.default_stages``.
    run_id:
        Identifier tagging this run's build metadata.  Created if None.
    """

    def __init__(
        self,
        config: HardenConfig | None = None,
        stages: Mapping[str, BaseStage] | None = None,
        run_id: str | None = None,
    ) -> None:
        self.config = config or HardenConfig()
        if stages is None:
            stages = default_stages(self.config)
        self.stages: dict[str, BaseStage] = dict(stages)
        self.run_id = run_id or new_run_id()

    # ------------------------------------------------------------------
    # Variants
    # ------------------------------------------------------------------

    def run_all(self) -> PipelineRunResult:
        """Prepare → Build → Verify → Promote → Clean."""
        return self._run(PipelineVariant.ALL)

    def run_test(self) -> PipelineRunResult:
        """Prepare → local-only Build → Verify.  Nothing is promoted or cleaned."""
        return self._run(PipelineVariant.TEST)

    def run_single(self, stage_id: str) -> dict[str, Any]:
        """Run one stage in isolation against this orchestrator's run id."""
        stage = self.stages[stage_id]
        run_context = self._run_context(PipelineVariant.ALL)
        return stage.run_stage(run_context)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run_context(self, variant: PipelineVariant) -> dict[str, Any]:
        context: dict[str, Any] = {
            "run_id": self.run_id,
            "variant": variant.value,
            "stage_results": {},
        }
        if variant is PipelineVariant.TEST:
            context["local_only"] = True
        return context

    def _run(self, variant: PipelineVariant) -> PipelineRunResult:
        machine = StageMachine()
        result = PipelineRunResult(run_id=self.run_id, variant=variant)
        run_context = self._run_context(variant)
        gates = _VARIANT_GATES[variant]

        logger.info("Starting %s run %s (%s)", variant.value, self.run_id, " -> ".join(gates))

        failure: tuple[str, HardenForgeError] | None = None
        for stage_id in gates:
            outcome, error = self._run_gate(machine, stage_id, run_context)
            result.outcomes.append(outcome)
            if error is not None:
                failure = (stage_id, error)
                break

        if variant is PipelineVariant.ALL and (
            failure is None or self.config.clean_on_failure
        ):
            result.outcomes.append(self._run_clean(machine, run_context))

        for stage_id in machine.stage_ids:
            if machine.get_state(stage_id) == StageState.NOT_STARTED:
                machine.transition(stage_id, StageState.SKIPPED)
                result.outcomes.append(
                    StageOutcome(stage_id=stage_id, state=StageState.SKIPPED)
                )

        result.finished_at = datetime.now(timezone.utc)

        if failure is not None:
            stage_id, cause = failure
            logger.error(
                "Run %s failed at %s after %.1fs", self.run_id, stage_id, result.duration_seconds
            )
            raise StageFailedError(stage_id, cause, result=result) from cause

        for warned in result.warnings:
            logger.warning(
                "Run %s: %s finished with a warning: %s",
                self.run_id,
                warned.stage_id,
                warned.error,
            )
        logger.info("Run %s passed in %.1fs", self.run_id, result.duration_seconds)
        return result

    def _run_gate(
        self, machine: StageMachine, stage_id: str, run_context: dict[str, Any]
    ) -> tuple[StageOutcome, HardenForgeError | None]:
        stage = self.stages[stage_id]
        machine.transition(stage_id, StageState.RUNNING)
        try:
            detail = stage.run_stage(run_context)
        except HardenForgeError as exc:
            machine.transition(stage_id, StageState.FAILED)
            outcome = StageOutcome(
                stage_id=stage_id,
                state=StageState.FAILED,
                error=str(exc),
                error_kind=exc.kind,
            )
            return outcome, exc
        machine.transition(stage_id, StageState.PASSED)
        return StageOutcome(stage_id=stage_id, state=StageState.PASSED, detail=detail), None

    def _run_clean(self, machine: StageMachine, run_context: dict[str, Any]) -> StageOutcome:
        stage = self.stages[CLEAN]
        machine.transition(CLEAN, StageState.RUNNING)
        try:
            detail = stage.run_stage(run_context)
        except HardenForgeError as exc:
            logger.warning("Clean failed (ignored): %s", exc)
            machine.transition(CLEAN, StageState.WARNED)
            return StageOutcome(
                stage_id=CLEAN,
                state=StageState.WARNED,
                error=str(exc),
                error_kind=exc.kind,
            )
        machine.transition(CLEAN, StageState.PASSED)
        return StageOutcome(stage_id=CLEAN, state=StageState.PASSED, detail=detail)
