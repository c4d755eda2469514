"""Deterministic stage state machine for one pipeline run.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Prerequisites PASSED before a stage may enter RUNNING
- Every transition logged
"""

from __future__ import annotations

import logging

from hardenforge.models.stages import (
    PIPELINE_STAGE_DEFINITIONS,
    VALID_TRANSITIONS,
    StageDefinition,
    StageState,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class PrerequisiteNotMetError(RuntimeError):
    """Raised when a stage is started before its prerequisites passed."""


class StageMachine:
    """Tracks stage states for a single run.

    Parameters
    ----------
    definitions:
        The stage plan.  Defaults to the hardened image pipeline.
    """

    def __init__(self, definitions: list[StageDefinition] | None = None) -> None:
        self._definitions = {
            d.stage_id: d for d in (definitions or PIPELINE_STAGE_DEFINITIONS)
        }
        self._states: dict[str, StageState] = {
            sid: StageState.NOT_STARTED for sid in self._definitions
        }

    @property
    def stage_ids(self) -> list[str]:
        return sorted(self._definitions, key=lambda sid: self._definitions[sid].ordinal)

    def get_state(self, stage_id: str) -> StageState:
        return self._states[stage_id]

    def blocking_reasons(self, stage_id: str) -> list[str]:
        reasons: list[str] = []
        for prereq in self._definitions[stage_id].prerequisites:
            state = self._states[prereq]
            if state != StageState.PASSED:
                reasons.append(f"{prereq} is {state.value}")
        return reasons

    def transition(self, stage_id: str, target_state: StageState) -> None:
        """Move *stage_id* to *target_state*, validating the transition."""
        if stage_id not in self._definitions:
            raise KeyError(f"unknown stage {stage_id!r}")

        current = self._states[stage_id]
        allowed = VALID_TRANSITIONS.get(current, set())
        if target_state not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition {stage_id} from {current.value} to {target_state.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        if target_state == StageState.RUNNING:
            reasons = self.blocking_reasons(stage_id)
            if reasons:
                raise PrerequisiteNotMetError(
                    f"Cannot start {stage_id}: prerequisites not met. "
                    f"Blocked by: {'; '.join(reasons)}"
                )

        self._states[stage_id] = target_state
        logger.debug("%s: %s -> %s", stage_id, current.value, target_state.value)
