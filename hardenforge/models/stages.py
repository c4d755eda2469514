"""Stage state machine models for the hardened image pipeline."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class StageState(str, Enum):
    """Strict state model for each pipeline stage."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    WARNED = "warned"  # soft failure, only Clean ends here
    SKIPPED = "skipped"


# Valid state transitions, enforced by StageMachine.
VALID_TRANSITIONS: dict[StageState, set[StageState]] = {
    StageState.NOT_STARTED: {StageState.RUNNING, StageState.SKIPPED},
    StageState.RUNNING: {StageState.PASSED, StageState.FAILED, StageState.WARNED},
    StageState.PASSED: set(),
    StageState.FAILED: set(),
    StageState.WARNED: set(),
    StageState.SKIPPED: set(),
}


class StageDefinition(BaseModel):
    """A pipeline stage and the stages that must pass before it may run."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    ordinal: int
    prerequisites: list[str] = []
    is_gate: bool = True


PREPARE = "prepare"
BUILD = "build"
VERIFY = "verify"
PROMOTE = "promote"
CLEAN = "clean"

PIPELINE_STAGE_DEFINITIONS: list[StageDefinition] = [
    StageDefinition(stage_id=PREPARE, display_name="Prepare", ordinal=0),
    StageDefinition(
        stage_id=BUILD, display_name="Build", ordinal=1, prerequisites=[PREPARE]
    ),
    StageDefinition(
        stage_id=VERIFY, display_name="Verify", ordinal=2, prerequisites=[BUILD]
    ),
    StageDefinition(
        stage_id=PROMOTE, display_name="Promote", ordinal=3, prerequisites=[VERIFY]
    ),
    # Clean runs regardless of earlier outcomes and never gates the run.
    StageDefinition(
        stage_id=CLEAN, display_name="Clean", ordinal=4, is_gate=False
    ),
]
