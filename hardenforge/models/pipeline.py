"""Pipeline run records (in memory only, never persisted)."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from hardenforge.models.stages import StageState


class PipelineVariant(str, Enum):
    ALL = "all"  # prepare -> build -> verify -> promote -> clean
    TEST = "test"  # prepare -> local build -> verify


class StageOutcome(BaseModel):
    stage_id: str
    state: StageState
    detail: dict[str, Any] = {}
    error: str = ""
    error_kind: str = ""


class PipelineRunResult(BaseModel):
    """Ordered stage outcomes and the terminal status of one run."""

    run_id: str
    variant: PipelineVariant
    outcomes: list[StageOutcome] = []
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def failed_stage(self) -> str | None:
        for outcome in self.outcomes:
            if outcome.state == StageState.FAILED:
                return outcome.stage_id
        return None

    @property
    def succeeded(self) -> bool:
        return self.finished_at is not None and self.failed_stage is None

    @property
    def status(self) -> str:
        if self.finished_at is None:
            return "running"
        return "passed" if self.failed_stage is None else "failed"

    @property
    def warnings(self) -> list[StageOutcome]:
        return [o for o in self.outcomes if o.state == StageState.WARNED]

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def outcome_for(self, stage_id: str) -> StageOutcome | None:
        for outcome in self.outcomes:
            if outcome.stage_id == stage_id:
                return outcome
        return None
