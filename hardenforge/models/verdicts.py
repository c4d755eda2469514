"""Reconciler verdicts and reports."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from hardenforge.models.baseline import BaselineRecord


class VerdictKind(str, Enum):
    UP_TO_DATE = "up_to_date"
    DRIFTED = "drifted"
    NO_BASELINE = "no_baseline"
    MISSING_ARCH_ENTRY = "missing_arch_entry"


class DriftLevel(str, Enum):
    MANIFEST_LIST = "manifest_list"
    ARCHITECTURE = "architecture"


class Verdict(BaseModel):
    """Outcome of comparing the upstream manifest against the baseline."""

    model_config = ConfigDict(frozen=True)

    kind: VerdictKind
    architecture: str
    level: DriftLevel | None = None
    old: str = ""
    new: str = ""

    @property
    def requires_sync(self) -> bool:
        return self.kind != VerdictKind.UP_TO_DATE

    @classmethod
    def up_to_date(cls, arch: str, digest: str) -> Verdict:
        return cls(kind=VerdictKind.UP_TO_DATE, architecture=arch, old=digest, new=digest)

    @classmethod
    def no_baseline(cls, arch: str) -> Verdict:
        return cls(kind=VerdictKind.NO_BASELINE, architecture=arch)

    @classmethod
    def missing_arch_entry(cls, arch: str, new: str) -> Verdict:
        return cls(kind=VerdictKind.MISSING_ARCH_ENTRY, architecture=arch, new=new)

    @classmethod
    def drifted(cls, arch: str, level: DriftLevel, old: str, new: str) -> Verdict:
        return cls(
            kind=VerdictKind.DRIFTED, architecture=arch, level=level, old=old, new=new
        )

    def describe(self) -> str:
        if self.kind == VerdictKind.UP_TO_DATE:
            return f"baseline is up to date for {self.architecture}"
        if self.kind == VerdictKind.NO_BASELINE:
            return "no baseline recorded yet"
        if self.kind == VerdictKind.MISSING_ARCH_ENTRY:
            return f"no digest recorded for {self.architecture} (upstream {self.new})"
        if self.level == DriftLevel.MANIFEST_LIST:
            return f"manifest list digest changed: {self.old} -> {self.new}"
        if self.level == DriftLevel.ARCHITECTURE:
            return f"digest changed for {self.architecture}: {self.old} -> {self.new}"
        return f"drift for {self.architecture}: {self.old} -> {self.new}"


class ReconcileOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    synced: bool
    record: BaselineRecord | None = None


class StatusReport(BaseModel):
    """Informational view: stored entry plus an upstream check when reachable."""

    model_config = ConfigDict(frozen=True)

    architecture: str
    record: BaselineRecord | None = None
    verdict: Verdict | None = None
    upstream_checked: bool = False
    warning: str = ""
