"""Pydantic models for baselines, manifests, build metadata and pipeline runs."""

from hardenforge.models.baseline import (
    SUPPORTED_ARCHITECTURES,
    BaselineRecord,
    normalize_architecture,
)
from hardenforge.models.build import UNKNOWN_VERSION, BuildMetadata, PreparedBuild
from hardenforge.models.manifest import ManifestInspection, PlatformDigest
from hardenforge.models.pipeline import PipelineRunResult, PipelineVariant, StageOutcome
from hardenforge.models.stages import (
    PIPELINE_STAGE_DEFINITIONS,
    StageDefinition,
    StageState,
)
from hardenforge.models.verdicts import (
    DriftLevel,
    ReconcileOutcome,
    StatusReport,
    Verdict,
    VerdictKind,
)

__all__ = [
    "SUPPORTED_ARCHITECTURES",
    "UNKNOWN_VERSION",
    "BaselineRecord",
    "BuildMetadata",
    "DriftLevel",
    "ManifestInspection",
    "PIPELINE_STAGE_DEFINITIONS",
    "PipelineRunResult",
    "PipelineVariant",
    "PlatformDigest",
    "PreparedBuild",
    "ReconcileOutcome",
    "StageDefinition",
    "StageOutcome",
    "StageState",
    "StatusReport",
    "Verdict",
    "VerdictKind",
    "normalize_architecture",
]
