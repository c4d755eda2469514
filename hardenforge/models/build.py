"""Ephemeral per-run build metadata (written by Prepare)."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

# Sentinel used when the version probe fails.  Never a real version string.
UNKNOWN_VERSION = "unknown"


class BuildMetadata(BaseModel):
    """Context shared by Build, Verify and Promote within one run.

    ``run_id`` scopes the record to the pipeline invocation that wrote it;
    ``rendered_sha256`` pins the exact build file Prepare produced.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    base_digest: str
    base_reference: str
    architecture: str
    detected_version: str = UNKNOWN_VERSION
    version_detected: bool = False
    target_tag: str
    rendered_sha256: str
    built_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class PreparedBuild(BaseModel):
    """Rendered build file plus the metadata derived while rendering it."""

    model_config = ConfigDict(frozen=True)

    rendered: str
    metadata: BuildMetadata
    inserted_init_stage: bool = False
    pinned_stages: list[str] = []
