"""Prepare: render the digest-pinned build file and write build metadata.

Reads the reconciled baseline, hands the template to the pinner, and only
then writes the rendered file and the run-scoped metadata.  A baseline
without an entry for the local architecture fails before anything is
written.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from hardenforge.core.baseline_store import BaselineStore
from hardenforge.core.errors import IOFailureError, NoBaselineError
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.core.pinner import DockerfilePinner
from hardenforge.core.storage import atomic_write_text
from hardenforge.stages.base import BaseStage

logger = logging.getLogger(__name__)


class PrepareStage(BaseStage):
    def __init__(
        self,
        *,
        baseline_store: BaselineStore,
        pinner: DockerfilePinner,
        metadata_store: MetadataStore,
        template_path: Path,
        rendered_path: Path,
        local_arch: str,
    ) -> None:
        self.baseline_store = baseline_store
        self.pinner = pinner
        self.metadata_store = metadata_store
        self.template_path = Path(template_path)
        self.rendered_path = Path(rendered_path)
        self.local_arch = local_arch

    @property
    def stage_id(self) -> str:
        return "prepare"

    @property
    def display_name(self) -> str:
        return "Prepare"

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        run_id: str = run_context["run_id"]

        try:
            baseline = self.baseline_store.load()
        except NoBaselineError as exc:
            raise NoBaselineError(
                f"{exc.message}; run 'hardenforge digest reconcile' first"
            ) from exc

        try:
            template = self.template_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise IOFailureError(f"cannot read template {self.template_path}: {exc}") from exc

        prepared = self.pinner.prepare(template, baseline, self.local_arch, run_id=run_id)

        atomic_write_text(self.rendered_path, prepared.rendered)
        self.metadata_store.save(prepared.metadata)

        metadata = prepared.metadata
        logger.info(
            "Pinned build file created at %s for %s -> %s",
            self.rendered_path,
            metadata.architecture,
            metadata.base_digest,
        )
        return {
            "rendered_path": str(self.rendered_path),
            "base_reference": metadata.base_reference,
            "architecture": metadata.architecture,
            "detected_version": metadata.detected_version,
            "version_detected": metadata.version_detected,
            "target_tag": metadata.target_tag,
            "inserted_init_stage": prepared.inserted_init_stage,
        }
