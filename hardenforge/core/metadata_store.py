"""Run-scoped storage for ``BuildMetadata``.

The metadata file lives at a well-known path and is shared between the
stages of one run.  ``load()`` requires the caller's run id and refuses a
record written by any other run, so a file left behind by an interrupted
run can never satisfy a later stage.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from hardenforge.core.errors import IOFailureError, ParseError, StaleMetadataError
from hardenforge.core.hasher import text_digest
from hardenforge.core.storage import atomic_write_text
from hardenforge.models.build import BuildMetadata

logger = logging.getLogger(__name__)


class MetadataStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def save(self, metadata: BuildMetadata) -> None:
        atomic_write_text(self.path, metadata.model_dump_json(indent=2) + "\n")
        logger.debug("Build metadata for run %s written to %s", metadata.run_id, self.path)

    def load(self, run_id: str) -> BuildMetadata:
        if not run_id:
            raise StaleMetadataError("no run id given; refusing to trust build metadata")
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StaleMetadataError(
                f"no build metadata at {self.path}; run Prepare first"
            ) from exc
        except OSError as exc:
            raise IOFailureError(f"cannot read build metadata {self.path}: {exc}") from exc

        try:
            metadata = BuildMetadata.model_validate_json(raw)
        except ValidationError as exc:
            raise ParseError(f"malformed build metadata {self.path}: {exc}") from exc

        if metadata.run_id != run_id:
            raise StaleMetadataError(
                f"build metadata at {self.path} belongs to run {metadata.run_id!r}, "
                f"not {run_id!r}"
            )
        return metadata

    def verify_rendered(self, metadata: BuildMetadata, rendered_path: Path) -> None:
        """Ensure the build file on disk is the one Prepare rendered for this run."""
        try:
            content = Path(rendered_path).read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StaleMetadataError(f"rendered build file {rendered_path} is missing") from exc
        except OSError as exc:
            raise IOFailureError(f"cannot read {rendered_path}: {exc}") from exc
        if text_digest(content) != metadata.rendered_sha256:
            raise StaleMetadataError(
                f"{rendered_path} changed since Prepare for run {metadata.run_id}"
            )

    def recorded_run_id(self) -> str | None:
        """Run id of the stored metadata, or None when absent or unreadable."""
        try:
            return BuildMetadata.model_validate_json(
                self.path.read_text(encoding="utf-8")
            ).run_id
        except (OSError, ValidationError):
            return None
