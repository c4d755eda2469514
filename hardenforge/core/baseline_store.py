"""Durable storage for the single ``BaselineRecord`` (one JSON file).

Layout::

    {
      "repository": "factoriotools/factorio",
      "tag": "2.0.69",
      "manifest_list": "sha256:...",
      "digests": {"amd64": "sha256:...", "arm64": "sha256:..."},
      "updated_at": "2026-10-17T12:00:00Z"
    }

Writes are atomic (temp file + rename).  A missing file is the expected
"no baseline yet" condition and is reported as ``NoBaselineError``, distinct
from unreadable (``IOFailureError``) or malformed (``ParseError``) files.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from hardenforge.core.errors import IOFailureError, NoBaselineError, ParseError
from hardenforge.core.storage import FileLease, atomic_write_text
from hardenforge.models.baseline import BaselineRecord

logger = logging.getLogger(__name__)


class BaselineStore:
    """Load and save the baseline record at *path*."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> BaselineRecord:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NoBaselineError(f"no baseline file at {self.path}") from exc
        except OSError as exc:
            raise IOFailureError(f"cannot read baseline {self.path}: {exc}") from exc

        try:
            return BaselineRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise ParseError(f"malformed baseline {self.path}: {exc}") from exc

    def load_or_none(self) -> BaselineRecord | None:
        try:
            return self.load()
        except NoBaselineError:
            return None

    def save(self, record: BaselineRecord) -> None:
        atomic_write_text(self.path, record.to_json())
        logger.info(
            "Baseline written to %s (%s, %d architectures)",
            self.path,
            record.manifest_list_digest,
            len(record.digests),
        )

    def lock(self) -> FileLease:
        """Advisory lock guarding load-modify-save sequences."""
        return FileLease(self.lock_path)
