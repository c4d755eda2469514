"""Capability interfaces the core consumes.

The reconciler and the pipeline stages depend only on these protocols.
Docker, Trivy and kubectl implementations live next to this module; tests
provide in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from hardenforge.models.manifest import ManifestInspection


@runtime_checkable
class DigestSource(Protocol):
    """Resolve the manifest list and platform digests for ``repository:tag``."""

    def inspect(self, image_ref: str) -> ManifestInspection: ...


@runtime_checkable
class VersionProbe(Protocol):
    """Extract a human-readable version string from an image."""

    def probe(self, image_ref: str) -> str: ...


@runtime_checkable
class ImageBuilder(Protocol):
    def build(
        self,
        dockerfile: Path,
        tag: str,
        *,
        platforms: Sequence[str],
        build_args: dict[str, str] | None = None,
        load: bool = False,
        push: bool = False,
    ) -> None: ...


@runtime_checkable
class ImageInspector(Protocol):
    def configured_user(self, image_ref: str) -> str: ...


@runtime_checkable
class VulnerabilityScanner(Protocol):
    def gate(
        self, image_ref: str, *, severities: Sequence[str], ignore_unfixed: bool
    ) -> None: ...

    def report(self, image_ref: str, *, output: Path) -> Path: ...


@runtime_checkable
class RuntimeSmokeTester(Protocol):
    def run_read_only(self, image_ref: str) -> None: ...


@runtime_checkable
class PolicyEngine(Protocol):
    def dry_run(self, manifest: Path) -> None: ...
