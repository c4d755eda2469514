"""Environment-driven configuration for digest reconciliation and the pipeline.

Every setting can be overridden via ``HARDENFORGE_*`` environment variables
or a ``.env`` file in the working directory.  The three operator flags the
pipeline has always honoured also accept their bare names:

    VERSION=2.0.69        override the target image tag
    REPORT=true           scan in full-report mode instead of gate mode
    KYVERNO_TEST=true     run the admission-policy dry-run during Verify
"""

from __future__ import annotations

import platform
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hardenforge.models.baseline import normalize_architecture


class HardenConfig(BaseSettings):
    """Settings for the reconciler, the pinner and every pipeline stage.

    Examples
    --------
    Override via environment::

        export HARDENFORGE_UPSTREAM_TAG=2.0.70
        export HARDENFORGE_BASELINE_PATH=/data/baseline.json
        export VERSION=2.0.70-hardened
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HARDENFORGE_",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    log_level: str = "INFO"

    # Upstream image tracked by the baseline
    upstream_repository: str = "factoriotools/factorio"
    upstream_tag: str = "2.0.69"

    # Output image
    image_repository: str = "ghcr.io/hardenforge/factorio-hardened"
    target_version: str | None = Field(
        default=None,
        validation_alias=AliasChoices("target_version", "HARDENFORGE_TARGET_VERSION", "VERSION"),
    )
    platforms: list[str] = ["linux/amd64", "linux/arm64"]
    architecture: str | None = None

    # Files
    baseline_path: Path = Path("builddata/baseline.json")
    metadata_path: Path = Path("builddata/buildmeta.json")
    template_path: Path = Path("docker/hardened.Dockerfile")
    rendered_path: Path = Path("docker/hardened.pinned.Dockerfile")
    build_context: Path = Path(".")

    # Version probe
    version_probe_entrypoint: str = "/opt/factorio/bin/x64/factorio"
    version_probe_args: list[str] = ["--version"]
    version_probe_timeout_seconds: float = 30.0

    # Init-config stage injected into the build file when missing
    init_stage_alias: str = "init-config"
    init_stage_image: str = "busybox:1.36"
    init_config_path: str = "/defaults/config/config.ini"
    init_config_lines: list[str] = [
        "[path]",
        "read-data=/opt/factorio/data",
        "write-data=/factorio",
    ]
    strict_init_stage: bool = True

    # Verify
    report_mode: bool = Field(
        default=False,
        validation_alias=AliasChoices("report_mode", "HARDENFORGE_REPORT_MODE", "REPORT"),
    )
    policy_test: bool = Field(
        default=False,
        validation_alias=AliasChoices("policy_test", "HARDENFORGE_POLICY_TEST", "KYVERNO_TEST"),
    )
    scan_severities: list[str] = ["HIGH", "CRITICAL"]
    scan_ignore_unfixed: bool = True
    scan_report_path: Path = Path("builddata/trivy-report.json")
    smoke_tmpfs: list[str] = ["/tmp:rw"]
    smoke_volumes: list[str] = [
        "factorio-config:/factorio/config",
        "factorio-mods:/factorio/mods",
        "factorio-saves:/factorio/saves",
        "factorio-scenarios:/factorio/scenarios",
        "factorio-output:/factorio/script-output",
    ]
    smoke_args: list[str] = ["--version"]
    policy_manifest: Path = Path("test/pod-readonly.yaml")

    # Clean
    clean_on_failure: bool = True

    @property
    def upstream_ref(self) -> str:
        return f"{self.upstream_repository}:{self.upstream_tag}"

    @property
    def local_architecture(self) -> str:
        """Configured architecture, or the host's, in container-engine naming."""
        return normalize_architecture(self.architecture or platform.machine())

    @property
    def local_platform(self) -> str:
        return f"linux/{self.local_architecture}"

    def target_tag(self, detected_version: str) -> str:
        """Output tag: the version override when set, else the detected version."""
        return f"{self.image_repository}:{self.target_version or detected_version}"
