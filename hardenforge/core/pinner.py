"""Dockerfile pinner: the pure half of the Prepare stage.

Given a reconciled baseline, rewrites the build-file template so every stage
built on the upstream image references it by content digest for the local
architecture, guarantees the init-config stage exists, and derives the
``BuildMetadata`` for the run.  Nothing is written to disk here.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from hardenforge.bridge.capabilities import VersionProbe
from hardenforge.core.buildfile import BuildFile, DockerfileStage
from hardenforge.core.errors import HardenForgeError, MissingArchEntryError, TemplateError
from hardenforge.core.hasher import text_digest
from hardenforge.models.baseline import BaselineRecord, normalize_architecture, split_reference
from hardenforge.models.build import UNKNOWN_VERSION, BuildMetadata, PreparedBuild

logger = logging.getLogger(__name__)

_REGISTRY_PREFIXES = ("docker.io/library/", "index.docker.io/library/", "docker.io/", "index.docker.io/")


def _canonical_repository(reference: str) -> str:
    repo, _ = split_reference(reference)
    repo = repo.lower()
    for prefix in _REGISTRY_PREFIXES:
        if repo.startswith(prefix):
            return repo[len(prefix):]
    return repo


def same_repository(reference: str, repository: str) -> bool:
    """Whether *reference* (any tag or digest) names *repository*."""
    return _canonical_repository(reference) == _canonical_repository(repository)


class DockerfilePinner:
    """Renders a pinned build file and its metadata.

    Parameters
    ----------
    image_repository:
        Repository of the hardened output image.
    version_probe:
        Best-effort upstream version detection.
    target_version:
        Operator override for the output tag; wins over the detected version.
    init_alias, init_image, init_config_path, init_config_lines:
        Shape of the init-config stage injected when the template lacks it.
    strict_init_stage:
        Fail when the init-config stage is missing and has no insertion
        point; otherwise warn and emit the file without it.
    """

    def __init__(
        self,
        *,
        image_repository: str,
        version_probe: VersionProbe,
        target_version: str | None = None,
        init_alias: str = "init-config",
        init_image: str = "busybox:1.36",
        init_config_path: str = "/defaults/config/config.ini",
        init_config_lines: Sequence[str] = (),
        strict_init_stage: bool = True,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.image_repository = image_repository
        self.version_probe = version_probe
        self.target_version = target_version
        self.init_alias = init_alias
        self.init_image = init_image
        self.init_config_path = init_config_path
        self.init_config_lines = list(init_config_lines)
        self.strict_init_stage = strict_init_stage
        self._clock = clock

    def prepare(
        self,
        template: str,
        baseline: BaselineRecord,
        local_arch: str,
        *,
        run_id: str,
    ) -> PreparedBuild:
        arch = normalize_architecture(local_arch)
        digest = baseline.digest_for(arch)
        if digest is None:
            raise MissingArchEntryError(
                f"no digest found for architecture {arch} in baseline "
                f"{baseline.image_ref}; run a digest sync first"
            )
        base_ref = f"{baseline.repository}@{digest}"

        version, detected = self.detect_version(base_ref)

        document = BuildFile.parse(template)
        pinned = self._pin_stages(document, baseline.repository, base_ref)
        inserted = self._ensure_init_stage(document)
        rendered = document.render()

        target_tag = f"{self.image_repository}:{self.target_version or version}"
        metadata = BuildMetadata(
            run_id=run_id,
            base_digest=digest,
            base_reference=base_ref,
            architecture=arch,
            detected_version=version,
            version_detected=detected,
            target_tag=target_tag,
            rendered_sha256=text_digest(rendered),
            built_at=self._clock(),
        )
        logger.info(
            "Pinned build file rendered for %s -> %s (version %s)", arch, digest, version
        )
        return PreparedBuild(
            rendered=rendered,
            metadata=metadata,
            inserted_init_stage=inserted,
            pinned_stages=pinned,
        )

    def detect_version(self, base_ref: str) -> tuple[str, bool]:
        """Probe the upstream version; fall back to the ``unknown`` sentinel."""
        try:
            return self.version_probe.probe(base_ref), True
        except HardenForgeError as exc:
            logger.warning(
                "Could not detect upstream version automatically, using %r: %s",
                UNKNOWN_VERSION,
                exc,
            )
            return UNKNOWN_VERSION, False

    def _pin_stages(self, document: BuildFile, repository: str, base_ref: str) -> list[str]:
        pinned: list[str] = []
        default_alias = "base"
        for stage in document.stages:
            if not same_repository(stage.base, repository):
                continue
            alias_taken = document.stage_named(default_alias) is not None
            stage.rebase(base_ref, default_alias="" if alias_taken else default_alias)
            pinned.append(stage.alias or stage.base)
        if not pinned:
            raise TemplateError(
                f"template has no FROM line for {repository}; nothing to pin"
            )
        return pinned

    def _ensure_init_stage(self, document: BuildFile) -> bool:
        if document.stage_named(self.init_alias) is not None:
            return False

        anchor = document.first_user_of(self.init_alias)
        if anchor is None:
            message = (
                f"could not locate insertion point for {self.init_alias} stage: "
                f"no stage copies from it"
            )
            if self.strict_init_stage:
                raise TemplateError(message)
            logger.warning("%s; emitting build file without it", message)
            return False

        document.insert_stage(anchor, self._init_stage())
        logger.info("Inserted missing %s stage into build file", self.init_alias)
        return True

    def _init_stage(self) -> DockerfileStage:
        config_dir = posixpath.dirname(self.init_config_path) or "/"
        commands = [f"mkdir -p {config_dir}"]
        redirect = ">"
        for line in self.init_config_lines:
            commands.append(f'echo "{line}" {redirect} {self.init_config_path}')
            redirect = ">>"
        if len(commands) == 1:
            commands.append(f": > {self.init_config_path}")

        run_lines = ["RUN set -eux; \\"]
        for index, command in enumerate(commands):
            suffix = " && \\" if index < len(commands) - 1 else ""
            run_lines.append(f"    {command}{suffix}")

        return DockerfileStage(
            base=self.init_image,
            alias=self.init_alias,
            header=["# Init stage: prepares default configuration files"],
            body=[f"WORKDIR {config_dir}", *run_lines, ""],
        )
