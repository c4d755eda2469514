"""Hardened image pipeline stages: registry mapping stage_id to stage class.

Usage::

    from hardenforge.stages import default_stages

    stages = default_stages(HardenConfig())
    result = stages["prepare"].run_stage({"run_id": run_id})
"""

from __future__ import annotations

from hardenforge.bridge.commands import CommandRunner, run_command
from hardenforge.bridge.docker import (
    BuildxImageBuilder,
    DockerImageInspector,
    DockerSmokeTester,
    DockerVersionProbe,
)
from hardenforge.bridge.kubectl import KubectlPolicyEngine
from hardenforge.bridge.trivy import TrivyScanner
from hardenforge.config import HardenConfig
from hardenforge.core.baseline_store import BaselineStore
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.core.pinner import DockerfilePinner
from hardenforge.stages.base import BaseStage
from hardenforge.stages.build import BuildStage
from hardenforge.stages.clean import CleanStage
from hardenforge.stages.prepare import PrepareStage
from hardenforge.stages.promote import PromoteStage
from hardenforge.stages.verify import VerifyStage

# ---------------------------------------------------------------------------
# Stage registry: stage_id -> stage class
# ---------------------------------------------------------------------------

STAGE_REGISTRY: dict[str, type[BaseStage]] = {
    "prepare": PrepareStage,
    "build": BuildStage,
    "verify": VerifyStage,
    "promote": PromoteStage,
    "clean": CleanStage,
}


def default_stages(
    config: HardenConfig, *, runner: CommandRunner = run_command
) -> dict[str, BaseStage]:
    """Wire every stage to the docker, trivy and kubectl adapters."""
    metadata_store = MetadataStore(config.metadata_path)
    builder = BuildxImageBuilder(config.build_context, runner=runner)
    probe = DockerVersionProbe(
        config.version_probe_entrypoint,
        args=config.version_probe_args,
        timeout=config.version_probe_timeout_seconds,
        runner=runner,
    )
    pinner = DockerfilePinner(
        image_repository=config.image_repository,
        version_probe=probe,
        target_version=config.target_version,
        init_alias=config.init_stage_alias,
        init_image=config.init_stage_image,
        init_config_path=config.init_config_path,
        init_config_lines=config.init_config_lines,
        strict_init_stage=config.strict_init_stage,
    )

    return {
        "prepare": PrepareStage(
            baseline_store=BaselineStore(config.baseline_path),
            pinner=pinner,
            metadata_store=metadata_store,
            template_path=config.template_path,
            rendered_path=config.rendered_path,
            local_arch=config.local_architecture,
        ),
        "build": BuildStage(
            builder=builder,
            metadata_store=metadata_store,
            rendered_path=config.rendered_path,
            platforms=config.platforms,
        ),
        "verify": VerifyStage(
            metadata_store=metadata_store,
            inspector=DockerImageInspector(runner=runner),
            scanner=TrivyScanner(runner=runner),
            smoke_tester=DockerSmokeTester(
                tmpfs=config.smoke_tmpfs,
                volumes=config.smoke_volumes,
                args=config.smoke_args,
                runner=runner,
            ),
            policy_engine=KubectlPolicyEngine(runner=runner),
            report_mode=config.report_mode,
            policy_test=config.policy_test,
            severities=config.scan_severities,
            ignore_unfixed=config.scan_ignore_unfixed,
            report_path=config.scan_report_path,
            policy_manifest=config.policy_manifest,
        ),
        "promote": PromoteStage(
            builder=builder,
            metadata_store=metadata_store,
            rendered_path=config.rendered_path,
            platforms=config.platforms,
        ),
        "clean": CleanStage(paths=[config.rendered_path, config.metadata_path]),
    }


__all__ = [
    "STAGE_REGISTRY",
    "BaseStage",
    "BuildStage",
    "CleanStage",
    "PrepareStage",
    "PromoteStage",
    "VerifyStage",
    "default_stages",
]
