"""Shared test fixtures for hardenforge."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from fakes import (
    IMAGE_REPO,
    TEMPLATE,
    UPSTREAM_REPO,
    UPSTREAM_TAG,
    FakeDigestSource,
    FakeInspector,
    FakePolicyEngine,
    FakeScanner,
    FakeSmokeTester,
    FakeVersionProbe,
    RecordingBuilder,
    SteppingClock,
)
from hardenforge.config import HardenConfig
from hardenforge.core.baseline_store import BaselineStore
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.core.pinner import DockerfilePinner
from hardenforge.core.reconciler import DigestReconciler
from hardenforge.stages import (
    BuildStage,
    CleanStage,
    PrepareStage,
    PromoteStage,
    VerifyStage,
)
from hardenforge.stages.base import BaseStage


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def run_id() -> str:
    """Provide a deterministic test run ID."""
    return "hf-test-run-001"


@pytest.fixture
def config(tmp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> HardenConfig:
    """HardenConfig with every path under the temp directory."""
    for name in ("VERSION", "REPORT", "KYVERNO_TEST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_dir)
    template = tmp_dir / "docker" / "hardened.Dockerfile"
    template.parent.mkdir(parents=True)
    template.write_text(TEMPLATE, encoding="utf-8")
    return HardenConfig(
        upstream_repository=UPSTREAM_REPO,
        upstream_tag=UPSTREAM_TAG,
        image_repository=IMAGE_REPO,
        architecture="amd64",
        baseline_path=tmp_dir / "builddata" / "baseline.json",
        metadata_path=tmp_dir / "builddata" / "buildmeta.json",
        template_path=template,
        rendered_path=tmp_dir / "docker" / "hardened.pinned.Dockerfile",
        scan_report_path=tmp_dir / "builddata" / "trivy-report.json",
        policy_manifest=tmp_dir / "test" / "pod-readonly.yaml",
    )


@pytest.fixture
def baseline_store(config: HardenConfig) -> BaselineStore:
    return BaselineStore(config.baseline_path)


@pytest.fixture
def metadata_store(config: HardenConfig) -> MetadataStore:
    return MetadataStore(config.metadata_path)


@pytest.fixture
def digest_source() -> FakeDigestSource:
    return FakeDigestSource()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock(datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def reconciler(
    baseline_store: BaselineStore, digest_source: FakeDigestSource, clock: SteppingClock
) -> DigestReconciler:
    return DigestReconciler(
        baseline_store,
        digest_source,
        repository=UPSTREAM_REPO,
        tag=UPSTREAM_TAG,
        clock=clock,
    )


@pytest.fixture
def version_probe() -> FakeVersionProbe:
    return FakeVersionProbe()


@pytest.fixture
def pinner(config: HardenConfig, version_probe: FakeVersionProbe) -> DockerfilePinner:
    return DockerfilePinner(
        image_repository=config.image_repository,
        version_probe=version_probe,
        init_config_lines=config.init_config_lines,
    )


@pytest.fixture
def builder() -> RecordingBuilder:
    return RecordingBuilder()


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def smoke_tester() -> FakeSmokeTester:
    return FakeSmokeTester()


@pytest.fixture
def policy_engine() -> FakePolicyEngine:
    return FakePolicyEngine()


@pytest.fixture
def make_stages(
    config: HardenConfig,
    baseline_store: BaselineStore,
    metadata_store: MetadataStore,
    pinner: DockerfilePinner,
    builder: RecordingBuilder,
    inspector: FakeInspector,
    scanner: FakeScanner,
    smoke_tester: FakeSmokeTester,
    policy_engine: FakePolicyEngine,
) -> Callable[..., dict[str, BaseStage]]:
    """Factory fixture: the full stage set wired to the fakes."""

    def _factory(**verify_overrides: Any) -> dict[str, BaseStage]:
        verify_kwargs: dict[str, Any] = {
            "metadata_store": metadata_store,
            "inspector": inspector,
            "scanner": scanner,
            "smoke_tester": smoke_tester,
            "policy_engine": policy_engine,
            "report_path": config.scan_report_path,
            "policy_manifest": config.policy_manifest,
        }
        verify_kwargs.update(verify_overrides)
        return {
            "prepare": PrepareStage(
                baseline_store=baseline_store,
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
            "verify": VerifyStage(**verify_kwargs),
            "promote": PromoteStage(
                builder=builder,
                metadata_store=metadata_store,
                rendered_path=config.rendered_path,
                platforms=config.platforms,
            ),
            "clean": CleanStage(paths=[config.rendered_path, config.metadata_path]),
        }

    return _factory


@pytest.fixture
def synced_baseline(reconciler: DigestReconciler) -> None:
    """A baseline already reconciled against the default fake upstream."""
    reconciler.sync()
