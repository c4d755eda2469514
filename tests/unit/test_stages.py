"""Unit tests for the pipeline stages and the BaseStage lifecycle."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from fakes import FakeInspector, FakePolicyEngine, FakeScanner, FakeSmokeTester, RecordingBuilder
from hardenforge.config import HardenConfig
from hardenforge.core.errors import (
    IOFailureError,
    MissingArchEntryError,
    NoBaselineError,
    PolicyViolationError,
    StaleMetadataError,
)
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.stages import STAGE_REGISTRY, default_stages
from hardenforge.stages.base import BaseStage
from hardenforge.stages.verify import is_root_user


class _EchoStage(BaseStage):
    @property
    def stage_id(self) -> str:
        return "echo"

    @property
    def display_name(self) -> str:
        return "Echo"

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        if run_context.get("fail"):
            raise IOFailureError("disk gone")
        return {"run_id": run_context["run_id"]}


# ---------------------------------------------------------------------------
# Test: BaseStage lifecycle
# ---------------------------------------------------------------------------


class TestBaseStage:
    def test_records_result_with_duration(self):
        context: dict[str, Any] = {"run_id": "hf-1"}
        result = _EchoStage().run_stage(context)
        assert result["run_id"] == "hf-1"
        assert "duration_seconds" in result
        assert context["stage_results"]["echo"] is result

    def test_failure_is_tagged_with_stage(self):
        with pytest.raises(IOFailureError) as exc_info:
            _EchoStage().run_stage({"run_id": "hf-1", "fail": True})
        assert exc_info.value.operation == "echo"
        assert str(exc_info.value) == "echo: disk gone"

    def test_registry_and_default_wiring(self, config: HardenConfig):
        stages = default_stages(config)
        assert list(stages) == list(STAGE_REGISTRY)
        for stage_id, stage in stages.items():
            assert isinstance(stage, STAGE_REGISTRY[stage_id])
            assert stage.stage_id == stage_id
        assert not stages["clean"].is_gate


# ---------------------------------------------------------------------------
# Test: Prepare
# ---------------------------------------------------------------------------


class TestPrepareStage:
    def test_writes_rendered_file_and_metadata(
        self, make_stages, config: HardenConfig, metadata_store: MetadataStore, run_id: str,
        synced_baseline,
    ):
        result = make_stages()["prepare"].run_stage({"run_id": run_id})
        assert config.rendered_path.read_text(encoding="utf-8").count("@sha256:bbb") == 1
        assert metadata_store.load(run_id).target_tag == result["target_tag"]

    def test_without_baseline(self, make_stages, config: HardenConfig, run_id: str):
        with pytest.raises(NoBaselineError, match="reconcile"):
            make_stages()["prepare"].run_stage({"run_id": run_id})
        assert not config.rendered_path.exists()

    def test_missing_arch_writes_nothing(
        self, make_stages, config: HardenConfig, baseline_store, run_id: str, synced_baseline
    ):
        record = baseline_store.load()
        baseline_store.save(record.model_copy(update={"digests": {"arm64": "sha256:ccc"}}))
        with pytest.raises(MissingArchEntryError):
            make_stages()["prepare"].run_stage({"run_id": run_id})
        assert not config.rendered_path.exists()
        assert not config.metadata_path.exists()

    def test_missing_template(self, make_stages, config: HardenConfig, run_id: str, synced_baseline):
        config.template_path.unlink()
        with pytest.raises(IOFailureError, match="template"):
            make_stages()["prepare"].run_stage({"run_id": run_id})


# ---------------------------------------------------------------------------
# Test: Build / Promote
# ---------------------------------------------------------------------------


class TestBuildStage:
    def _prepared(self, make_stages, run_id: str) -> dict[str, BaseStage]:
        stages = make_stages()
        stages["prepare"].run_stage({"run_id": run_id})
        return stages

    def test_full_build_then_local_load(
        self, make_stages, builder: RecordingBuilder, run_id: str, synced_baseline
    ):
        self._prepared(make_stages, run_id)["build"].run_stage({"run_id": run_id})
        multi, local = builder.builds
        assert multi["platforms"] == ["linux/amd64", "linux/arm64"]
        assert not multi["load"] and not multi["push"]
        assert local["platforms"] == ["linux/amd64"]
        assert local["load"]
        assert {b["build_args"]["BASE_IMAGE_DIGEST"] for b in builder.builds} == {"sha256:bbb"}

    def test_local_only_from_context(
        self, make_stages, builder: RecordingBuilder, run_id: str, synced_baseline
    ):
        stages = self._prepared(make_stages, run_id)
        result = stages["build"].run_stage({"run_id": run_id, "local_only": True})
        assert len(builder.builds) == 1
        assert builder.builds[0]["load"]
        assert result["platforms"] == ["linux/amd64"]

    def test_stale_metadata_refused(
        self, make_stages, builder: RecordingBuilder, run_id: str, synced_baseline
    ):
        stages = self._prepared(make_stages, run_id)
        with pytest.raises(StaleMetadataError):
            stages["build"].run_stage({"run_id": "hf-some-other-run"})
        assert builder.builds == []

    def test_edited_rendered_file_refused(
        self, make_stages, config: HardenConfig, run_id: str, synced_baseline
    ):
        stages = self._prepared(make_stages, run_id)
        config.rendered_path.write_text("FROM factoriotools/factorio:latest\n", encoding="utf-8")
        with pytest.raises(StaleMetadataError, match="changed"):
            stages["build"].run_stage({"run_id": run_id})

    def test_promote_pushes_all_platforms(
        self, make_stages, builder: RecordingBuilder, run_id: str, synced_baseline
    ):
        stages = self._prepared(make_stages, run_id)
        stages["promote"].run_stage({"run_id": run_id})
        (push,) = builder.pushes
        assert push["platforms"] == ["linux/amd64", "linux/arm64"]
        assert push["tag"] == "ghcr.io/example/factorio-hardened:2.0.69"


# ---------------------------------------------------------------------------
# Test: Verify
# ---------------------------------------------------------------------------


class TestVerifyStage:
    @pytest.mark.parametrize(
        ("user", "expected"),
        [("", True), ("root", True), ("0", True), ("0:0", True), ("root:root", True),
         ("845", False), ("factorio", False), ("nonroot:nonroot", False)],
    )
    def test_is_root_user(self, user: str, expected: bool):
        assert is_root_user(user) is expected

    def test_all_checks_pass(
        self, make_stages, scanner: FakeScanner, smoke_tester: FakeSmokeTester,
        policy_engine: FakePolicyEngine, run_id: str, synced_baseline,
    ):
        stages = make_stages()
        stages["prepare"].run_stage({"run_id": run_id})
        result = stages["verify"].run_stage({"run_id": run_id})
        assert result["checks"] == ["non_root_user", "vulnerability_scan", "read_only_runtime"]
        assert scanner.gates[0]["severities"] == ["HIGH", "CRITICAL"]
        assert scanner.gates[0]["ignore_unfixed"] is True
        assert smoke_tester.calls == ["ghcr.io/example/factorio-hardened:2.0.69"]
        assert policy_engine.calls == []

    def test_root_user_fails_first(
        self, make_stages, inspector: FakeInspector, scanner: FakeScanner,
        smoke_tester: FakeSmokeTester, run_id: str, synced_baseline,
    ):
        inspector.user = "root"
        stages = make_stages()
        stages["prepare"].run_stage({"run_id": run_id})
        with pytest.raises(PolicyViolationError) as exc_info:
            stages["verify"].run_stage({"run_id": run_id})
        assert exc_info.value.check == "non_root_user"
        assert exc_info.value.operation == "verify"
        assert scanner.gates == []
        assert smoke_tester.calls == []

    def test_scan_failure_stops_before_smoke_test(
        self, make_stages, smoke_tester: FakeSmokeTester, run_id: str, synced_baseline
    ):
        stages = make_stages(scanner=FakeScanner(vulnerable=True))
        stages["prepare"].run_stage({"run_id": run_id})
        with pytest.raises(PolicyViolationError) as exc_info:
            stages["verify"].run_stage({"run_id": run_id})
        assert exc_info.value.check == "vulnerability_scan"
        assert smoke_tester.calls == []

    def test_report_mode_never_gates(
        self, make_stages, config: HardenConfig, run_id: str, synced_baseline
    ):
        scanner = FakeScanner(vulnerable=True)
        stages = make_stages(scanner=scanner, report_mode=True)
        stages["prepare"].run_stage({"run_id": run_id})
        result = stages["verify"].run_stage({"run_id": run_id})
        assert scanner.gates == []
        assert scanner.reports == [config.scan_report_path]
        assert result["report_path"] == str(config.scan_report_path)

    def test_policy_dry_run_only_when_enabled(
        self, make_stages, config: HardenConfig, run_id: str, synced_baseline
    ):
        engine = FakePolicyEngine(rejects=True)
        stages = make_stages(policy_engine=engine, policy_test=True)
        stages["prepare"].run_stage({"run_id": run_id})
        with pytest.raises(PolicyViolationError) as exc_info:
            stages["verify"].run_stage({"run_id": run_id})
        assert exc_info.value.check == "policy_dry_run"
        assert engine.calls == [config.policy_manifest]

    def test_read_only_failure(self, make_stages, run_id: str, synced_baseline):
        stages = make_stages(smoke_tester=FakeSmokeTester(fails=True))
        stages["prepare"].run_stage({"run_id": run_id})
        with pytest.raises(PolicyViolationError) as exc_info:
            stages["verify"].run_stage({"run_id": run_id})
        assert exc_info.value.check == "read_only_runtime"


# ---------------------------------------------------------------------------
# Test: Clean
# ---------------------------------------------------------------------------


class TestCleanStage:
    def test_removes_generated_files(self, make_stages, config: HardenConfig, run_id: str, synced_baseline):
        stages = make_stages()
        stages["prepare"].run_stage({"run_id": run_id})
        result = stages["clean"].run_stage({"run_id": run_id})
        assert not config.rendered_path.exists()
        assert not config.metadata_path.exists()
        assert len(result["removed"]) == 2

    def test_nothing_to_remove(self, make_stages, run_id: str):
        assert make_stages()["clean"].run_stage({"run_id": run_id})["removed"] == []

    def test_unremovable_path_raises(self, make_stages, config: HardenConfig, tmp_dir: Path, run_id: str):
        # A directory at the rendered path cannot be unlinked.
        config.rendered_path.mkdir(parents=True)
        with pytest.raises(IOFailureError):
            make_stages()["clean"].run_stage({"run_id": run_id})
