"""Integration test: reconcile the baseline, then run the hardened pipeline.

Exercises the full path end to end against the in-memory fakes: an upstream
release moves the digest, reconciliation records it, and the next run pins,
builds, verifies and promotes an image built from the new content.
"""

from __future__ import annotations

import json

import pytest

from fakes import FakeDigestSource, FakeScanner, RecordingBuilder
from hardenforge.config import HardenConfig
from hardenforge.core.baseline_store import BaselineStore
from hardenforge.core.errors import StageFailedError
from hardenforge.core.orchestrator import Orchestrator
from hardenforge.core.reconciler import DigestReconciler
from hardenforge.models.stages import StageState
from hardenforge.models.verdicts import VerdictKind


class TestFullPipeline:
    def test_reconcile_then_release(
        self,
        config: HardenConfig,
        reconciler: DigestReconciler,
        baseline_store: BaselineStore,
        make_stages,
        builder: RecordingBuilder,
    ):
        assert reconciler.reconcile("amd64").verdict.kind == VerdictKind.NO_BASELINE

        result = Orchestrator(config, stages=make_stages()).run_all()

        assert result.status == "passed"
        assert result.run_id.startswith("hf-")
        (push,) = builder.pushes
        assert push["build_args"] == {"BASE_IMAGE_DIGEST": "sha256:bbb"}
        assert not config.metadata_path.exists()
        assert json.loads(baseline_store.path.read_text())["digests"]["amd64"] == "sha256:bbb"

    def test_upstream_drift_is_picked_up_by_next_run(
        self,
        config: HardenConfig,
        reconciler: DigestReconciler,
        digest_source: FakeDigestSource,
        make_stages,
        builder: RecordingBuilder,
        synced_baseline,
    ):
        Orchestrator(config, stages=make_stages(), run_id="hf-1").run_all()

        digest_source.set("sha256:fff", {"amd64": "sha256:eee", "arm64": "sha256:ccc"})
        outcome = reconciler.reconcile("amd64")
        assert outcome.synced

        stages = make_stages()
        Orchestrator(config, stages=stages, run_id="hf-2").run_test()

        assert builder.builds[-1]["build_args"]["BASE_IMAGE_DIGEST"] == "sha256:eee"
        rendered = config.rendered_path.read_text(encoding="utf-8")
        assert "factoriotools/factorio@sha256:eee" in rendered

    def test_failed_verification_leaves_registry_untouched(
        self,
        config: HardenConfig,
        make_stages,
        builder: RecordingBuilder,
        synced_baseline,
    ):
        stages = make_stages(scanner=FakeScanner(vulnerable=True))
        with pytest.raises(StageFailedError) as exc_info:
            Orchestrator(config, stages=stages).run_all()

        result = exc_info.value.result
        assert result.failed_stage == "verify"
        assert result.outcome_for("promote").state == StageState.SKIPPED
        assert builder.pushes == []
        # Clean still removed this run's generated files.
        assert not config.rendered_path.exists()
