"""Unit tests for the pydantic models: baseline validation and verdicts."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from hardenforge.models.baseline import (
    BaselineRecord,
    is_supported_architecture,
    normalize_architecture,
    split_reference,
)
from hardenforge.models.manifest import ManifestInspection, PlatformDigest
from hardenforge.models.pipeline import PipelineRunResult, PipelineVariant, StageOutcome
from hardenforge.models.stages import StageState
from hardenforge.models.verdicts import DriftLevel, Verdict, VerdictKind


def _record(**overrides) -> BaselineRecord:
    data = {
        "repository": "factoriotools/factorio",
        "tag": "2.0.69",
        "manifest_list": "sha256:aaa",
        "digests": {"amd64": "sha256:bbb", "arm64": "sha256:ccc"},
        "updated_at": datetime(2026, 10, 17, 12, 0, 0, 123456, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return BaselineRecord.model_validate(data)


# ---------------------------------------------------------------------------
# Test: architecture helpers
# ---------------------------------------------------------------------------


class TestArchitectureHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("x86_64", "amd64"), ("AMD64", "amd64"), ("aarch64", "arm64"), ("arm64", "arm64")],
    )
    def test_normalize(self, raw: str, expected: str):
        assert normalize_architecture(raw) == expected

    def test_allow_list(self):
        assert is_supported_architecture("x86_64")
        assert not is_supported_architecture("s390x")
        assert not is_supported_architecture("ppc64le")

    def test_split_reference(self):
        assert split_reference("example/app:1.0.0") == ("example/app", "1.0.0")
        assert split_reference("example/app@sha256:aaa") == ("example/app", "sha256:aaa")
        assert split_reference("localhost:5000/app") == ("localhost:5000/app", "")


# ---------------------------------------------------------------------------
# Test: BaselineRecord
# ---------------------------------------------------------------------------


class TestBaselineRecord:
    def test_serialized_field_names(self):
        payload = json.loads(_record().to_json())
        assert set(payload) == {"repository", "tag", "manifest_list", "digests", "updated_at"}
        assert payload["manifest_list"] == "sha256:aaa"

    def test_updated_at_is_utc_seconds(self):
        record = _record()
        assert record.updated_at.microsecond == 0
        assert json.loads(record.to_json())["updated_at"] == "2026-10-17T12:00:00Z"

    def test_json_is_indented_with_trailing_newline(self):
        text = _record().to_json()
        assert text.endswith("}\n")
        assert '\n  "repository"' in text

    def test_round_trip_through_json(self):
        record = _record()
        assert BaselineRecord.model_validate_json(record.to_json()) == record

    def test_rejects_non_allow_listed_architecture(self):
        with pytest.raises(ValidationError, match="allow-list"):
            _record(digests={"amd64": "sha256:bbb", "s390x": "sha256:ddd"})

    def test_normalizes_architecture_keys(self):
        assert _record(digests={"x86_64": "sha256:bbb"}).digests == {"amd64": "sha256:bbb"}

    def test_rejects_malformed_digest(self):
        with pytest.raises(ValidationError):
            _record(digests={"amd64": "not-a-digest"})

    def test_rejects_repository_with_tag(self):
        with pytest.raises(ValidationError, match="tag or digest"):
            _record(repository="factoriotools/factorio:2.0.69")

    def test_rejects_empty_tag(self):
        with pytest.raises(ValidationError):
            _record(tag="  ")

    def test_digests_need_manifest_list(self):
        with pytest.raises(ValidationError, match="manifest list"):
            _record(manifest_list="")

    def test_unknown_fields_ignored(self):
        assert _record(comment="hand edited").tag == "2.0.69"

    def test_is_frozen(self):
        record = _record()
        with pytest.raises(ValidationError):
            record.tag = "other"

    def test_pinned_reference(self):
        record = _record()
        assert record.pinned_reference("x86_64") == "factoriotools/factorio@sha256:bbb"
        assert _record(digests={"arm64": "sha256:ccc"}).pinned_reference("amd64") is None


# ---------------------------------------------------------------------------
# Test: ManifestInspection
# ---------------------------------------------------------------------------


class TestManifestInspection:
    def test_digest_for_prefers_linux(self):
        inspection = ManifestInspection(
            reference="example/app:1.0.0",
            manifest_list_digest="sha256:aaa",
            platforms=[
                PlatformDigest(architecture="amd64", os="windows", digest="sha256:win"),
                PlatformDigest(architecture="amd64", os="linux", digest="sha256:lin"),
            ],
        )
        assert inspection.digest_for("x86_64") == "sha256:lin"
        assert inspection.digest_for("arm64") is None


# ---------------------------------------------------------------------------
# Test: verdicts and run results
# ---------------------------------------------------------------------------


class TestVerdict:
    def test_up_to_date_needs_no_sync(self):
        assert not Verdict.up_to_date("amd64", "sha256:bbb").requires_sync

    @pytest.mark.parametrize(
        "verdict",
        [
            Verdict.no_baseline("amd64"),
            Verdict.missing_arch_entry("amd64", "sha256:bbb"),
            Verdict.drifted("amd64", DriftLevel.ARCHITECTURE, "sha256:bbb", "sha256:eee"),
        ],
    )
    def test_everything_else_requires_sync(self, verdict: Verdict):
        assert verdict.requires_sync

    def test_describe_manifest_drift(self):
        verdict = Verdict.drifted("amd64", DriftLevel.MANIFEST_LIST, "sha256:aaa", "sha256:fff")
        assert verdict.kind == VerdictKind.DRIFTED
        assert "sha256:aaa -> sha256:fff" in verdict.describe()
        assert verdict.describe().startswith("manifest list digest changed")

    def test_describe_architecture_drift(self):
        verdict = Verdict.drifted("arm64", DriftLevel.ARCHITECTURE, "sha256:ccc", "sha256:ddd")
        assert verdict.describe() == "digest changed for arm64: sha256:ccc -> sha256:ddd"

    def test_describe_drift_without_level(self):
        verdict = Verdict(
            kind=VerdictKind.DRIFTED, architecture="amd64", old="sha256:a", new="sha256:b"
        )
        assert verdict.describe() == "drift for amd64: sha256:a -> sha256:b"


class TestPipelineRunResult:
    def test_status_transitions(self):
        result = PipelineRunResult(run_id="hf-1", variant=PipelineVariant.ALL)
        assert result.status == "running"
        result.outcomes.append(StageOutcome(stage_id="prepare", state=StageState.PASSED))
        result.finished_at = datetime.now(timezone.utc)
        assert result.status == "passed"
        assert result.succeeded

    def test_failed_stage_and_warnings(self):
        result = PipelineRunResult(
            run_id="hf-1",
            variant=PipelineVariant.ALL,
            outcomes=[
                StageOutcome(stage_id="verify", state=StageState.FAILED, error="boom"),
                StageOutcome(stage_id="clean", state=StageState.WARNED, error="busy"),
            ],
            finished_at=datetime.now(timezone.utc),
        )
        assert result.failed_stage == "verify"
        assert result.status == "failed"
        assert [o.stage_id for o in result.warnings] == ["clean"]
        assert result.outcome_for("clean").error == "busy"
