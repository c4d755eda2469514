"""Verify: post-build policy checks for the hardened image.

Sub-checks run in a fixed order and the first failure aborts the stage:

    1. non-root user
    2. vulnerability gate (or full report in report mode)
    3. read-only root filesystem smoke test
    4. admission-policy dry-run (only when enabled)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from hardenforge.bridge.capabilities import (
    ImageInspector,
    PolicyEngine,
    RuntimeSmokeTester,
    VulnerabilityScanner,
)
from hardenforge.core.errors import PolicyViolationError
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.stages.base import BaseStage

logger = logging.getLogger(__name__)

_ROOT_USERS = frozenset({"", "root", "0"})


def is_root_user(user: str) -> bool:
    """``USER`` values that resolve to UID 0 (``root``, ``0``, ``0:0``, unset)."""
    name = user.strip().split(":", 1)[0]
    return name in _ROOT_USERS


class VerifyStage(BaseStage):
    def __init__(
        self,
        *,
        metadata_store: MetadataStore,
        inspector: ImageInspector,
        scanner: VulnerabilityScanner,
        smoke_tester: RuntimeSmokeTester,
        policy_engine: PolicyEngine | None = None,
        report_mode: bool = False,
        policy_test: bool = False,
        severities: list[str] | None = None,
        ignore_unfixed: bool = True,
        report_path: Path = Path("builddata/trivy-report.json"),
        policy_manifest: Path = Path("test/pod-readonly.yaml"),
    ) -> None:
        self.metadata_store = metadata_store
        self.inspector = inspector
        self.scanner = scanner
        self.smoke_tester = smoke_tester
        self.policy_engine = policy_engine
        self.report_mode = report_mode
        self.policy_test = policy_test
        self.severities = severities or ["HIGH", "CRITICAL"]
        self.ignore_unfixed = ignore_unfixed
        self.report_path = Path(report_path)
        self.policy_manifest = Path(policy_manifest)

    @property
    def stage_id(self) -> str:
        return "verify"

    @property
    def display_name(self) -> str:
        return "Verify"

    def checks(self) -> list[tuple[str, Callable[[str], None]]]:
        """The ordered sub-checks enabled for this configuration."""
        ordered: list[tuple[str, Callable[[str], None]]] = [
            ("non_root_user", self._check_non_root),
            ("vulnerability_scan", self._check_vulnerabilities),
            ("read_only_runtime", self._check_read_only),
        ]
        if self.policy_test:
            ordered.append(("policy_dry_run", self._check_policy))
        return ordered

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        metadata = self.metadata_store.load(run_context["run_id"])
        image = metadata.target_tag

        passed: list[str] = []
        for name, check in self.checks():
            logger.info("Verify check %s on %s", name, image)
            try:
                check(image)
            except PolicyViolationError as exc:
                if not exc.check:
                    exc.check = name
                raise
            passed.append(name)

        logger.info("Verification complete: all checks passed for %s", image)
        result: dict[str, Any] = {"image": image, "checks": passed}
        if self.report_mode:
            result["report_path"] = str(self.report_path)
        return result

    # ------------------------------------------------------------------
    # Sub-checks
    # ------------------------------------------------------------------

    def _check_non_root(self, image: str) -> None:
        user = self.inspector.configured_user(image)
        if is_root_user(user):
            raise PolicyViolationError(
                f"image runs as root (USER={user!r}); must be a non-root user",
                check="non_root_user",
            )
        logger.info("User check passed: %s", user)

    def _check_vulnerabilities(self, image: str) -> None:
        if self.report_mode:
            path = self.scanner.report(image, output=self.report_path)
            logger.info("Full vulnerability report written to %s", path)
            return
        self.scanner.gate(
            image, severities=self.severities, ignore_unfixed=self.ignore_unfixed
        )

    def _check_read_only(self, image: str) -> None:
        self.smoke_tester.run_read_only(image)
        logger.info("Read-only runtime check passed")

    def _check_policy(self, image: str) -> None:
        if self.policy_engine is None:
            raise PolicyViolationError(
                "policy dry-run enabled but no policy engine configured",
                check="policy_dry_run",
            )
        self.policy_engine.dry_run(self.policy_manifest)
        logger.info("Admission policy dry-run passed")
