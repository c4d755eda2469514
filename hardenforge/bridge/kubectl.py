"""Cluster admission-policy dry-run via ``kubectl apply --dry-run=server``."""

from __future__ import annotations

from pathlib import Path

from hardenforge.bridge.commands import CommandRunner, run_command
from hardenforge.core.errors import PolicyViolationError


class KubectlPolicyEngine:
    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._run = runner

    def dry_run(self, manifest: Path) -> None:
        result = self._run(
            ["kubectl", "apply", "-f", str(manifest), "--dry-run=server"]
        )
        if not result.ok:
            raise PolicyViolationError(
                f"admission policy rejected {manifest}: {result.output}",
                check="policy_dry_run",
            )
