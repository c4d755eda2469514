"""Trivy vulnerability scanner capability."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from hardenforge.bridge.commands import CommandRunner, run_command
from hardenforge.core.errors import PolicyViolationError

logger = logging.getLogger(__name__)

# Exit status trivy is told to use for findings; any other non-zero code is a tool failure.
FINDINGS_EXIT_CODE = 2


class TrivyScanner:
    """Gate mode fails on findings at the given severities; report mode never gates."""

    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._run = runner

    def gate(
        self, image_ref: str, *, severities: Sequence[str], ignore_unfixed: bool
    ) -> None:
        args = [
            "trivy", "image",
            "--severity", ",".join(s.upper() for s in severities),
            "--exit-code", str(FINDINGS_EXIT_CODE),
        ]
        if ignore_unfixed:
            args.append("--ignore-unfixed")
        args.append(image_ref)

        logger.info("Scanning %s (%s)", image_ref, ",".join(severities))
        result = self._run(args, stream=True)
        if result.returncode == FINDINGS_EXIT_CODE:
            raise PolicyViolationError(
                f"vulnerabilities at {','.join(severities)} found in {image_ref}",
                check="vulnerability_scan",
            )
        result.check(f"vulnerability scan of {image_ref}")

    def report(self, image_ref: str, *, output: Path) -> Path:
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing full vulnerability report for %s to %s", image_ref, output)
        self._run(
            ["trivy", "image", "--format", "json", "--output", str(output), image_ref],
            stream=True,
        ).check(f"vulnerability report of {image_ref}")
        return output
