"""Thin wrapper around ``subprocess`` for invoking external tooling.

Every adapter in :mod:`hardenforge.bridge` calls external binaries through a
``CommandRunner`` so tests can substitute a fake.  Missing binaries surface
as ``ToolUnavailableError`` and exceeded deadlines as ``ToolTimeoutError``;
non-zero exits are returned to the caller, who knows how to classify them.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from hardenforge.core.errors import CommandFailedError, ToolTimeoutError, ToolUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, for diagnostics."""
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)

    def check(self, what: str) -> CommandResult:
        """Raise ``CommandFailedError`` describing *what* failed on non-zero exit."""
        if not self.ok:
            raise CommandFailedError(
                f"{what} failed (exit {self.returncode}): {self.output or 'no output'}",
                returncode=self.returncode,
                output=self.output,
            )
        return self


class CommandRunner(Protocol):
    def __call__(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
        stream: bool = False,
        cwd: Path | None = None,
    ) -> CommandResult: ...


def run_command(
    args: Sequence[str],
    *,
    timeout: float | None = None,
    stream: bool = False,
    cwd: Path | None = None,
) -> CommandResult:
    """Run *args* and return its exit code and captured output.

    With ``stream=True`` output goes straight to the terminal (long builds,
    pushes, scans) and the returned result carries no captured text.
    """
    argv = tuple(str(a) for a in args)
    if not argv:
        raise ValueError("empty command")
    if shutil.which(argv[0]) is None:
        raise ToolUnavailableError(f"{argv[0]} not found in PATH")

    logger.debug("exec: %s", " ".join(argv))
    try:
        completed = subprocess.run(
            argv,
            capture_output=not stream,
            text=True,
            timeout=timeout,
            cwd=cwd,
        )
    except subprocess.TimeoutExpired as exc:
        raise ToolTimeoutError(
            f"{argv[0]} did not finish within {timeout:g}s"
        ) from exc
    except FileNotFoundError as exc:
        raise ToolUnavailableError(f"{argv[0]} could not be executed: {exc}") from exc

    return CommandResult(
        args=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
