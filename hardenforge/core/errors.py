"""Error taxonomy shared by adapters, the reconciler, and the pipeline.

Lower layers raise the most specific subclass they can.  The reconciler and
the orchestrator attach the name of the operation or stage in progress via
``in_operation()`` before the error reaches the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from hardenforge.models.pipeline import PipelineRunResult


class HardenForgeError(RuntimeError):
    """Base class for every failure raised by hardenforge."""

    kind: str = "error"

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation

    def in_operation(self, operation: str) -> HardenForgeError:
        """Attach *operation* unless an inner layer already named one."""
        if self.operation is None:
            self.operation = operation
        return self

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {self.message}"
        return self.message


class ToolUnavailableError(HardenForgeError):
    """A required external binary is not installed or not on PATH."""

    kind = "tool_unavailable"


class ToolTimeoutError(HardenForgeError):
    """An explicitly time-bounded external call exceeded its deadline."""

    kind = "timeout"


class CommandFailedError(HardenForgeError):
    """An external command exited non-zero for a reason we could not classify."""

    kind = "command_failed"

    def __init__(
        self,
        message: str,
        *,
        returncode: int = 1,
        output: str = "",
        operation: str | None = None,
    ) -> None:
        super().__init__(message, operation=operation)
        self.returncode = returncode
        self.output = output


class NetworkUnreachableError(HardenForgeError):
    """The registry or remote API could not be reached."""

    kind = "network_unreachable"


class NotFoundError(HardenForgeError):
    """A reference or record does not exist."""

    kind = "not_found"


class NoBaselineError(NotFoundError):
    """No baseline file exists yet.  Triggers initialization, not an alert."""

    kind = "no_baseline"


class ParseError(HardenForgeError):
    """External tool output or a stored file is malformed."""

    kind = "parse_error"


class DigestDriftError(HardenForgeError):
    """Upstream digest no longer matches the baseline."""

    kind = "digest_drift"


class MissingArchEntryError(HardenForgeError):
    """The baseline has no digest for the requested architecture."""

    kind = "missing_arch_entry"


class PolicyViolationError(HardenForgeError):
    """A verification sub-check rejected the image."""

    kind = "policy_violation"

    def __init__(self, message: str, *, check: str = "", operation: str | None = None) -> None:
        super().__init__(message, operation=operation)
        self.check = check


class IOFailureError(HardenForgeError):
    """A baseline or metadata file could not be read or written."""

    kind = "io_failure"


class StaleMetadataError(HardenForgeError):
    """Build metadata belongs to a different run, or its build file changed."""

    kind = "stale_metadata"


class BaselineLockedError(HardenForgeError):
    """Another process holds the baseline lock."""

    kind = "baseline_locked"


class TemplateError(HardenForgeError):
    """The build-file template cannot be pinned into a valid build file."""

    kind = "template_error"


class StageFailedError(HardenForgeError):
    """A hard-gate pipeline stage failed; carries the failing stage and cause."""

    kind = "stage_failed"

    def __init__(
        self,
        stage_id: str,
        cause: BaseException,
        *,
        result: PipelineRunResult | None = None,
    ) -> None:
        super().__init__(f"{stage_id} stage failed: {cause}", operation=None)
        self.stage_id = stage_id
        self.cause = cause
        self.result = result
