"""Rich terminal renderer for reconciliation and pipeline results.

Color scheme
------------
- green     : PASSED / up to date
- red       : FAILED / drifted
- yellow    : WARNED / missing entry
- dim       : NOT_STARTED, SKIPPED
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from hardenforge.core.errors import StageFailedError
from hardenforge.models.baseline import BaselineRecord
from hardenforge.models.pipeline import PipelineRunResult
from hardenforge.models.stages import StageState
from hardenforge.models.verdicts import ReconcileOutcome, StatusReport, Verdict, VerdictKind

# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_ICONS: dict[StageState, str] = {
    StageState.PASSED: "[green]PASSED[/green]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.WARNED: "[yellow]WARNED[/yellow]",
    StageState.NOT_STARTED: "[dim]NOT STARTED[/dim]",
    StageState.SKIPPED: "[dim]SKIPPED[/dim]",
}

_VERDICT_STYLES: dict[VerdictKind, str] = {
    VerdictKind.UP_TO_DATE: "green",
    VerdictKind.DRIFTED: "red",
    VerdictKind.NO_BASELINE: "yellow",
    VerdictKind.MISSING_ARCH_ENTRY: "yellow",
}


class MonitorRenderer:
    """Renders hardenforge records as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Baseline
    # ------------------------------------------------------------------

    def render_baseline(self, record: BaselineRecord, local_arch: str = "") -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Architecture", min_width=12)
        table.add_column("Digest")

        for arch, digest in sorted(record.digests.items()):
            marker = " [bold](local)[/bold]" if arch == local_arch else ""
            table.add_row(f"{arch}{marker}", digest)

        updated = (
            record.updated_at.strftime("%Y-%m-%d %H:%M:%S UTC")
            if record.updated_at
            else "never"
        )
        summary = Text.from_markup(
            f"[bold]Manifest list:[/bold] {record.manifest_list_digest or '-'}  |  "
            f"[bold]Updated:[/bold] {updated}"
        )
        return Panel(
            Group(table, Text(""), summary),
            title=f"[bold]Baseline {record.image_ref}[/bold]",
            border_style="blue",
            padding=(1, 2),
        )

    def print_baseline(self, record: BaselineRecord | None, local_arch: str = "") -> None:
        if record is None:
            self.console.print("[yellow]No baseline recorded yet.[/yellow]")
            return
        self.console.print(self.render_baseline(record, local_arch))
        if local_arch and record.digest_for(local_arch) is None:
            self.console.print(f"[yellow]No digest found for {local_arch} in baseline.[/yellow]")

    # ------------------------------------------------------------------
    # Verdicts
    # ------------------------------------------------------------------

    def format_verdict(self, verdict: Verdict) -> str:
        style = _VERDICT_STYLES.get(verdict.kind, "")
        return f"[{style}]{verdict.kind.value}[/{style}]: {verdict.describe()}"

    def print_verdict(self, verdict: Verdict) -> None:
        self.console.print(self.format_verdict(verdict))

    def print_reconcile(self, outcome: ReconcileOutcome) -> None:
        self.print_verdict(outcome.verdict)
        if outcome.synced and outcome.record is not None:
            self.console.print("[bold green]Baseline synchronized.[/bold green]")
            self.console.print(self.render_baseline(outcome.record, outcome.verdict.architecture))
        else:
            self.console.print("[dim]No sync required.[/dim]")

    def print_status(self, report: StatusReport) -> None:
        self.print_baseline(report.record, report.architecture)
        if report.verdict is not None:
            self.print_verdict(report.verdict)
        if not report.upstream_checked:
            self.console.print(
                f"[yellow]Upstream not checked:[/yellow] {report.warning or 'registry unreachable'}"
            )

    # ------------------------------------------------------------------
    # Pipeline runs
    # ------------------------------------------------------------------

    def render_run(self, result: PipelineRunResult) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Stage", min_width=10)
        table.add_column("State", min_width=12, justify="center")
        table.add_column("Details")

        for i, outcome in enumerate(result.outcomes):
            if outcome.error:
                details = f"[red]{outcome.error}[/red]"
            elif "duration_seconds" in outcome.detail:
                details = f"[dim]{outcome.detail['duration_seconds']:.1f}s[/dim]"
            else:
                details = "[dim]-[/dim]"
            table.add_row(
                str(i),
                outcome.stage_id,
                _STATE_ICONS.get(outcome.state, outcome.state.value),
                details,
            )

        status_style = "green" if result.status == "passed" else "bold red"
        summary = Text.from_markup(
            f"[bold]Run:[/bold] {result.run_id}  |  "
            f"[bold]Variant:[/bold] {result.variant.value}  |  "
            f"[bold]Status:[/bold] [{status_style}]{result.status}[/{status_style}]  |  "
            f"[bold]Duration:[/bold] {result.duration_seconds:.1f}s"
        )
        return Panel(
            Group(table, Text(""), summary),
            title="[bold]Hardened Image Pipeline[/bold]",
            border_style="green" if result.status == "passed" else "red",
            padding=(1, 2),
        )

    def print_run(self, result: PipelineRunResult) -> None:
        self.console.print(self.render_run(result))

    def print_stage_failure(self, error: StageFailedError) -> None:
        if error.result is not None:
            self.print_run(error.result)
        self.console.print(f"[bold red]{error.stage_id} failed:[/bold red] {error.cause}")
