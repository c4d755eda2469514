"""``hardenforge digest ...``: inspect and reconcile the upstream baseline.

    show       print the stored baseline (no network)
    compare    compare upstream against the baseline (never writes)
    sync       rewrite the baseline from the upstream manifest
    reconcile  compare, then sync only when missing or drifted
    status     show + compare, tolerating an unreachable registry
"""

from __future__ import annotations

import typer
from rich.console import Console

from hardenforge.config import HardenConfig
from hardenforge.core.errors import DigestDriftError, HardenForgeError
from hardenforge.core.reconciler import reconciler_from_config
from hardenforge.monitor.renderer import MonitorRenderer

console = Console()
digest_app = typer.Typer(no_args_is_help=True, add_completion=False)


def _fail(exc: HardenForgeError) -> typer.Exit:
    console.print(f"[bold red]Error ({exc.kind}):[/bold red] {exc}")
    return typer.Exit(code=1)


@digest_app.command("show", help="Print the stored baseline.")
def show_cmd() -> None:
    config = HardenConfig()
    renderer = MonitorRenderer(console=console)
    try:
        record = reconciler_from_config(config).show(config.local_architecture)
    except HardenForgeError as exc:
        raise _fail(exc) from exc
    renderer.print_baseline(record, config.local_architecture)


@digest_app.command("compare", help="Compare the upstream manifest with the baseline.")
def compare_cmd(
    fail_on_drift: bool = typer.Option(
        False,
        "--fail-on-drift",
        help="Exit with code 2 when the baseline is missing or stale.",
    ),
) -> None:
    config = HardenConfig()
    renderer = MonitorRenderer(console=console)
    reconciler = reconciler_from_config(config)
    try:
        if fail_on_drift:
            verdict = reconciler.require_current(config.local_architecture)
        else:
            verdict = reconciler.compare(config.local_architecture)
    except DigestDriftError as exc:
        console.print(f"[bold red]Drift detected:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc
    except HardenForgeError as exc:
        raise _fail(exc) from exc
    renderer.print_verdict(verdict)


@digest_app.command("sync", help="Rewrite the baseline from the upstream manifest.")
def sync_cmd() -> None:
    config = HardenConfig()
    renderer = MonitorRenderer(console=console)
    try:
        record = reconciler_from_config(config).sync()
    except HardenForgeError as exc:
        raise _fail(exc) from exc
    console.print("[bold green]Baseline synchronized.[/bold green]")
    renderer.print_baseline(record, config.local_architecture)


@digest_app.command("reconcile", help="Compare and sync only when needed.")
def reconcile_cmd() -> None:
    config = HardenConfig()
    renderer = MonitorRenderer(console=console)
    try:
        outcome = reconciler_from_config(config).reconcile(config.local_architecture)
    except HardenForgeError as exc:
        raise _fail(exc) from exc
    renderer.print_reconcile(outcome)


@digest_app.command("status", help="Show the baseline and upstream status.")
def status_cmd() -> None:
    config = HardenConfig()
    renderer = MonitorRenderer(console=console)
    try:
        report = reconciler_from_config(config).status(config.local_architecture)
    except HardenForgeError as exc:
        raise _fail(exc) from exc
    renderer.print_status(report)
