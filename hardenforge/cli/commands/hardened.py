"""``hardenforge hardened ...``: the hardened image pipeline.

Single stages share state through the build metadata file: ``prepare``
starts a new run, and ``build``, ``verify`` and ``promote`` continue the run
recorded there unless ``--run-id`` names one explicitly.
"""

from __future__ import annotations

import typer
from rich.console import Console

from hardenforge.config import HardenConfig
from hardenforge.core.errors import HardenForgeError, StageFailedError
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.core.orchestrator import Orchestrator
from hardenforge.monitor.renderer import MonitorRenderer
from hardenforge.stages import default_stages

console = Console()
hardened_app = typer.Typer(no_args_is_help=True, add_completion=False)

_RUN_ID_OPTION = typer.Option(
    None,
    "--run-id",
    help="Run to continue (default: the run recorded by the last prepare).",
)


def _orchestrator(config: HardenConfig, run_id: str | None = None) -> Orchestrator:
    return Orchestrator(config, stages=default_stages(config), run_id=run_id)


def _continue_run(config: HardenConfig, run_id: str | None) -> Orchestrator:
    run_id = run_id or MetadataStore(config.metadata_path).recorded_run_id()
    if not run_id:
        console.print(
            "[bold red]No prepared run found.[/bold red] Run 'hardenforge hardened prepare' first."
        )
        raise typer.Exit(code=1)
    return _orchestrator(config, run_id)


def _run_stage(orchestrator: Orchestrator, stage_id: str) -> dict:
    try:
        result = orchestrator.run_single(stage_id)
    except HardenForgeError as exc:
        console.print(f"[bold red]Error ({exc.kind}):[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[bold green]{stage_id} passed[/bold green] "
        f"[dim](run {orchestrator.run_id}, {result['duration_seconds']:.1f}s)[/dim]"
    )
    return result


@hardened_app.command("prepare", help="Render the digest-pinned build file.")
def prepare_cmd() -> None:
    config = HardenConfig()
    result = _run_stage(_orchestrator(config), "prepare")
    console.print(f"[bold]Pinned base:[/bold] {result['base_reference']}")
    console.print(f"[bold]Target tag:[/bold]  {result['target_tag']}")
    if not result["version_detected"]:
        console.print("[yellow]Upstream version could not be detected; using 'unknown'.[/yellow]")


@hardened_app.command("build", help="Build the hardened image.")
def build_cmd(
    run_id: str = _RUN_ID_OPTION,
    local_only: bool = typer.Option(
        False, "--local-only", help="Build and load only the local platform."
    ),
) -> None:
    config = HardenConfig()
    orchestrator = _continue_run(config, run_id)
    if local_only:
        orchestrator.stages["build"].local_only = True
    _run_stage(orchestrator, "build")


@hardened_app.command("verify", help="Run the post-build policy checks.")
def verify_cmd(run_id: str = _RUN_ID_OPTION) -> None:
    config = HardenConfig()
    _run_stage(_continue_run(config, run_id), "verify")


@hardened_app.command("promote", help="Push the verified image.")
def promote_cmd(run_id: str = _RUN_ID_OPTION) -> None:
    config = HardenConfig()
    _run_stage(_continue_run(config, run_id), "promote")


@hardened_app.command("clean", help="Remove the rendered build file and metadata.")
def clean_cmd() -> None:
    config = HardenConfig()
    _run_stage(_orchestrator(config), "clean")


def _run_pipeline(test: bool) -> None:
    config = HardenConfig()
    orchestrator = _orchestrator(config)
    renderer = MonitorRenderer(console=console)
    try:
        result = orchestrator.run_test() if test else orchestrator.run_all()
    except StageFailedError as exc:
        renderer.print_stage_failure(exc)
        raise typer.Exit(code=1) from exc
    renderer.print_run(result)


@hardened_app.command("all", help="Prepare, build, verify, promote and clean.")
def all_cmd() -> None:
    _run_pipeline(test=False)


@hardened_app.command("test", help="Prepare, build locally and verify. Nothing is pushed.")
def test_cmd() -> None:
    _run_pipeline(test=True)
