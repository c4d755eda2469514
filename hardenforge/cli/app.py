"""Main Typer application: registers the command groups and logging.

Entry point: ``hardenforge`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from hardenforge import __version__
from hardenforge.cli.commands.digest import digest_app
from hardenforge.cli.commands.hardened import hardened_app
from hardenforge.config import HardenConfig

app = typer.Typer(
    name="hardenforge",
    help="Hardenforge: digest-pinned, verified hardened container images.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.add_typer(digest_app, name="digest", help="Track upstream base image digests.")
app.add_typer(hardened_app, name="hardened", help="Build, verify and promote the hardened image.")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=False, show_path=False)],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"hardenforge {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None,
        "--log-level",
        help="Logging level (default: HARDENFORGE_LOG_LEVEL or INFO).",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    configure_logging(log_level or HardenConfig().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
