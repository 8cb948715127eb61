"""CLI entry point: registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ._common import console

app = typer.Typer(
    name="go-allocations",
    help="Find memory allocation hot spots in Go benchmarks.",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold cyan]go-allocations[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)


@app.callback()
def global_options(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log toolchain commands and discovery details",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also append logs to this file",
        dir_okay=False,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """
    Discover Go benchmarks and show where they allocate memory.

    Every benchmark runs under [bold]go test -memprofile[/bold] and the
    profile is rendered with [bold]go tool pprof -list[/bold], keeping only
    lines inside your own module.

    [bold cyan]Examples:[/bold cyan]

      go-allocations tree

      go-allocations run ./pkg BenchmarkParse

      go-allocations run-all --concurrency 4 --json
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["log_file"] = log_file
    ctx.obj["config"] = config


# Import subcommands to register them
from .discover import list_benchmarks as _list, tree as _tree  # noqa: F401, E402
from .run import run as _run, run_all as _run_all  # noqa: F401, E402
from .open import open_location as _open  # noqa: F401, E402


def main() -> None:
    app()
