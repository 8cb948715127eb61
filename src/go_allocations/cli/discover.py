"""Discovery commands: print the benchmark hierarchy or a flat listing."""

import json
import os
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..session import AllocationsSession
from ..view import render_tree
from . import app
from ._common import console, resolve_config, resolve_roots, run_with_session

ROOTS_ARGUMENT = typer.Argument(
    None,
    help="Workspace roots (Go module directories). Defaults to the current directory",
    exists=True,
    file_okay=False,
    dir_okay=True,
)


@app.command()
def tree(
    ctx: typer.Context,
    roots: Optional[list[Path]] = ROOTS_ARGUMENT,
):
    """
    Show modules, packages and benchmarks as a tree.

    [bold cyan]Examples:[/bold cyan]

      go-allocations tree

      go-allocations tree ./service ./lib
    """
    config = resolve_config(ctx)

    async def _discover(session: AllocationsSession):
        await session.ensure_loaded()
        return render_tree(session.adapter, title="Go benchmarks")

    console.print(run_with_session(config, resolve_roots(roots), _discover))


@app.command("list")
def list_benchmarks(
    ctx: typer.Context,
    roots: Optional[list[Path]] = ROOTS_ARGUMENT,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List every discovered benchmark with its package and source location.
    """
    config = resolve_config(ctx)

    async def _discover(session: AllocationsSession):
        await session.ensure_loaded()
        rows = []
        for module in session.cache.modules:
            for package in session.cache.packages_of(module.path):
                for benchmark in package.benchmarks:
                    rows.append((module, package, benchmark))
        return rows

    rows = run_with_session(config, resolve_roots(roots), _discover)

    if json_output:
        output = [
            {
                "module": module.name,
                "package": package.label(),
                "package_dir": package.path,
                "benchmark": benchmark.name,
                "file": benchmark.location.file if benchmark.location else None,
                "line": benchmark.location.line if benchmark.location else None,
            }
            for module, package, benchmark in rows
        ]
        print(json.dumps(output, indent=2))
        return

    if not rows:
        console.print("[yellow]No benchmarks found[/yellow]")
        return

    table = Table(show_header=True, show_lines=False, pad_edge=True)
    table.add_column("Module", style="cyan")
    table.add_column("Package")
    table.add_column("Benchmark", style="bold")
    table.add_column("Location", style="dim")
    for module, package, benchmark in rows:
        location = ""
        if benchmark.location is not None:
            location = f"{os.path.basename(benchmark.location.file)}:{benchmark.location.line}"
        table.add_row(
            escape(module.name), escape(package.label()), escape(benchmark.name), escape(location)
        )
    console.print(table)
    console.print(f"[dim]{len(rows)} benchmarks[/dim]")
