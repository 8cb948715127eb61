"""Run commands: profile one benchmark or every discovered benchmark."""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from ..config import MAX_CONCURRENCY
from ..models import Benchmark
from ..profile import OutcomeKind, RunOutcome
from ..session import AllocationsSession
from ..view import render_tree
from . import app
from ._common import (
    EXIT_INTERRUPTED,
    console,
    find_module_root,
    resolve_config,
    resolve_roots,
    run_with_session,
)


@app.command()
def run(
    ctx: typer.Context,
    package_dir: Path = typer.Argument(
        ...,
        help="Directory of the package that declares the benchmark",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    benchmark: str = typer.Argument(..., help="Benchmark name, e.g. BenchmarkParse"),
    root: Optional[Path] = typer.Option(
        None,
        "--root",
        "-r",
        help="Module root (default: nearest directory with a go.mod)",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Profile one benchmark and show the lines of your code that allocate.

    [bold cyan]Examples:[/bold cyan]

      go-allocations run ./internal/parser BenchmarkParse

      go-allocations run . BenchmarkStringConcat --json
    """
    config = resolve_config(ctx)
    module_root = root or find_module_root(package_dir)

    async def _run(session: AllocationsSession):
        return await session.run_benchmark(package_dir.resolve(), benchmark)

    found, outcome = run_with_session(config, [module_root], _run)

    if json_output:
        print(json.dumps(_result_json(found, outcome), indent=2))
    else:
        _print_outcome(found, outcome)

    if outcome.is_cancelled:
        raise typer.Exit(EXIT_INTERRUPTED)
    if outcome.is_error:
        raise typer.Exit(1)


@app.command("run-all")
def run_all(
    ctx: typer.Context,
    roots: Optional[list[Path]] = typer.Argument(
        None,
        help="Workspace roots (Go module directories). Defaults to the current directory",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-j",
        help="Benchmarks to run at the same time (default: from config, 2)",
        min=1,
        max=MAX_CONCURRENCY,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Profile every discovered benchmark, a few at a time.

    Press Ctrl-C to stop: running benchmarks are terminated and no new ones
    are started.
    """
    config = resolve_config(ctx, concurrency=concurrency)

    def _progress(benchmark: Benchmark, outcome: RunOutcome) -> None:
        if json_output:
            return
        console.print(
            f"  {_status(outcome)} {escape(benchmark.name)} [dim]{escape(benchmark.package_path)}[/dim]"
        )

    async def _run(session: AllocationsSession):
        results = await session.run_all(on_result=_progress)
        return results, render_tree(
            session.adapter, {b.key: o for b, o in results}, title="Allocations"
        )

    results, tree = run_with_session(config, resolve_roots(roots), _run)

    if json_output:
        print(json.dumps([_result_json(b, o) for b, o in results], indent=2))
    else:
        console.print()
        console.print(tree)
        errors = sum(1 for _, o in results if o.is_error)
        cancelled = sum(1 for _, o in results if o.is_cancelled)
        summary = f"{len(results)} benchmarks, {errors} failed"
        if cancelled:
            summary += f", {cancelled} cancelled"
        console.print(f"[dim]{summary}[/dim]")

    if any(o.is_error for _, o in results):
        raise typer.Exit(1)


def _status(outcome: RunOutcome) -> str:
    if outcome.kind is OutcomeKind.FOUND:
        return f"[green]✓[/green] {len(outcome.records)} sites"
    if outcome.kind is OutcomeKind.NONE_FOUND:
        return "[green]✓[/green] none"
    if outcome.kind is OutcomeKind.ERROR:
        return "[red]✗[/red]"
    return "[yellow]-[/yellow]"


def _result_json(benchmark: Benchmark, outcome: RunOutcome) -> dict:
    data = {"benchmark": benchmark.name, "package_dir": benchmark.package_path}
    data.update(outcome.to_dict())
    return data


def _print_outcome(benchmark: Benchmark, outcome: RunOutcome) -> None:
    if outcome.kind is OutcomeKind.CANCELLED:
        console.print("[yellow]Cancelled[/yellow]")
        return
    if outcome.kind is OutcomeKind.ERROR:
        console.print(f"[red]Error:[/red] {escape(outcome.message or '')}")
        return
    if outcome.kind is OutcomeKind.NONE_FOUND:
        console.print(f"[dim]{outcome.message}[/dim]")
        return

    table = Table(title=benchmark.name, show_header=True, show_lines=False, pad_edge=True)
    table.add_column("Flat", justify="right", style="yellow")
    table.add_column("Cumulative", justify="right")
    table.add_column("Location", style="cyan")
    table.add_column("Function")
    table.add_column("Source", style="dim")
    for record in outcome.records:
        table.add_row(
            str(record.flat),
            str(record.cumulative),
            escape(record.location),
            escape(record.function),
            escape(record.source),
        )
    console.print(table)
