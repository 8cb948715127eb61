"""Shared CLI helpers."""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from ..config import AllocationsConfig, load_config
from ..exceptions import ConfigurationError, GoAllocationsError, OperationCancelled
from ..logging_config import setup_logging
from ..session import AllocationsSession

console = Console()

T = TypeVar("T")

# Conventional exit status after SIGINT
EXIT_INTERRUPTED = 130


def resolve_config(ctx: typer.Context, **overrides: Any) -> AllocationsConfig:
    """Build the configuration from global and command options, then set up logging."""
    obj = ctx.obj or {}
    log_file = obj.get("log_file")
    try:
        config = load_config(
            config_file=obj.get("config"),
            verbose=obj.get("verbose", False),
            quiet=obj.get("quiet", False),
            **overrides,
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
    setup_logging(config.verbosity, log_file=str(log_file) if log_file else None)
    return config


def resolve_roots(roots: Optional[list[Path]]) -> list[Path]:
    """Workspace roots from the command line, or the current directory."""
    return list(roots) if roots else [Path.cwd()]


def run_with_session(
    config: AllocationsConfig,
    roots: list[Path],
    action: Callable[[AllocationsSession], Awaitable[T]],
) -> T:
    """Run ``action`` against a fresh session on a new event loop.

    Ctrl-C cancels all running work, waits for spawned processes to be
    reaped and exits with status 130. Tool errors exit with status 1.
    """

    async def _main() -> T:
        session = AllocationsSession(config, roots)
        try:
            return await action(session)
        finally:
            await session.close()

    try:
        return asyncio.run(_main())
    except (KeyboardInterrupt, OperationCancelled):
        console.print("[yellow]Cancelled[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)
    except GoAllocationsError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def find_module_root(path: Path) -> Path:
    """Closest directory at or above ``path`` holding a go.mod, else ``path``."""
    path = path.resolve()
    for candidate in (path, *path.parents):
        if (candidate / "go.mod").is_file():
            return candidate
    return path
