"""Open command: jump to a source line in an editor."""

from pathlib import Path

import typer
from rich.markup import escape

from ..exceptions import GoAllocationsError
from ..navigation import open_location as open_in_editor
from . import app
from ._common import console, resolve_config


@app.command("open")
def open_location(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Source file", exists=True, dir_okay=False),
    line: int = typer.Argument(..., help="1-based line number", min=1),
):
    """
    Open FILE at LINE in your editor.

    Uses editor_command from the config, then $VISUAL, $EDITOR, then code.
    """
    config = resolve_config(ctx)
    try:
        open_in_editor(file, line, config)
    except GoAllocationsError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)
