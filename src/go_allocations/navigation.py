"""Open a source location in an editor.

The editor comes from ``editor_command`` in the configuration, then
``$VISUAL``, then ``$EDITOR``, then ``code``. Known editors get their own
"go to line" syntax; any other command can place ``{file}`` and ``{line}``
placeholders itself, e.g. ``editor_command = "idea --line {line} {file}"``.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import AllocationsConfig
from .exceptions import NavigationError, ToolNotFoundError
from .logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_EDITOR = "code"

# `code --goto file:line`
_GOTO_EDITORS = frozenset({"code", "code-insiders", "codium", "cursor"})
# `vim +line file`
_PLUS_LINE_EDITORS = frozenset({"vi", "vim", "nvim", "nano", "emacs", "emacsclient", "micro"})
# `subl file:line`
_COLON_EDITORS = frozenset({"subl", "hx", "helix", "zed"})
# Editors that take over the terminal and must run in the foreground
_TERMINAL_EDITORS = frozenset({"vi", "vim", "nvim", "nano", "micro", "hx", "helix"})


@dataclass(frozen=True)
class NavigationTarget:
    """A source file and 1-based line."""

    file: str
    line: int

    def __post_init__(self) -> None:
        if self.line < 1:
            raise NavigationError(str(self), "line numbers start at 1")

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


def resolve_editor(config: Optional[AllocationsConfig] = None) -> str:
    if config is not None and config.editor_command:
        return config.editor_command
    return os.environ.get("VISUAL") or os.environ.get("EDITOR") or DEFAULT_EDITOR


def editor_command(target: NavigationTarget, editor: str) -> list[str]:
    """Argv that opens ``target`` in ``editor`` with the cursor on its line."""
    parts = shlex.split(editor)
    if not parts:
        raise NavigationError(str(target), "no editor configured")

    if "{file}" in editor or "{line}" in editor:
        return [part.format(file=target.file, line=target.line) for part in parts]

    name = Path(parts[0]).name
    if name in _GOTO_EDITORS:
        return [*parts, "--goto", f"{target.file}:{target.line}"]
    if name in _PLUS_LINE_EDITORS:
        return [*parts, f"+{target.line}", target.file]
    if name in _COLON_EDITORS:
        return [*parts, f"{target.file}:{target.line}"]

    logger.debug("Unknown editor %s, opening %s without a line", name, target.file)
    return [*parts, target.file]


def open_location(
    file: Union[str, Path], line: int, config: Optional[AllocationsConfig] = None
) -> list[str]:
    """Open ``file`` at ``line``.

    GUI editors are started detached; terminal editors run in the foreground
    until the user exits them.

    Returns:
        The argv that was launched

    Raises:
        NavigationError: The file does not exist or the line is invalid
        ToolNotFoundError: The editor executable does not exist
    """
    target = NavigationTarget(file=os.path.abspath(file), line=line)
    if not os.path.isfile(target.file):
        raise NavigationError(str(target), "file does not exist")

    argv = editor_command(target, resolve_editor(config))
    logger.debug("Opening %s: %s", target, shlex.join(argv))

    try:
        if Path(argv[0]).name in _TERMINAL_EDITORS:
            subprocess.run(argv, check=False)
        else:
            subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
    except FileNotFoundError:
        raise ToolNotFoundError(argv[0])
    return argv
