"""Toolchain exceptions: spawning and running external commands."""

from typing import Sequence

from .base import GoAllocationsError


class ToolchainError(GoAllocationsError):
    """Base class for errors raised while invoking external tools."""
    pass


class ToolNotFoundError(ToolchainError):
    """Raised when the executable for a command cannot be found."""

    def __init__(self, tool: str):
        super().__init__(f"Executable not found: {tool}", details={"tool": tool})
        self.tool = tool


class CommandFailedError(ToolchainError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str):
        command = " ".join(argv)
        diagnostic = stderr.strip()
        super().__init__(
            f"Command failed with exit code {returncode}: {command}",
            details={"stderr": diagnostic} if diagnostic else None,
        )
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr

    @property
    def diagnostic(self) -> str:
        """Best single-line description of the failure for display."""
        text = self.stderr.strip()
        return text if text else f"exit code {self.returncode}"


class OutputLineTooLongError(ToolchainError):
    """Raised when a streamed command writes a line longer than the read buffer."""

    def __init__(self, argv: Sequence[str], limit: int):
        super().__init__(
            f"Output line longer than {limit} bytes: {' '.join(argv)}",
            details={"limit": str(limit)},
        )
        self.argv = list(argv)
        self.limit = limit
