"""External toolchain access: process spawning and Go commands."""

from .go import GoToolchain
from .process import ProcessResult, ProcessRunner, StreamingProcess, format_command

__all__ = [
    "GoToolchain",
    "ProcessRunner",
    "ProcessResult",
    "StreamingProcess",
    "format_command",
]
