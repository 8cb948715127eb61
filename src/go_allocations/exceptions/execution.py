"""Execution and profile-parsing exceptions."""

from pathlib import Path
from typing import Union

from .base import GoAllocationsError


class ExecutionError(GoAllocationsError):
    """Raised when a benchmark cannot be run under the memory profiler."""

    def __init__(self, benchmark: str, reason: str):
        super().__init__(
            f"Benchmark {benchmark} failed: {reason}",
            details={"benchmark": benchmark},
        )
        self.benchmark = benchmark
        self.reason = reason


class ProfileParseError(GoAllocationsError):
    """Raised when a memory profile cannot be rendered or read."""

    def __init__(self, artifact: Union[str, Path], reason: str):
        super().__init__(
            f"Cannot read memory profile: {reason}",
            details={"artifact": str(artifact)},
        )
        self.artifact = str(artifact)
        self.reason = reason
