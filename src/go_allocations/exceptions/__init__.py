"""Exception hierarchy for go-allocations."""

from .base import GoAllocationsError, OperationCancelled
from .config import ConfigurationError, InvalidConfigError
from .discovery import (
    BenchmarkNotFoundError,
    CacheError,
    DiscoveryError,
    ModuleNotFoundInCacheError,
    ModuleResolutionError,
    PackageNotFoundError,
    PackageScanError,
)
from .execution import ExecutionError, ProfileParseError
from .navigation import NavigationError
from .toolchain import (
    CommandFailedError,
    OutputLineTooLongError,
    ToolchainError,
    ToolNotFoundError,
)

__all__ = [
    "GoAllocationsError",
    "OperationCancelled",
    "ToolchainError",
    "ToolNotFoundError",
    "CommandFailedError",
    "OutputLineTooLongError",
    "DiscoveryError",
    "ModuleResolutionError",
    "PackageScanError",
    "CacheError",
    "ModuleNotFoundInCacheError",
    "PackageNotFoundError",
    "BenchmarkNotFoundError",
    "ExecutionError",
    "ProfileParseError",
    "NavigationError",
    "ConfigurationError",
    "InvalidConfigError",
]
