"""Discovery and structure-cache exceptions."""

from pathlib import Path
from typing import Union

from .base import GoAllocationsError

PathLike = Union[str, Path]


class DiscoveryError(GoAllocationsError):
    """Base class for discovery errors."""
    pass


class ModuleResolutionError(DiscoveryError):
    """Raised when a workspace root does not resolve to a Go module."""

    def __init__(self, root: PathLike, reason: str):
        super().__init__(
            f"Not a Go module: {root}", details={"root": str(root), "reason": reason}
        )
        self.root = str(root)
        self.reason = reason


class PackageScanError(DiscoveryError):
    """Raised when a single package cannot be listed for benchmarks."""

    def __init__(self, package_dir: PathLike, reason: str):
        super().__init__(
            f"Cannot scan package: {package_dir}",
            details={"package": str(package_dir), "reason": reason},
        )
        self.package_dir = str(package_dir)
        self.reason = reason


class CacheError(GoAllocationsError):
    """Base class for structure cache lookups that violate an invariant."""
    pass


class ModuleNotFoundInCacheError(CacheError):
    """Raised when a module path is absent from a loaded cache."""

    def __init__(self, module_path: PathLike):
        super().__init__(
            f"Module not found in cache: {module_path}", details={"module": str(module_path)}
        )
        self.module_path = str(module_path)


class PackageNotFoundError(CacheError):
    """Raised when a package directory is absent from a loaded cache."""

    def __init__(self, package_dir: PathLike):
        super().__init__(
            f"Package not found in cache: {package_dir}", details={"package": str(package_dir)}
        )
        self.package_dir = str(package_dir)


class BenchmarkNotFoundError(CacheError):
    """Raised when a benchmark key is absent after discovery completed."""

    def __init__(self, package_dir: PathLike, name: str):
        super().__init__(
            f"Benchmark not found: {name} in package {package_dir}",
            details={"package": str(package_dir), "benchmark": name},
        )
        self.package_dir = str(package_dir)
        self.name = name
