"""Discovered workspace structure: modules own packages, packages own benchmarks.

Only forward ownership is stored. "Which module holds this package" and
"which package holds this benchmark" are answered by indexed lookups in the
structure cache, keyed by normalised directory paths.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Absolute, normalised form used for every cache key."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


@dataclass(frozen=True)
class SourceLocation:
    """A 1-based line in a source file."""

    file: str
    line: int

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class BenchmarkKey:
    """Identity of a benchmark: (package directory, benchmark name)."""

    package_path: str
    name: str

    @classmethod
    def of(cls, package_path: str | os.PathLike[str], name: str) -> BenchmarkKey:
        return cls(normalize_path(package_path), name)

    def __str__(self) -> str:
        return f"{self.package_path}:{self.name}"


@dataclass(frozen=True)
class Benchmark:
    """A top-level benchmark function inside a package."""

    name: str
    package_path: str
    location: Optional[SourceLocation] = None

    @property
    def key(self) -> BenchmarkKey:
        return BenchmarkKey(self.package_path, self.name)


@dataclass(frozen=True)
class Package:
    """A Go package with at least one benchmark."""

    name: str
    path: str
    module_path: str
    benchmarks: tuple[Benchmark, ...] = field(default_factory=tuple)

    @property
    def benchmark_names(self) -> list[str]:
        return [b.name for b in self.benchmarks]

    def label(self) -> str:
        """Display label: path relative to the module root.

        The package name is used at the module root, or when the relative
        path is the package name itself.
        """
        relative = os.path.relpath(self.path, self.module_path)
        if relative in (".", self.name):
            return self.name
        return relative.replace(os.sep, "/")


@dataclass(frozen=True)
class Module:
    """A Go module rooted at a workspace folder."""

    name: str
    path: str
    gomod: Optional[str] = None

    @property
    def root(self) -> str:
        """Directory that owns the module's source files."""
        if self.gomod and self.gomod != os.devnull:
            return os.path.dirname(self.gomod)
        return self.path
