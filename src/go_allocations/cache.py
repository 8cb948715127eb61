"""
Structure cache for go-allocations.

The single owner of discovered modules, packages and benchmarks. Anything
displayed is projected from here on read and never written back, so there
is exactly one mutable copy of the workspace structure.

Write surface (used only by the discovery engine):
- add_module / add_package: append-only
- mark_executed / clear_run_state: the one mutable per-benchmark flag
- begin_load / finish_load / reset: load lifecycle

Everything else is a read accessor. Parents are resolved through indexes
instead of back-pointers stored on the entities.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from .exceptions import BenchmarkNotFoundError, ModuleNotFoundInCacheError, PackageNotFoundError
from .logging_config import get_logger
from .models import Benchmark, BenchmarkKey, Module, Package, normalize_path

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


class ChangeKind(Enum):
    MODULE_ADDED = "module_added"
    PACKAGE_ADDED = "package_added"
    RUN_STATE = "run_state"
    LOADED = "loaded"
    RESET = "reset"


@dataclass(frozen=True)
class StructureChange:
    """Notification sent to listeners after every cache mutation."""

    kind: ChangeKind
    path: Optional[str] = None
    key: Optional[BenchmarkKey] = None


Listener = Callable[[StructureChange], None]


class StructureCache:
    """
    In-memory store of the discovered workspace.

    Features:
    - Append-only modules and packages, in discovery order
    - Indexed lookups by module path, package path and benchmark key
    - Change notifications after every mutation
    - Atomic reset before a fresh discovery pass
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._clear()

    def _clear(self) -> None:
        self._modules: list[Module] = []
        self._module_index: dict[str, Module] = {}
        self._module_packages: dict[str, list[Package]] = {}
        self._package_index: dict[str, Package] = {}
        self._benchmarks: dict[BenchmarkKey, Benchmark] = {}
        self._executed: set[BenchmarkKey] = set()
        self._loaded = False
        self._in_progress = False

    # ------------------------------------------------------------------
    # Load lifecycle
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def begin_load(self) -> None:
        self._in_progress = True
        self._loaded = False

    def finish_load(self) -> None:
        self._in_progress = False
        self._loaded = True
        logger.debug(
            "Discovery finished: %d modules, %d packages, %d benchmarks",
            len(self._modules),
            len(self._package_index),
            len(self._benchmarks),
        )
        self._notify(StructureChange(ChangeKind.LOADED))

    def abort_load(self) -> None:
        """End an interrupted pass. The cache stays "not loaded" so lookups keep
        treating missing keys as not yet available."""
        self._in_progress = False
        self._loaded = False

    def reset(self) -> None:
        """Drop every module, package, benchmark and run-state flag at once."""
        self._clear()
        logger.debug("Structure cache reset")
        self._notify(StructureChange(ChangeKind.RESET))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_module(self, module: Module) -> Module:
        """Append a module.

        Raises:
            ValueError: A module with the same root path is already cached
        """
        path = normalize_path(module.path)
        if path in self._module_index:
            raise ValueError(f"Module already cached: {path}")
        if module.path != path:
            module = Module(name=module.name, path=path, gomod=module.gomod)

        self._modules.append(module)
        self._module_index[path] = module
        self._module_packages[path] = []
        logger.debug("Cached module %s at %s", module.name, path)
        self._notify(StructureChange(ChangeKind.MODULE_ADDED, path=path))
        return module

    def add_package(self, package: Package) -> Package:
        """Append a package together with its benchmarks.

        Packages without benchmarks are not retained.

        Raises:
            ModuleNotFoundInCacheError: The owning module was never added
            ValueError: The package directory is already cached
        """
        module_path = normalize_path(package.module_path)
        if module_path not in self._module_index:
            raise ModuleNotFoundInCacheError(module_path)

        path = normalize_path(package.path)
        if path in self._package_index:
            raise ValueError(f"Package already cached: {path}")

        if not package.benchmarks:
            logger.debug("Not caching %s: no benchmarks", path)
            return package

        benchmarks = tuple(
            Benchmark(name=b.name, package_path=path, location=b.location)
            for b in package.benchmarks
        )
        package = Package(
            name=package.name, path=path, module_path=module_path, benchmarks=benchmarks
        )

        self._module_packages[module_path].append(package)
        self._package_index[path] = package
        for benchmark in benchmarks:
            self._benchmarks[benchmark.key] = benchmark

        logger.debug("Cached package %s with %d benchmarks", package.name, len(benchmarks))
        self._notify(StructureChange(ChangeKind.PACKAGE_ADDED, path=path))
        return package

    def mark_executed(self, key: BenchmarkKey) -> None:
        if key not in self._benchmarks:
            return
        self._executed.add(key)
        self._notify(StructureChange(ChangeKind.RUN_STATE, key=key))

    def clear_run_state(self, key: BenchmarkKey) -> None:
        self._executed.discard(key)
        self._notify(StructureChange(ChangeKind.RUN_STATE, key=key))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def modules(self) -> tuple[Module, ...]:
        return tuple(self._modules)

    def find_module(self, path: PathLike) -> Optional[Module]:
        return self._module_index.get(normalize_path(path))

    def find_package(self, path: PathLike) -> Optional[Package]:
        return self._package_index.get(normalize_path(path))

    def packages_of(self, module_path: PathLike) -> tuple[Package, ...]:
        """Packages of a module in discovery order.

        Raises:
            ModuleNotFoundInCacheError: The module is not cached
        """
        path = normalize_path(module_path)
        packages = self._module_packages.get(path)
        if packages is None:
            raise ModuleNotFoundInCacheError(path)
        return tuple(packages)

    def module_of(self, package_path: PathLike) -> Module:
        """The module owning a package.

        Raises:
            PackageNotFoundError: The package is not cached
        """
        package = self.find_package(package_path)
        if package is None:
            raise PackageNotFoundError(normalize_path(package_path))
        return self._module_index[package.module_path]

    def find_benchmark(
        self, package_path: PathLike, name: str
    ) -> Optional[Benchmark]:
        """Look up a benchmark by (package directory, name).

        Returns None while discovery is still running: the benchmark may not
        have been reached yet.

        Raises:
            BenchmarkNotFoundError: Discovery has finished and the key is absent
        """
        key = BenchmarkKey.of(package_path, name)
        benchmark = self._benchmarks.get(key)
        if benchmark is not None:
            return benchmark
        if self._loaded:
            raise BenchmarkNotFoundError(key.package_path, name)
        return None

    def all_benchmarks(self) -> list[Benchmark]:
        """Every benchmark in discovery order (module, package, declaration)."""
        return [
            benchmark
            for module in self._modules
            for package in self._module_packages[module.path]
            for benchmark in package.benchmarks
        ]

    def was_executed(self, key: BenchmarkKey) -> bool:
        return key in self._executed

    def __len__(self) -> int:
        return len(self._benchmarks)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, change: StructureChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Structure listener failed on %s", change.kind.value)


