"""Discovery engine: workspace roots -> modules -> packages -> benchmarks.

Discovery is incremental. Each module is added to the structure cache as soon
as its root resolves, and each package as soon as its benchmark scan
confirms at least one benchmark, so observers can render before the pass
finishes.

Failure handling:
- a root that is not a Go module is logged and skipped
- a root whose packages cannot be listed is logged and skipped
- a package whose scan fails is logged and skipped; siblings continue
- a package already cached by an earlier, nested root is skipped
- cancellation stops the pass and propagates as OperationCancelled
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from ..cache import StructureCache
from ..cancellation import CancellationSignal
from ..exceptions import (
    CommandFailedError,
    ModuleResolutionError,
    PackageScanError,
    ToolchainError,
)
from ..logging_config import get_logger
from ..models import Benchmark, Module, Package, normalize_path
from ..toolchain import GoToolchain
from .symbols import find_benchmark_declarations

logger = get_logger(__name__)

PathLike = Union[str, Path]


class DiscoveryEngine:
    """Populates a :class:`StructureCache` from workspace roots.

    The engine is the only writer of modules and packages. Every call to
    :meth:`discover` is an independent pass into a freshly reset cache.

    Args:
        toolchain: Go command builder/runner
        cache: Cache to populate
        concurrency: Maximum simultaneous package scans (defaults to the
            configured execution concurrency)
    """

    def __init__(
        self,
        toolchain: GoToolchain,
        cache: StructureCache,
        concurrency: Optional[int] = None,
    ):
        self.toolchain = toolchain
        self.cache = cache
        self.concurrency = concurrency or toolchain.config.concurrency

    async def discover(self, roots: Iterable[PathLike], signal: CancellationSignal) -> None:
        """Run one discovery pass over ``roots``.

        Raises:
            OperationCancelled: The signal fired; the cache is left not loaded
        """
        self.cache.reset()
        self.cache.begin_load()
        completed = False
        try:
            signal.raise_if_cancelled("discovery")
            try:
                await self.toolchain.goroot(signal)
            except ToolchainError as e:
                logger.error("Go toolchain unavailable: %s", e)
                completed = True
                return

            for root in unique_roots(roots):
                signal.raise_if_cancelled("discovery")
                try:
                    module = await self.resolve_module(root, signal)
                except ModuleResolutionError as e:
                    logger.warning("Skipping workspace root %s: %s", e.root, e.reason)
                    continue

                module = self.cache.add_module(module)
                await self._discover_packages(module, signal)
            completed = True
        finally:
            if completed:
                self.cache.finish_load()
            else:
                self.cache.abort_load()

    async def resolve_module(self, root: PathLike, signal: CancellationSignal) -> Module:
        """Resolve a workspace root to its Go module.

        Raises:
            ModuleResolutionError: The root is missing or not inside a module
            OperationCancelled: The signal fired
        """
        path = normalize_path(root)
        if not os.path.isdir(path):
            raise ModuleResolutionError(path, "directory does not exist")

        try:
            name = await self.toolchain.module_name(path, signal)
        except CommandFailedError as e:
            raise ModuleResolutionError(path, e.diagnostic) from e
        except ToolchainError as e:
            raise ModuleResolutionError(path, e.message) from e

        if name is None:
            raise ModuleResolutionError(path, "no go.mod found")

        gomod = await self.toolchain.gomod_path(path, signal)
        logger.info("Found module %s at %s", name, path)
        return Module(name=name, path=path, gomod=gomod)

    async def scan_package(
        self, module: Module, name: str, directory: PathLike, signal: CancellationSignal
    ) -> Optional[Package]:
        """List the benchmarks of one package.

        Returns:
            The package, or None when it declares no benchmarks

        Raises:
            PackageScanError: ``go test -list`` failed for this package
            OperationCancelled: The signal fired
        """
        directory = normalize_path(directory)
        try:
            names = await self.toolchain.list_benchmarks(directory, signal)
        except CommandFailedError as e:
            raise PackageScanError(directory, e.diagnostic) from e
        except ToolchainError as e:
            raise PackageScanError(directory, e.message) from e

        if not names:
            logger.debug("No benchmarks in %s", directory)
            return None

        locations = await asyncio.to_thread(find_benchmark_declarations, directory)
        signal.raise_if_cancelled("discovery")

        benchmarks = tuple(
            Benchmark(name=benchmark, package_path=directory, location=locations.get(benchmark))
            for benchmark in names
        )
        return Package(name=name, path=directory, module_path=module.path, benchmarks=benchmarks)

    async def _discover_packages(self, module: Module, signal: CancellationSignal) -> None:
        try:
            candidates = await self.toolchain.list_packages(module.path, signal)
        except CommandFailedError as e:
            logger.error("Cannot list packages of %s: %s", module.name, e.diagnostic)
            return
        except ToolchainError as e:
            logger.error("Cannot list packages of %s: %s", module.name, e)
            return

        # Nested roots list the same directories; the first root to list one owns it
        fresh = []
        for name, directory in candidates:
            if self.cache.find_package(directory) is not None:
                logger.debug("Package %s already cached by an earlier root", directory)
                continue
            fresh.append((name, directory))

        logger.debug("Scanning %d packages of %s", len(fresh), module.name)
        slots = asyncio.Semaphore(self.concurrency)

        async def scan(name: str, directory: str) -> Optional[Package]:
            async with slots:
                signal.raise_if_cancelled("discovery")
                try:
                    return await self.scan_package(module, name, directory, signal)
                except PackageScanError as e:
                    logger.warning("Skipping package %s: %s", e.package_dir, e.reason)
                    return None

        tasks = [asyncio.ensure_future(scan(name, directory)) for name, directory in fresh]
        try:
            # Completion order: a slow package must not hold back its siblings
            for next_done in asyncio.as_completed(tasks):
                package = await next_done
                if package is not None:
                    self.cache.add_package(package)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


def unique_roots(roots: Iterable[PathLike]) -> list[str]:
    """Normalised roots in the given order, without duplicates."""
    seen: set[str] = set()
    result: list[str] = []
    for root in roots:
        path = normalize_path(root)
        if path not in seen:
            seen.add(path)
            result.append(path)
    return result
