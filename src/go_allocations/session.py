"""Session wiring for go-allocations.

An :class:`AllocationsSession` owns one structure cache and the components
around it for a set of workspace roots. It is the entry point used by the
CLI and by anything else embedding the tool.

Example:
    >>> from go_allocations.config import load_config
    >>> from go_allocations.session import AllocationsSession
    >>>
    >>> session = AllocationsSession(load_config(), ["/path/to/module"])
    >>> await session.ensure_loaded()
    >>> benchmark, outcome = await session.run_benchmark("/path/to/module/pkg", "BenchmarkX")
    >>> [str(r.flat) for r in outcome.records]
    ['3.77GB']
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Sequence, Union

from .cache import Listener, StructureCache
from .cancellation import CancellationController
from .config import AllocationsConfig
from .discovery import DiscoveryEngine, unique_roots
from .exceptions import BenchmarkNotFoundError, OperationCancelled
from .execution import ExecutionCoordinator
from .execution.coordinator import ResultCallback
from .logging_config import get_logger
from .models import Benchmark, BenchmarkKey
from .profile import RunOutcome
from .toolchain import GoToolchain, ProcessRunner
from .view import ViewAdapter

logger = get_logger(__name__)

PathLike = Union[str, Path]


class AllocationsSession:
    """Discovery, execution and display state for a set of workspace roots.

    Attributes:
        config: Effective configuration
        roots: Normalised workspace roots, in the order given
        cache: The only store of discovered structure
        adapter: Display projection of the cache
    """

    def __init__(
        self,
        config: AllocationsConfig,
        roots: Sequence[PathLike],
        runner: Optional[ProcessRunner] = None,
    ):
        self.config = config
        self.roots = unique_roots(roots)
        self.cache = StructureCache()
        self.controller = CancellationController()
        self.runner = runner or ProcessRunner(config.terminate_grace_seconds)
        self.toolchain = GoToolchain(config, self.runner)
        self.engine = DiscoveryEngine(self.toolchain, self.cache)
        self.coordinator = ExecutionCoordinator(self.toolchain, self.cache)
        self.adapter = ViewAdapter(self.cache)
        self._load_task: Optional[asyncio.Task[None]] = None

    async def ensure_loaded(self) -> None:
        """Run discovery once; later calls wait for or reuse that pass.

        Raises:
            OperationCancelled: The pass was cancelled
        """
        if self.cache.loaded:
            return
        if self._load_task is None or self._load_task.done():
            self._load_task = asyncio.ensure_future(
                self.engine.discover(self.roots, self.controller.signal)
            )
        await self._load_task

    async def refresh(self) -> None:
        """Cancel all work, clear the cache and discover again."""
        self.cancel_all()
        pending = self._load_task
        if pending is not None and not pending.done():
            try:
                await pending
            except OperationCancelled:
                pass
        self._load_task = asyncio.ensure_future(
            self.engine.discover(self.roots, self.controller.signal)
        )
        await self._load_task

    def cancel_all(self) -> None:
        """Stop discovery and every running benchmark."""
        self.controller.cancel_all()

    async def find_benchmark(self, package_dir: PathLike, name: str) -> Benchmark:
        """Look up a benchmark once discovery has finished.

        Raises:
            BenchmarkNotFoundError: No such benchmark in the workspace
        """
        await self.ensure_loaded()
        benchmark = self.cache.find_benchmark(package_dir, name)
        if benchmark is None:
            raise BenchmarkNotFoundError(package_dir, name)
        return benchmark

    async def run_benchmark(self, package_dir: PathLike, name: str) -> tuple[Benchmark, RunOutcome]:
        benchmark = await self.find_benchmark(package_dir, name)
        outcome = await self.coordinator.run(benchmark, self.controller.signal)
        return benchmark, outcome

    async def run_all(
        self, on_result: Optional[ResultCallback] = None
    ) -> list[tuple[Benchmark, RunOutcome]]:
        await self.ensure_loaded()
        benchmarks = self.cache.all_benchmarks()
        logger.info("Running %d benchmarks, %d at a time", len(benchmarks), self.coordinator.concurrency)
        return await self.coordinator.run_all(benchmarks, self.controller.signal, on_result)

    def clear_benchmark_run_state(self, key: BenchmarkKey) -> None:
        self.cache.clear_run_state(key)

    def add_listener(self, listener: Listener) -> None:
        self.cache.add_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        self.cache.remove_listener(listener)

    async def close(self) -> None:
        """Cancel outstanding work and wait for terminated processes to be reaped."""
        self.cancel_all()
        if self._load_task is not None and not self._load_task.done():
            try:
                await self._load_task
            except OperationCancelled:
                pass
        await self.runner.drain()
