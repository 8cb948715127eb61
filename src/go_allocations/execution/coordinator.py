"""Profiled benchmark runs, one at a time or as a bounded batch.

A single run:
    1. allocate a unique artifact path
    2. ``go test -run=^$ -bench=^Name$ -memprofile=<artifact>`` in the package
    3. stream ``go tool pprof -list=<module>`` into the profile parser
    4. remove the artifact, whatever happened

Failures become a single error outcome; cancellation becomes a cancelled
outcome and is never reported as a failure.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional, Sequence

from ..cache import StructureCache
from ..cancellation import CancellationSignal
from ..exceptions import ExecutionError, OperationCancelled, ProfileParseError, ToolchainError
from ..logging_config import get_logger
from ..models import Benchmark, Module
from ..profile import ProfileParser, RunOutcome
from ..toolchain import GoToolchain
from .artifacts import temporary_artifact

logger = get_logger(__name__)

ResultCallback = Callable[[Benchmark, RunOutcome], None]

# Lines of `go test` output kept when stderr is empty
_DIAGNOSTIC_TAIL = 5


class ExecutionCoordinator:
    """Runs benchmarks under the memory profiler.

    Args:
        toolchain: Go command builder/runner
        cache: Read for module scoping and user-code filtering; only the
            run-state flag is written
        concurrency: Admission bound for :meth:`run_all` (defaults to the
            configured concurrency)
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
        self.in_flight = 0
        self.peak_in_flight = 0

    @property
    def runner(self):
        return self.toolchain.runner

    async def run(self, benchmark: Benchmark, signal: CancellationSignal) -> RunOutcome:
        """Profile one benchmark and return its allocation sites.

        Raises:
            PackageNotFoundError: The benchmark's package is not cached
        """
        module = self.cache.module_of(benchmark.package_path)
        try:
            signal.raise_if_cancelled(f"run {benchmark.name}")
            with temporary_artifact(self.toolchain.config) as artifact:
                await self._profile(benchmark, artifact, signal)
                signal.raise_if_cancelled(f"run {benchmark.name}")
                outcome = await self._list(benchmark, module, artifact, signal)
        except OperationCancelled:
            logger.info("Run of %s cancelled", benchmark.name)
            return RunOutcome.cancelled()
        except ExecutionError as e:
            logger.error("%s", e.message)
            outcome = RunOutcome.error(e.message)
        except ProfileParseError as e:
            logger.error("%s (%s)", e.message, benchmark.name)
            outcome = RunOutcome.error(e.message)

        self.cache.mark_executed(benchmark.key)
        return outcome

    async def run_all(
        self,
        benchmarks: Sequence[Benchmark],
        signal: CancellationSignal,
        on_result: Optional[ResultCallback] = None,
    ) -> list[tuple[Benchmark, RunOutcome]]:
        """Run every benchmark with at most ``concurrency`` in flight.

        Runs are submitted in the given order; completion may interleave.
        Once the signal fires no further run is admitted, and the call
        returns as soon as the in-flight runs have observed it.

        Returns:
            (benchmark, outcome) pairs in submission order
        """
        slots = asyncio.Semaphore(self.concurrency)
        outcomes: list[RunOutcome] = [RunOutcome.cancelled()] * len(benchmarks)

        async def admit(index: int, benchmark: Benchmark) -> None:
            await slots.acquire()
            try:
                if signal.is_cancelled:
                    return
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                try:
                    outcomes[index] = await self.run(benchmark, signal)
                finally:
                    self.in_flight -= 1
            finally:
                slots.release()

            if on_result is not None:
                try:
                    on_result(benchmark, outcomes[index])
                except Exception:
                    logger.exception("Result callback failed for %s", benchmark.name)

        tasks = [asyncio.ensure_future(admit(i, b)) for i, b in enumerate(benchmarks)]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if signal.is_cancelled:
            skipped = sum(1 for outcome in outcomes if outcome.is_cancelled)
            logger.info("Batch cancelled, %d of %d benchmarks not completed", skipped, len(benchmarks))
        return list(zip(benchmarks, outcomes))

    async def _profile(self, benchmark: Benchmark, artifact: Path, signal: CancellationSignal) -> None:
        argv = self.toolchain.benchmark_command(benchmark.name, artifact)
        logger.debug("Profiling %s: %s", benchmark.name, self.toolchain.display(argv))
        try:
            result = await self.runner.run(
                argv,
                cwd=benchmark.package_path,
                signal=signal,
                check=False,
                operation=f"run {benchmark.name}",
            )
        except ToolchainError as e:
            raise ExecutionError(benchmark.name, e.message) from e

        if not result.ok:
            raise ExecutionError(
                benchmark.name, _diagnostic(result.stderr, result.stdout, result.returncode)
            )
        if not artifact.exists():
            raise ExecutionError(benchmark.name, "no memory profile was written")

    async def _list(
        self, benchmark: Benchmark, module: Module, artifact: Path, signal: CancellationSignal
    ) -> RunOutcome:
        modules = self.cache.modules
        parser = ProfileParser(
            is_user_code=lambda path: self.toolchain.is_user_code(path, modules),
            artifact=artifact,
        )

        argv = self.toolchain.pprof_list_command(artifact, module.name)
        try:
            async with self.runner.stream(
                argv, cwd=benchmark.package_path, signal=signal, operation=f"list {benchmark.name}"
            ) as proc:
                async for line in proc.lines():
                    parser.feed(line)
        except ToolchainError as e:
            raise ProfileParseError(artifact, e.message) from e

        return parser.finish(proc.returncode or 0, proc.stderr)


def _diagnostic(stderr: str, stdout: str, returncode: int) -> str:
    text = stderr.strip()
    if text:
        return text
    # `go test` reports FAIL lines and panics on stdout
    lines = [line for line in stdout.strip().splitlines() if line.strip()]
    if lines:
        return "\n".join(lines[-_DIAGNOSTIC_TAIL:])
    return f"exit code {returncode}"
