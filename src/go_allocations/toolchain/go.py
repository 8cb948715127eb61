"""Go toolchain commands used by discovery and profiled runs.

Each method maps to one ``go`` invocation:

    go env GOROOT / go env GOMOD      environment facts
    go list -m                        module identity of a workspace root
    go list -f "{{.Name}} {{.Dir}}"   packages below a root
    go test -list=<pattern>           benchmark names in one package
    go test -run=^$ -bench=^Name$ ... profiled run of exactly one benchmark
    go tool pprof -list=<scope> ...   per-line annotated source listing
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from ..cancellation import CancellationSignal
from ..config import AllocationsConfig
from ..logging_config import get_logger
from ..models import Module, normalize_path
from .process import ProcessRunner, format_command

logger = get_logger(__name__)

PathLike = Union[str, Path]

# `go list -m` prints this outside of any module
NO_MODULE = "command-line-arguments"

PACKAGE_FORMAT = "{{.Name}} {{.Dir}}"


class GoToolchain:
    """Builds and runs ``go`` commands for one configuration."""

    def __init__(self, config: AllocationsConfig, runner: ProcessRunner):
        self.config = config
        self.runner = runner
        self._goroot: Optional[str] = None

    @property
    def go(self) -> str:
        return self.config.go_binary

    async def goroot(self, signal: Optional[CancellationSignal] = None) -> Optional[str]:
        """GOROOT of the configured toolchain, memoised. None if unavailable."""
        if self._goroot is None:
            result = await self.runner.run(
                [self.go, "env", "GOROOT"], signal=signal, check=False, operation="go env GOROOT"
            )
            value = result.stdout.strip()
            if result.ok and value:
                self._goroot = normalize_path(value)
            else:
                logger.warning("Could not determine GOROOT: %s", result.stderr.strip())
        return self._goroot

    async def module_name(
        self, root: PathLike, signal: Optional[CancellationSignal] = None
    ) -> Optional[str]:
        """Name of the module at ``root``, or None when ``root`` is not in a module.

        Raises:
            CommandFailedError: ``go list -m`` failed (e.g. no go.mod)
        """
        result = await self.runner.run(
            [self.go, "list", "-m"], cwd=root, signal=signal, operation="go list -m"
        )
        lines = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        if not lines or lines[0] == NO_MODULE:
            return None
        # Workspaces (go.work) list every member module; the first is the root's own
        return lines[0]

    async def gomod_path(
        self, root: PathLike, signal: Optional[CancellationSignal] = None
    ) -> Optional[str]:
        result = await self.runner.run(
            [self.go, "env", "GOMOD"], cwd=root, signal=signal, check=False, operation="go env GOMOD"
        )
        value = result.stdout.strip()
        if not result.ok or not value or value == os.devnull:
            return None
        return normalize_path(value)

    async def list_packages(
        self, root: PathLike, signal: Optional[CancellationSignal] = None
    ) -> list[tuple[str, str]]:
        """(package name, absolute directory) for every package below ``root``."""
        result = await self.runner.run(
            [self.go, "list", "-f", PACKAGE_FORMAT, "./..."],
            cwd=root,
            signal=signal,
            operation="go list packages",
        )
        return parse_package_list(result.stdout)

    async def list_benchmarks(
        self, package_dir: PathLike, signal: Optional[CancellationSignal] = None
    ) -> list[str]:
        """Top-level benchmark names in ``package_dir``, in declaration order."""
        result = await self.runner.run(
            [self.go, "test", f"-list={self.config.benchmark_pattern}"],
            cwd=package_dir,
            signal=signal,
            operation="go test -list",
        )
        return parse_benchmark_list(result.stdout, self.config.compiled_benchmark_pattern)

    def benchmark_command(self, name: str, artifact: PathLike) -> list[str]:
        """Profiled run of exactly one benchmark.

        The name is anchored so ``BenchmarkX`` never also selects
        ``BenchmarkXY``, and it travels as its own argv element so no shell
        ever interprets it.
        """
        return [
            self.go,
            "test",
            "-run=^$",
            f"-bench=^{anchored_name(name)}$",
            f"-memprofile={artifact}",
            f"-memprofilerate={self.config.memprofile_rate}",
        ]

    def pprof_list_command(self, artifact: PathLike, module_name: Optional[str]) -> list[str]:
        """Per-line listing of the profile, scoped to the module when configured."""
        if self.config.scope_to_module and module_name:
            scope = re.escape(module_name)
        else:
            scope = "."
        return [self.go, "tool", "pprof", f"-list={scope}", str(artifact)]

    def display(self, argv: Sequence[str]) -> str:
        return format_command(argv)

    def is_user_code(self, file_path: str, modules: Iterable[Module]) -> bool:
        """True when ``file_path`` belongs to one of ``modules``.

        Files under GOROOT and in vendor directories are never user code.
        Files that match neither rule are treated as user code.
        """
        path = normalize_path(file_path)
        for module in modules:
            if _is_within(path, module.root):
                relative = os.path.relpath(path, normalize_path(module.root))
                return "vendor" not in Path(relative).parts[:-1]

        if self._goroot and _is_within(path, self._goroot):
            return False

        if "vendor" in Path(path).parts[:-1]:
            return False

        return True


def anchored_name(name: str) -> str:
    """Escape regex metacharacters in a benchmark name for ``-bench``."""
    return re.escape(name)


def parse_package_list(output: str) -> list[tuple[str, str]]:
    packages: list[tuple[str, str]] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        name, sep, directory = line.partition(" ")
        if not sep or not directory.strip():
            logger.debug("Skipping malformed package line: %r", line)
            continue
        packages.append((name, directory.strip()))
    return packages


def parse_benchmark_list(output: str, pattern: re.Pattern[str]) -> list[str]:
    benchmarks: list[str] = []
    for line in output.splitlines():
        name = line.strip()
        # Trailing "ok  <pkg>  0.01s" summary and build noise are dropped
        if not name.startswith("Benchmark") or not pattern.match(name):
            continue
        benchmarks.append(name)
    return benchmarks


def _is_within(path: str, root: str) -> bool:
    root = normalize_path(root)
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)
