"""Shared test fixtures for go-allocations.

External ``go`` commands are replaced by :class:`FakeRunner`, which answers
each argv from a script. Tests that need a real Go toolchain are marked
``slow`` and only run with ``--run-slow``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import pytest

from go_allocations.cache import StructureCache
from go_allocations.cancellation import CancellationSignal
from go_allocations.config import AllocationsConfig
from go_allocations.exceptions import CommandFailedError, OperationCancelled
from go_allocations.models import Module, normalize_path
from go_allocations.toolchain import GoToolchain, ProcessResult


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# ---------------------------------------------------------------------------
# Scripted process runner
# ---------------------------------------------------------------------------


@dataclass
class Scripted:
    """Canned response for one command."""

    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    delay: float = 0.0
    hook: Optional[Callable[[list[str]], None]] = None


Response = Union[Scripted, BaseException, Callable[[list[str], Optional[str]], "Scripted"]]


class FakeStream:
    def __init__(self, result: ProcessResult):
        self._result = result
        self.argv = result.argv
        self.returncode: Optional[int] = None
        self.stderr = ""

    async def lines(self):
        for line in self._result.stdout.splitlines():
            await asyncio.sleep(0)
            yield line
        self.stderr = self._result.stderr
        self.returncode = self._result.returncode


def _matches(fragments, argv) -> bool:
    return all(any(arg.startswith(f) for arg in argv) for f in fragments)


class FakeRunner:
    """Stands in for ProcessRunner. Rules match when every fragment is in argv."""

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], Optional[str]]] = []
        self.cancelled: list[list[str]] = []
        self.active = 0
        self.peak_active = 0
        self._rules: list[tuple[tuple[str, ...], Optional[str], Response]] = []

    def on(self, *fragments: str, response: Response, cwd: Optional[str] = None) -> "FakeRunner":
        self._rules.append((fragments, normalize_path(cwd) if cwd else None, response))
        return self

    def override(
        self, *fragments: str, response: Response, cwd: Optional[str] = None
    ) -> "FakeRunner":
        """Like :meth:`on`, but takes precedence over every existing rule."""
        self._rules.insert(0, (fragments, normalize_path(cwd) if cwd else None, response))
        return self

    def commands(self, *fragments: str) -> list[tuple[list[str], Optional[str]]]:
        return [call for call in self.calls if _matches(fragments, call[0])]

    def _respond(self, argv: list[str], cwd: Optional[str]) -> Union[Scripted, BaseException]:
        for fragments, rule_cwd, response in self._rules:
            if rule_cwd is not None and rule_cwd != cwd:
                continue
            if _matches(fragments, argv):
                if callable(response) and not isinstance(response, (Scripted, BaseException)):
                    return response(argv, cwd)
                return response
        raise AssertionError(f"Unscripted command: {argv} (cwd={cwd})")

    async def run(self, argv, cwd=None, signal=None, check=True, operation="command"):
        argv = list(argv)
        cwd = normalize_path(cwd) if cwd is not None else None
        if signal is not None:
            signal.raise_if_cancelled(operation)
        self.calls.append((argv, cwd))

        response = self._respond(argv, cwd)
        if isinstance(response, BaseException):
            raise response

        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if response.delay:
                await self._sleep(response.delay, argv, signal, operation)
            else:
                await asyncio.sleep(0)
        finally:
            self.active -= 1

        if response.hook is not None:
            response.hook(argv)

        result = ProcessResult(argv, response.returncode, response.stdout, response.stderr)
        if check and not result.ok:
            raise CommandFailedError(argv, result.returncode, result.stderr)
        return result

    @asynccontextmanager
    async def stream(self, argv, cwd=None, signal=None, operation="command"):
        result = await self.run(argv, cwd, signal, check=False, operation=operation)
        yield FakeStream(result)

    async def drain(self) -> None:
        pass

    async def _sleep(self, delay, argv, signal: Optional[CancellationSignal], operation):
        if signal is None:
            await asyncio.sleep(delay)
            return
        sleeper = asyncio.ensure_future(asyncio.sleep(delay))
        waiter = asyncio.ensure_future(signal.wait())
        done, _ = await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
        sleeper.cancel()
        waiter.cancel()
        if sleeper not in done:
            self.cancelled.append(argv)
            raise OperationCancelled(operation)


def artifact_of(argv: list[str]) -> Optional[Path]:
    for arg in argv:
        if arg.startswith("-memprofile="):
            return Path(arg.split("=", 1)[1])
    return None


def write_artifact(argv: list[str]) -> None:
    """Hook for benchmark commands: create the profile file `go test` would write."""
    artifact = artifact_of(argv)
    if artifact is not None:
        artifact.write_bytes(b"profile")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


SAMPLE_LISTING = """\
Total: 3.77GB
ROUTINE ======================== example.com/m.BenchmarkString in {file}
         0     3.77GB (flat, cum) 99.92% of Total
         .          .     13:func BenchmarkString(b *testing.B) {{
         .          .     14:	for i := 0; i < b.N; i++ {{
         .     3.77GB     15:		alloc()
         .          .     16:	}}
ROUTINE ======================== example.com/m.alloc in {file}
    3.77GB     3.77GB (flat, cum) 99.92% of Total
         .          .      9:func alloc() {{
    3.77GB     3.77GB     10:	_ = "x" + strconv.Itoa(rand.Intn(20))
         .          .     11:}}
"""

LIST_FLAG = f"-list={AllocationsConfig().benchmark_pattern}"

GO_TEST_FILE = """\
package {package}

import "testing"

func helper() {{}}

func BenchmarkAlpha(b *testing.B) {{
	for i := 0; i < b.N; i++ {{
		helper()
	}}
}}

func BenchmarkBeta(b *testing.B) {{
	b.Run("sub", func(b *testing.B) {{}})
}}
"""


@pytest.fixture
def config(tmp_path):
    """Configuration writing artifacts under the test's temp directory."""
    artifacts = tmp_path / "artifacts"
    artifacts.mkdir()
    return AllocationsConfig(temp_dir=str(artifacts), terminate_grace_seconds=0.1)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def toolchain(config, runner):
    return GoToolchain(config, runner)


@pytest.fixture
def cache():
    return StructureCache()


@pytest.fixture
def workspace(tmp_path, runner):
    """A scripted module with a root package, one sub package and one without benchmarks.

    Layout:
        mod/               package main   BenchmarkAlpha, BenchmarkBeta
        mod/sub/           package sub    BenchmarkAlpha, BenchmarkBeta
        mod/nobench/       package nobench
    """
    root = tmp_path / "mod"
    sub = root / "sub"
    nobench = root / "nobench"
    for directory in (root, sub, nobench):
        directory.mkdir(parents=True, exist_ok=True)
    (root / "go.mod").write_text("module example.com/m\n\ngo 1.21\n")
    (root / "m_test.go").write_text(GO_TEST_FILE.format(package="main"))
    (sub / "sub_test.go").write_text(GO_TEST_FILE.format(package="sub"))

    runner.on("env", "GOROOT", response=Scripted(stdout="/usr/local/go\n"))
    runner.on("env", "GOMOD", response=Scripted(stdout=f"{root / 'go.mod'}\n"))
    runner.on("list", "-m", response=Scripted(stdout="example.com/m\n"))
    runner.on(
        "list",
        "./...",
        response=Scripted(stdout=f"main {root}\nsub {sub}\nnobench {nobench}\n"),
    )
    benchmarks = "BenchmarkAlpha\nBenchmarkBeta\nok  \texample.com/m\t0.01s\n"
    runner.on(LIST_FLAG, cwd=str(root), response=Scripted(stdout=benchmarks))
    runner.on(LIST_FLAG, cwd=str(sub), response=Scripted(stdout=benchmarks))
    runner.on(
        LIST_FLAG, cwd=str(nobench), response=Scripted(stdout="ok  \texample.com/m/nobench\t0.01s\n")
    )
    return root


@pytest.fixture
def module(tmp_path):
    root = tmp_path / "mod"
    root.mkdir(exist_ok=True)
    return Module(name="example.com/m", path=normalize_path(root), gomod=str(root / "go.mod"))
