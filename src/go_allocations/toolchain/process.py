"""Async process runner for toolchain commands.

Commands are spawned with ``asyncio.create_subprocess_exec`` (argv only, no
shell) in their own process group so a cancellation reaches the benchmark
binary that ``go test`` builds and launches, not just the ``go`` driver.

Every await races against the shared :class:`CancellationSignal`. When the
signal wins, the process group receives SIGTERM and control returns to the
caller immediately; a background reaper escalates to SIGKILL after a grace
period without the caller waiting for the child to exit.
"""

from __future__ import annotations

import asyncio
import os
import shlex
import signal as signals
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Awaitable, Optional, Sequence, TypeVar, Union

from ..cancellation import CancellationSignal
from ..exceptions import (
    CommandFailedError,
    OperationCancelled,
    OutputLineTooLongError,
    ToolchainError,
    ToolNotFoundError,
)
from ..logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

PathLike = Union[str, Path]

_POSIX = sys.platform != "win32"

# Longest stdout line a stream accepts; pprof listings echo whole source lines
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass
class ProcessResult:
    """Captured output of a finished command."""

    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_command(argv: Sequence[str]) -> str:
    """Shell-escaped rendering of an argv, for logs and error messages."""
    return shlex.join(argv)


class ProcessRunner:
    """Spawns commands and ties their lifetime to a cancellation signal."""

    def __init__(self, terminate_grace_seconds: float = 2.0, line_limit: int = STREAM_LIMIT):
        self.terminate_grace_seconds = terminate_grace_seconds
        self.line_limit = line_limit
        # Reapers must stay referenced until they finish
        self._reapers: set[asyncio.Task[None]] = set()
        self._terminating: set[int] = set()

    async def run(
        self,
        argv: Sequence[str],
        cwd: Optional[PathLike] = None,
        signal: Optional[CancellationSignal] = None,
        check: bool = True,
        operation: str = "command",
    ) -> ProcessResult:
        """Run a command to completion and capture its output.

        Raises:
            OperationCancelled: The signal fired before the command finished
            CommandFailedError: ``check`` is set and the exit status is non-zero
            ToolNotFoundError: The executable does not exist
        """
        if signal is not None:
            signal.raise_if_cancelled(operation)

        proc = await self._spawn(argv, cwd)
        try:
            stdout, stderr = await self._race(proc.communicate(), proc, signal, operation)
        except BaseException:
            self._terminate(proc)
            raise

        result = ProcessResult(
            argv=list(argv),
            returncode=proc.returncode if proc.returncode is not None else -1,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
        )
        logger.debug("Exit %d: %s", result.returncode, format_command(argv))

        if check and not result.ok:
            raise CommandFailedError(argv, result.returncode, result.stderr)
        return result

    @asynccontextmanager
    async def stream(
        self,
        argv: Sequence[str],
        cwd: Optional[PathLike] = None,
        signal: Optional[CancellationSignal] = None,
        operation: str = "command",
    ) -> AsyncIterator["StreamingProcess"]:
        """Spawn a command whose stdout is consumed line by line.

        Usage:
            async with runner.stream(argv, cwd, signal) as proc:
                async for line in proc.lines():
                    ...
            proc.returncode, proc.stderr

        The process is terminated on exit if it is still running.
        """
        if signal is not None:
            signal.raise_if_cancelled(operation)

        proc = await self._spawn(argv, cwd)
        streaming = StreamingProcess(self, proc, list(argv), signal, operation)
        try:
            yield streaming
        finally:
            streaming.close()

    async def _spawn(self, argv: Sequence[str], cwd: Optional[PathLike]) -> asyncio.subprocess.Process:
        if not argv:
            raise ToolchainError("Cannot run an empty command")

        logger.debug("Running: %s (cwd=%s)", format_command(argv), cwd or os.getcwd())
        try:
            return await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(cwd) if cwd is not None else None,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                start_new_session=_POSIX,
                limit=self.line_limit,
            )
        except FileNotFoundError:
            if cwd is not None and not Path(cwd).is_dir():
                raise ToolchainError(
                    f"Working directory not found: {cwd}", details={"cwd": str(cwd)}
                )
            raise ToolNotFoundError(argv[0])
        except PermissionError as e:
            raise ToolchainError(f"Cannot execute {argv[0]}: {e}", details={"tool": argv[0]})

    async def _race(
        self,
        awaitable: Awaitable[T],
        proc: asyncio.subprocess.Process,
        signal: Optional[CancellationSignal],
        operation: str,
    ) -> T:
        """Await ``awaitable`` unless the signal fires first."""
        task = asyncio.ensure_future(awaitable)
        if signal is None:
            return await task

        cancel_waiter = asyncio.ensure_future(signal.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            task.cancel()
            raise
        finally:
            cancel_waiter.cancel()

        if task in done:
            return task.result()

        task.cancel()
        self._terminate(proc)
        raise OperationCancelled(operation)

    def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """Send SIGTERM to the process group and schedule a SIGKILL reaper."""
        if proc.returncode is not None or proc.pid in self._terminating:
            return

        logger.debug("Terminating process %d", proc.pid)
        self._terminating.add(proc.pid)
        _send(proc, signals.SIGTERM)

        try:
            reaper = asyncio.get_running_loop().create_task(self._reap(proc))
        except RuntimeError:
            # No running loop (interpreter shutdown); SIGTERM was delivered
            self._terminating.discard(proc.pid)
            return
        self._reapers.add(reaper)
        reaper.add_done_callback(self._reapers.discard)

    async def _reap(self, proc: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.terminate_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning("Process %d ignored SIGTERM, killing", proc.pid)
            _send(proc, signals.SIGKILL if _POSIX else signals.SIGTERM)
            await proc.wait()
        finally:
            self._terminating.discard(proc.pid)

    async def drain(self) -> None:
        """Wait for pending reapers. Used at shutdown and in tests."""
        if self._reapers:
            await asyncio.gather(*list(self._reapers), return_exceptions=True)


class StreamingProcess:
    """A running command whose stdout is read incrementally."""

    def __init__(
        self,
        runner: ProcessRunner,
        proc: asyncio.subprocess.Process,
        argv: list[str],
        signal: Optional[CancellationSignal],
        operation: str,
    ):
        self.argv = argv
        self._runner = runner
        self._proc = proc
        self._signal = signal
        self._operation = operation
        self._stderr_bytes = b""
        # Drain stderr concurrently so a chatty tool cannot block on a full pipe
        self._stderr_task: asyncio.Task[bytes] = asyncio.ensure_future(
            proc.stderr.read() if proc.stderr is not None else _empty()
        )
        self.returncode: Optional[int] = None

    @property
    def stderr(self) -> str:
        return _decode(self._stderr_bytes)

    async def lines(self) -> AsyncIterator[str]:
        """Yield stdout lines without trailing newlines, then reap the process.

        Raises:
            OutputLineTooLongError: A line exceeded the runner's line limit
            OperationCancelled: The signal fired
        """
        stdout = self._proc.stdout
        if stdout is not None:
            while True:
                try:
                    raw = await self._runner._race(
                        stdout.readline(), self._proc, self._signal, self._operation
                    )
                except (ValueError, asyncio.LimitOverrunError) as e:
                    raise OutputLineTooLongError(self.argv, self._runner.line_limit) from e
                if not raw:
                    break
                yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

        self._stderr_bytes = await self._runner._race(
            self._stderr_task, self._proc, self._signal, self._operation
        )
        self.returncode = await self._runner._race(
            self._proc.wait(), self._proc, self._signal, self._operation
        )
        logger.debug("Exit %d: %s", self.returncode, format_command(self.argv))

    def close(self) -> None:
        """Stop the command if it is still running.

        May run from a finaliser after the event loop has stopped, in which
        case nothing can be scheduled and only SIGTERM is sent.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if self._proc.returncode is None:
                _send(self._proc, signals.SIGTERM)
            return

        if not self._stderr_task.done():
            self._stderr_task.cancel()
        if self._proc.returncode is None:
            self._runner._terminate(self._proc)


def _send(proc: asyncio.subprocess.Process, sig: int) -> None:
    try:
        if _POSIX:
            os.killpg(proc.pid, sig)
        else:
            proc.send_signal(sig)
    except (ProcessLookupError, PermissionError):
        pass


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


async def _empty() -> bytes:
    return b""
