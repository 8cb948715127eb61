"""Tests for the async process runner, using real Python child processes."""

import asyncio
import signal as signals
import sys
import time

import pytest

from go_allocations.cancellation import CancellationSignal
from go_allocations.exceptions import (
    CommandFailedError,
    OperationCancelled,
    OutputLineTooLongError,
    ToolchainError,
    ToolNotFoundError,
)
from go_allocations.toolchain import ProcessRunner, StreamingProcess, format_command

PY = sys.executable

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="process groups are POSIX only")


def script(code: str) -> list[str]:
    return [PY, "-c", code]


class TestRun:
    def test_captures_output(self):
        runner = ProcessRunner()
        result = asyncio.run(
            runner.run(script("import sys; print('out'); print('err', file=sys.stderr)"))
        )
        assert result.ok
        assert result.stdout.strip() == "out"
        assert result.stderr.strip() == "err"

    def test_cwd(self, tmp_path):
        runner = ProcessRunner()
        result = asyncio.run(runner.run(script("import os; print(os.getcwd())"), cwd=tmp_path))
        assert result.stdout.strip() == str(tmp_path.resolve())

    def test_failure_raises_when_checked(self):
        runner = ProcessRunner()
        with pytest.raises(CommandFailedError) as exc_info:
            asyncio.run(runner.run(script("import sys; sys.stderr.write('nope'); sys.exit(3)")))
        assert exc_info.value.returncode == 3
        assert exc_info.value.diagnostic == "nope"

    def test_failure_returned_when_unchecked(self):
        runner = ProcessRunner()
        result = asyncio.run(runner.run(script("import sys; sys.exit(4)"), check=False))
        assert result.returncode == 4
        assert not result.ok

    def test_missing_executable(self):
        runner = ProcessRunner()
        with pytest.raises(ToolNotFoundError) as exc_info:
            asyncio.run(runner.run(["go-allocations-no-such-tool", "version"]))
        assert exc_info.value.tool == "go-allocations-no-such-tool"

    def test_missing_cwd(self, tmp_path):
        runner = ProcessRunner()
        with pytest.raises(ToolchainError):
            asyncio.run(runner.run(script("pass"), cwd=tmp_path / "missing"))

    def test_arguments_are_not_shell_interpreted(self, tmp_path):
        runner = ProcessRunner()
        marker = tmp_path / "injected"
        argument = f"x; touch {marker}"
        result = asyncio.run(runner.run(script("import sys; print(sys.argv[1])") + [argument]))
        assert result.stdout.strip() == argument
        assert not marker.exists()

    def test_already_cancelled_does_not_spawn(self):
        runner = ProcessRunner()
        signal = CancellationSignal()
        signal.cancel()
        with pytest.raises(OperationCancelled):
            asyncio.run(runner.run(["go-allocations-no-such-tool"], signal=signal))


@posix_only
class TestCancellation:
    def test_cancel_returns_promptly(self):
        runner = ProcessRunner(terminate_grace_seconds=0.5)

        async def scenario():
            signal = CancellationSignal()
            asyncio.get_running_loop().call_later(0.2, signal.cancel)
            started = time.monotonic()
            with pytest.raises(OperationCancelled):
                await runner.run(script("import time; time.sleep(30)"), signal=signal)
            elapsed = time.monotonic() - started
            await runner.drain()
            return elapsed

        assert asyncio.run(scenario()) < 5

    def test_sigterm_ignored_escalates_to_kill(self):
        runner = ProcessRunner(terminate_grace_seconds=0.2)
        code = (
            "import signal, sys, time\n"
            "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
            "print('ready', flush=True)\n"
            "time.sleep(30)\n"
        )

        async def scenario():
            signal = CancellationSignal()
            with pytest.raises(OperationCancelled):
                async with runner.stream(script(code), signal=signal) as proc:
                    async for line in proc.lines():
                        if line == "ready":
                            signal.cancel()
            await runner.drain()
            return proc._proc.returncode

        assert asyncio.run(scenario()) == -signals.SIGKILL


class TestStream:
    def test_lines_in_order(self):
        runner = ProcessRunner()

        async def scenario():
            async with runner.stream(
                script("import sys\nfor i in range(3): print(f'line {i}')\nsys.stderr.write('done')")
            ) as proc:
                lines = [line async for line in proc.lines()]
            return lines, proc.returncode, proc.stderr

        lines, returncode, stderr = asyncio.run(scenario())
        assert lines == ["line 0", "line 1", "line 2"]
        assert returncode == 0
        assert stderr == "done"

    def test_nonzero_exit_reported(self):
        runner = ProcessRunner()

        async def scenario():
            async with runner.stream(script("import sys; sys.exit(2)")) as proc:
                lines = [line async for line in proc.lines()]
            return lines, proc.returncode

        assert asyncio.run(scenario()) == ([], 2)

    def test_line_longer_than_asyncio_default_limit(self):
        runner = ProcessRunner()

        async def scenario():
            async with runner.stream(script("print('x' * 200_000); print('tail')")) as proc:
                lines = [line async for line in proc.lines()]
            return lines, proc.returncode

        lines, returncode = asyncio.run(scenario())
        assert len(lines[0]) == 200_000
        assert lines[1] == "tail"
        assert returncode == 0

    def test_line_over_limit_raises_toolchain_error(self):
        runner = ProcessRunner(terminate_grace_seconds=0.5, line_limit=1024)
        argv = script("print('x' * 4096)")

        async def scenario():
            try:
                async with runner.stream(argv) as proc:
                    async for _ in proc.lines():
                        pass
            finally:
                await runner.drain()

        with pytest.raises(OutputLineTooLongError) as exc_info:
            asyncio.run(scenario())
        assert isinstance(exc_info.value, ToolchainError)
        assert exc_info.value.limit == 1024
        assert exc_info.value.argv == argv

    def test_finished_stream_schedules_no_reaper(self):
        runner = ProcessRunner()

        async def scenario():
            async with runner.stream(script("print('done')")) as proc:
                lines = [line async for line in proc.lines()]
            return lines, set(runner._reapers)

        lines, reapers = asyncio.run(scenario())
        assert lines == ["done"]
        assert reapers == set()

    def test_close_after_loop_has_stopped(self):
        runner = ProcessRunner()
        argv = script("pass")

        async def scenario():
            return StreamingProcess(runner, await runner._spawn(argv, None), argv, None, "command")

        proc = asyncio.run(scenario())
        proc.close()
        assert runner._reapers == set()


class TestFormatCommand:
    def test_quotes_arguments(self):
        assert format_command(["go", "test", "-bench=^Benchmark X$"]) == "go test '-bench=^Benchmark X$'"
