"""Tests for the exception hierarchy."""

from go_allocations.exceptions import (
    BenchmarkNotFoundError,
    CacheError,
    CommandFailedError,
    ConfigurationError,
    GoAllocationsError,
    InvalidConfigError,
    ModuleResolutionError,
    NavigationError,
    OperationCancelled,
    OutputLineTooLongError,
    PackageScanError,
    ProfileParseError,
    ToolchainError,
    ToolNotFoundError,
)


class TestHierarchy:
    def test_everything_is_a_go_allocations_error(self):
        for error in (
            ToolNotFoundError("go"),
            CommandFailedError(["go", "list"], 1, "boom"),
            ModuleResolutionError("/a", "no go.mod"),
            PackageScanError("/a/b", "build failed"),
            BenchmarkNotFoundError("/a", "BenchmarkX"),
            ProfileParseError("/tmp/p.pb.gz", "bad"),
            InvalidConfigError("concurrency", 0, "too small"),
            NavigationError("/a/b.go:0", "bad line"),
            OperationCancelled(),
        ):
            assert isinstance(error, GoAllocationsError)

    def test_families(self):
        assert issubclass(ToolNotFoundError, ToolchainError)
        assert issubclass(CommandFailedError, ToolchainError)
        assert issubclass(OutputLineTooLongError, ToolchainError)
        assert issubclass(BenchmarkNotFoundError, CacheError)
        assert issubclass(InvalidConfigError, ConfigurationError)
        assert not issubclass(OperationCancelled, ToolchainError)


class TestMessages:
    def test_details_in_str(self):
        error = GoAllocationsError("Something failed", details={"tool": "go"})
        assert str(error) == "Something failed (tool=go)"

    def test_no_details(self):
        assert str(GoAllocationsError("plain")) == "plain"

    def test_benchmark_not_found(self):
        error = BenchmarkNotFoundError("/w/pkg", "BenchmarkX")
        assert error.message == "Benchmark not found: BenchmarkX in package /w/pkg"
        assert error.name == "BenchmarkX"

    def test_command_failed_diagnostic(self):
        error = CommandFailedError(["go", "test"], 2, "  build failed\n")
        assert error.diagnostic == "build failed"
        assert error.returncode == 2

    def test_command_failed_without_stderr(self):
        assert CommandFailedError(["go"], 3, "").diagnostic == "exit code 3"

    def test_cancelled(self):
        error = OperationCancelled("discovery")
        assert error.message == "discovery cancelled"
        assert error.operation == "discovery"
