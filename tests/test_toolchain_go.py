"""Tests for Go command construction and output parsing."""

import asyncio
import os
import re

import pytest
from conftest import Scripted

from go_allocations.config import AllocationsConfig
from go_allocations.exceptions import CommandFailedError
from go_allocations.models import Module
from go_allocations.toolchain.go import (
    NO_MODULE,
    GoToolchain,
    anchored_name,
    parse_benchmark_list,
    parse_package_list,
)

PATTERN = AllocationsConfig().compiled_benchmark_pattern


class TestBenchmarkCommand:
    def test_runs_exactly_one_benchmark(self, toolchain, tmp_path):
        argv = toolchain.benchmark_command("BenchmarkX", tmp_path / "p.pb.gz")
        assert argv[:3] == ["go", "test", "-run=^$"]
        assert "-bench=^BenchmarkX$" in argv
        assert f"-memprofile={tmp_path / 'p.pb.gz'}" in argv
        assert "-memprofilerate=65536" in argv

    def test_name_is_anchored(self, toolchain, tmp_path):
        argv = toolchain.benchmark_command("BenchmarkX", tmp_path / "p")
        bench = next(a for a in argv if a.startswith("-bench="))
        pattern = re.compile(bench[len("-bench="):])
        assert pattern.search("BenchmarkX")
        assert not pattern.search("BenchmarkXY")
        assert not pattern.search("BenchmarkAX")

    def test_metacharacters_escaped(self):
        assert re.fullmatch(anchored_name("Benchmark_a.b"), "Benchmark_a.b")
        assert not re.fullmatch(anchored_name("Benchmark_a.b"), "Benchmark_aXb")

    def test_custom_go_binary(self, runner, tmp_path):
        toolchain = GoToolchain(AllocationsConfig(go_binary="/opt/go/bin/go"), runner)
        assert toolchain.benchmark_command("BenchmarkX", tmp_path / "p")[0] == "/opt/go/bin/go"


class TestPprofListCommand:
    def test_scoped_to_module(self, toolchain):
        argv = toolchain.pprof_list_command("/tmp/p.pb.gz", "example.com/m")
        assert argv == ["go", "tool", "pprof", f"-list={re.escape('example.com/m')}", "/tmp/p.pb.gz"]

    def test_unscoped(self, runner):
        toolchain = GoToolchain(AllocationsConfig(scope_to_module=False), runner)
        assert "-list=." in toolchain.pprof_list_command("/tmp/p.pb.gz", "example.com/m")

    def test_no_module_name(self, toolchain):
        assert "-list=." in toolchain.pprof_list_command("/tmp/p.pb.gz", None)


class TestParsing:
    def test_package_list(self):
        output = "main /w/m\nsub /w/m/with space\n\nbroken\n"
        assert parse_package_list(output) == [("main", "/w/m"), ("sub", "/w/m/with space")]

    def test_benchmark_list_filters_noise(self):
        output = (
            "BenchmarkParse\n"
            "Benchmark_helper\n"
            "Benchmarkhelper\n"
            "TestParse\n"
            "ok  \texample.com/m\t0.012s\n"
        )
        assert parse_benchmark_list(output, PATTERN) == ["BenchmarkParse", "Benchmark_helper"]

    def test_benchmark_list_preserves_order(self):
        output = "BenchmarkZ\nBenchmarkA\nBenchmarkM\n"
        assert parse_benchmark_list(output, PATTERN) == ["BenchmarkZ", "BenchmarkA", "BenchmarkM"]


class TestCommands:
    def test_module_name(self, toolchain, runner, tmp_path):
        runner.on("list", "-m", response=Scripted(stdout="example.com/m\n"))
        assert asyncio.run(toolchain.module_name(tmp_path)) == "example.com/m"
        assert runner.calls[0] == (["go", "list", "-m"], str(tmp_path))

    def test_module_name_outside_module(self, toolchain, runner, tmp_path):
        runner.on("list", "-m", response=Scripted(stdout=f"{NO_MODULE}\n"))
        assert asyncio.run(toolchain.module_name(tmp_path)) is None

    def test_module_name_failure(self, toolchain, runner, tmp_path):
        runner.on("list", "-m", response=Scripted(returncode=1, stderr="go: not in a module"))
        with pytest.raises(CommandFailedError):
            asyncio.run(toolchain.module_name(tmp_path))

    def test_goroot_memoised(self, toolchain, runner):
        runner.on("env", "GOROOT", response=Scripted(stdout="/usr/local/go\n"))

        async def twice():
            return await toolchain.goroot(), await toolchain.goroot()

        assert asyncio.run(twice()) == ("/usr/local/go", "/usr/local/go")
        assert len(runner.commands("GOROOT")) == 1

    def test_gomod_devnull(self, toolchain, runner, tmp_path):
        runner.on("env", "GOMOD", response=Scripted(stdout=f"{os.devnull}\n"))
        assert asyncio.run(toolchain.gomod_path(tmp_path)) is None

    def test_list_benchmarks_uses_pattern(self, toolchain, runner, tmp_path):
        runner.on("test", response=Scripted(stdout="BenchmarkA\nok  \tm\t0.1s\n"))
        assert asyncio.run(toolchain.list_benchmarks(tmp_path)) == ["BenchmarkA"]
        argv, cwd = runner.calls[0]
        assert argv == ["go", "test", "-list=^Benchmark[_A-Z][^/]*$"]
        assert cwd == str(tmp_path)


class TestIsUserCode:
    @pytest.fixture
    def modules(self, tmp_path):
        return [Module(name="example.com/m", path=str(tmp_path / "m"))]

    @pytest.fixture
    def scripted_goroot(self, toolchain, runner, tmp_path):
        runner.on("env", "GOROOT", response=Scripted(stdout=f"{tmp_path / 'goroot'}\n"))
        asyncio.run(toolchain.goroot())
        return toolchain

    def test_module_file(self, scripted_goroot, modules, tmp_path):
        assert scripted_goroot.is_user_code(str(tmp_path / "m" / "pkg" / "a.go"), modules)

    def test_goroot_file(self, scripted_goroot, modules, tmp_path):
        path = tmp_path / "goroot" / "src" / "strings" / "builder.go"
        assert not scripted_goroot.is_user_code(str(path), modules)

    def test_vendored_file_inside_module(self, scripted_goroot, modules, tmp_path):
        path = tmp_path / "m" / "vendor" / "github.com" / "x" / "y.go"
        assert not scripted_goroot.is_user_code(str(path), modules)

    def test_module_cache_vendor(self, scripted_goroot, modules):
        assert not scripted_goroot.is_user_code("/home/u/go/vendor/x/y.go", modules)

    def test_unknown_file_is_user_code(self, scripted_goroot, modules):
        assert scripted_goroot.is_user_code("/elsewhere/z.go", modules)

    def test_sibling_prefix_not_inside(self, scripted_goroot, modules, tmp_path):
        path = tmp_path / "goroot2" / "a.go"
        assert scripted_goroot.is_user_code(str(path), modules)
