"""Benchmark discovery: module resolution, package scans, declaration lookup."""

from .engine import DiscoveryEngine, unique_roots
from .symbols import find_benchmark_declarations

__all__ = ["DiscoveryEngine", "find_benchmark_declarations", "unique_roots"]
