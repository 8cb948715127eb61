"""
go-allocations - memory allocation hot spots in Go benchmarks

Discovers the benchmarks of one or more Go modules, runs each under the
memory profiler and reports the source lines of your own code that
allocate.
"""

__version__ = "0.1.0"

from .cache import StructureCache
from .config import AllocationsConfig, load_config
from .models import Benchmark, BenchmarkKey, Module, Package, SourceLocation
from .profile import AllocationRecord, RunOutcome
from .session import AllocationsSession

__all__ = [
    "AllocationsSession",  # Main entry point
    "AllocationsConfig",
    "load_config",
    "StructureCache",
    "Module",
    "Package",
    "Benchmark",
    "BenchmarkKey",
    "SourceLocation",
    "AllocationRecord",
    "RunOutcome",
]
