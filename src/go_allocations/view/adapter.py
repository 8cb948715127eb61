"""Projection of the structure cache into display nodes.

The adapter holds no state of its own: every call reads the cache and builds
new nodes, and nothing is ever written back.
"""

from __future__ import annotations

from typing import Optional, assert_never

from ..cache import StructureCache
from ..exceptions import PackageNotFoundError
from ..models import Benchmark, BenchmarkKey, Module, Package
from ..profile import OutcomeKind, RunOutcome
from .nodes import AllocationNode, BenchmarkNode, InformationNode, ModuleNode, Node, PackageNode

INSTRUCTION = "Run a benchmark below to discover its allocations"
DISCOVERING = "Discovering benchmarks..."
NO_BENCHMARKS = "No benchmarks found"


class ViewAdapter:
    """Builds display nodes on demand from a :class:`StructureCache`."""

    def __init__(self, cache: StructureCache):
        self.cache = cache

    def roots(self) -> list[Node]:
        nodes: list[Node] = [InformationNode(INSTRUCTION)]
        modules = self.cache.modules
        if not modules:
            if self.cache.in_progress:
                nodes.append(InformationNode(DISCOVERING, icon="loading"))
            elif self.cache.loaded:
                nodes.append(InformationNode(NO_BENCHMARKS))
        nodes.extend(self.module_node(module) for module in modules)
        return nodes

    def children(self, node: Node) -> list[Node]:
        """Structural children. Benchmarks get theirs from :meth:`allocation_children`."""
        if isinstance(node, ModuleNode):
            return [self.package_node(p) for p in self.cache.packages_of(node.path)]
        if isinstance(node, PackageNode):
            package = self.cache.find_package(node.path)
            if package is None:
                raise PackageNotFoundError(node.path)
            return [self.benchmark_node(b) for b in package.benchmarks]
        if isinstance(node, (BenchmarkNode, InformationNode, AllocationNode)):
            return []
        assert_never(node)

    def allocation_children(self, key: BenchmarkKey, outcome: RunOutcome) -> list[Node]:
        kind = outcome.kind
        if kind is OutcomeKind.FOUND:
            return [AllocationNode(benchmark=key, record=record) for record in outcome.records]
        if kind is OutcomeKind.NONE_FOUND:
            return [InformationNode(outcome.message or "", benchmark=key)]
        if kind is OutcomeKind.ERROR:
            return [InformationNode(outcome.message or "", icon="error", benchmark=key)]
        if kind is OutcomeKind.CANCELLED:
            return []
        assert_never(kind)

    def parent(self, node: Node) -> Optional[Node]:
        """Resolve a node's parent through cache lookups."""
        if isinstance(node, ModuleNode):
            return None
        if isinstance(node, PackageNode):
            return self.module_node(self.cache.module_of(node.path))
        if isinstance(node, BenchmarkNode):
            package = self.cache.find_package(node.key.package_path)
            if package is None:
                raise PackageNotFoundError(node.key.package_path)
            return self.package_node(package)
        if isinstance(node, (InformationNode, AllocationNode)):
            if node.benchmark is None:
                return None
            benchmark = self.cache.find_benchmark(node.benchmark.package_path, node.benchmark.name)
            return self.benchmark_node(benchmark) if benchmark is not None else None
        assert_never(node)

    def module_node(self, module: Module) -> ModuleNode:
        return ModuleNode(name=module.name, path=module.path)

    def package_node(self, package: Package) -> PackageNode:
        return PackageNode(
            name=package.name,
            path=package.path,
            module_path=package.module_path,
            label=package.label(),
        )

    def benchmark_node(self, benchmark: Benchmark) -> BenchmarkNode:
        return BenchmarkNode(
            key=benchmark.key,
            location=benchmark.location,
            executed=self.cache.was_executed(benchmark.key),
        )
