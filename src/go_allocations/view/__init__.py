"""Display hierarchy derived from the structure cache."""

from .adapter import DISCOVERING, INSTRUCTION, NO_BENCHMARKS, ViewAdapter
from .nodes import AllocationNode, BenchmarkNode, InformationNode, ModuleNode, Node, PackageNode
from .render import node_label, render_tree

__all__ = [
    "ViewAdapter",
    "INSTRUCTION",
    "DISCOVERING",
    "NO_BENCHMARKS",
    "Node",
    "ModuleNode",
    "PackageNode",
    "BenchmarkNode",
    "InformationNode",
    "AllocationNode",
    "node_label",
    "render_tree",
]
