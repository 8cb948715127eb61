"""Rich rendering of the display hierarchy for the terminal."""

from __future__ import annotations

import os
from typing import Mapping, Optional

from rich.markup import escape
from rich.tree import Tree

from ..models import BenchmarkKey
from ..profile import RunOutcome
from .adapter import INSTRUCTION, ViewAdapter
from .nodes import AllocationNode, BenchmarkNode, InformationNode, ModuleNode, Node, PackageNode

_ICONS = {"info": "ℹ", "error": "✗", "loading": "…"}


def node_label(node: Node) -> str:
    """Rich markup for one node."""
    if isinstance(node, ModuleNode):
        return f"[bold cyan]{escape(node.label)}[/]"
    if isinstance(node, PackageNode):
        return f"[bold]{escape(node.label)}[/]"
    if isinstance(node, BenchmarkNode):
        text = f"[green]{escape(node.label)}[/]" if node.executed else escape(node.label)
        if node.location is not None:
            where = f"{os.path.basename(node.location.file)}:{node.location.line}"
            text += f" [dim]{escape(where)}[/]"
        return text
    if isinstance(node, InformationNode):
        style = "red" if node.icon == "error" else "dim"
        icon = _ICONS.get(node.icon)
        text = f"{icon} {node.label}" if icon else node.label
        return f"[{style}]{escape(text)}[/]"
    if isinstance(node, AllocationNode):
        return (
            f"[yellow]{escape(str(node.record.flat))}[/] {escape(node.label)} "
            f"[dim]{escape(node.record.location)} ({escape(node.description)})[/]"
        )
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def render_tree(
    adapter: ViewAdapter,
    results: Optional[Mapping[BenchmarkKey, RunOutcome]] = None,
    title: str = "Benchmarks",
    show_instructions: bool = False,
) -> Tree:
    """Build a rich Tree of modules, packages and benchmarks.

    Benchmarks with an entry in ``results`` get its allocation nodes as
    children.
    """
    results = results or {}
    tree = Tree(f"[b]{escape(title)}[/]")

    for root in adapter.roots():
        if not show_instructions and isinstance(root, InformationNode) and root.label == INSTRUCTION:
            continue
        _add(tree, adapter, root, results)
    return tree


def _add(
    parent: Tree,
    adapter: ViewAdapter,
    node: Node,
    results: Mapping[BenchmarkKey, RunOutcome],
) -> None:
    branch = parent.add(node_label(node))
    if isinstance(node, BenchmarkNode):
        outcome = results.get(node.key)
        if outcome is not None:
            for child in adapter.allocation_children(node.key, outcome):
                branch.add(node_label(child))
        return
    for child in adapter.children(node):
        _add(branch, adapter, child, results)
