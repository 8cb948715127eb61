"""Display nodes for the benchmark hierarchy.

A closed set of frozen variants; consumers dispatch on the concrete type.
Nodes are disposable projections of the structure cache and carry keys,
never references back into it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

from ..models import BenchmarkKey, SourceLocation
from ..profile import AllocationRecord


@dataclass(frozen=True)
class ModuleNode:
    name: str
    path: str
    kind: Literal["module"] = field(default="module", init=False)

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class PackageNode:
    name: str
    path: str
    module_path: str
    label: str
    kind: Literal["package"] = field(default="package", init=False)


@dataclass(frozen=True)
class BenchmarkNode:
    key: BenchmarkKey
    location: Optional[SourceLocation] = None
    executed: bool = False
    kind: Literal["benchmark"] = field(default="benchmark", init=False)

    @property
    def label(self) -> str:
        return self.key.name


@dataclass(frozen=True)
class InformationNode:
    """A message shown in place of children (instructions, empty results, errors)."""

    label: str
    icon: str = "info"
    benchmark: Optional[BenchmarkKey] = None
    kind: Literal["information"] = field(default="information", init=False)


@dataclass(frozen=True)
class AllocationNode:
    """One allocation site under the benchmark that produced it."""

    benchmark: BenchmarkKey
    record: AllocationRecord
    kind: Literal["allocation"] = field(default="allocation", init=False)

    @property
    def label(self) -> str:
        return self.record.source

    @property
    def description(self) -> str:
        return self.record.describe()

    @property
    def location(self) -> SourceLocation:
        return SourceLocation(file=self.record.file, line=self.record.line)


Node = Union[ModuleNode, PackageNode, BenchmarkNode, InformationNode, AllocationNode]
