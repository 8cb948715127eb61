"""Allocation records and the outcome of profiling one benchmark."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .sizes import ByteSize


@dataclass(frozen=True)
class AllocationRecord:
    """One source line with allocation cost attributed to it.

    Attributes:
        file: Absolute source file path, as reported by pprof
        line: 1-based line number
        source: Source text of the line (trimmed)
        flat: Bytes allocated by this line itself
        cumulative: Bytes allocated by this line and everything it calls
        function: Short function name (``alloc``, ``(*T).Method``)
    """

    file: str
    line: int
    source: str
    flat: ByteSize
    cumulative: ByteSize
    function: str

    @property
    def location(self) -> str:
        return f"{os.path.basename(self.file)}:{self.line}"

    def describe(self) -> str:
        return f"{self.flat} flat, {self.cumulative} cumulative"

    def to_dict(self) -> dict:
        return {
            "file": self.file,
            "line": self.line,
            "source": self.source,
            "function": self.function,
            "flat": self.flat.text,
            "flat_bytes": self.flat.bytes,
            "cumulative": self.cumulative.text,
            "cumulative_bytes": self.cumulative.bytes,
        }


class OutcomeKind(Enum):
    FOUND = "found"
    NONE_FOUND = "none_found"
    ERROR = "error"
    CANCELLED = "cancelled"


NO_ALLOCATIONS_MESSAGE = "No allocations found"


@dataclass(frozen=True)
class RunOutcome:
    """Result of profiling one benchmark.

    Records are recomputed on every run and never cached.
    """

    kind: OutcomeKind
    records: tuple[AllocationRecord, ...] = field(default_factory=tuple)
    message: Optional[str] = None

    @classmethod
    def found(cls, records: list[AllocationRecord] | tuple[AllocationRecord, ...]) -> RunOutcome:
        if not records:
            return cls.none_found()
        return cls(OutcomeKind.FOUND, tuple(records))

    @classmethod
    def none_found(cls) -> RunOutcome:
        return cls(OutcomeKind.NONE_FOUND, message=NO_ALLOCATIONS_MESSAGE)

    @classmethod
    def error(cls, message: str) -> RunOutcome:
        return cls(OutcomeKind.ERROR, message=message)

    @classmethod
    def cancelled(cls) -> RunOutcome:
        return cls(OutcomeKind.CANCELLED)

    @property
    def is_error(self) -> bool:
        return self.kind is OutcomeKind.ERROR

    @property
    def is_cancelled(self) -> bool:
        return self.kind is OutcomeKind.CANCELLED

    def to_dict(self) -> dict:
        data: dict = {"outcome": self.kind.value}
        if self.message is not None:
            data["message"] = self.message
        data["allocations"] = [r.to_dict() for r in self.records]
        return data
