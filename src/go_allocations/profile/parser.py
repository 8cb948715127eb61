"""Streaming parser for ``go tool pprof -list`` output.

Example listing (memory profile, alloc_space):

    ROUTINE ======================== example.com/m.BenchmarkString in /src/m/m_test.go
         0     3.77GB (flat, cum) 99.92% of Total
         .          .     13:func BenchmarkString(b *testing.B) {
         .     3.77GB     15:		alloc()
    ROUTINE ======================== example.com/m.alloc in /src/m/m_test.go
    3.77GB     3.77GB (flat, cum) 99.92% of Total
    3.77GB     3.77GB     10:	_ = "x" + strconv.Itoa(rand.Intn(20))

An allocation site is a line with flat bytes: the call on line 15 only has
cumulative cost and is not reported; line 10, where the string is built, is.

The parser is a two-state machine. A ``ROUTINE`` header enters a routine and
records its function and file; a blank line or the next header leaves it.
Lines in routines whose file is not user code are dropped as they arrive.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from ..exceptions import ProfileParseError
from ..logging_config import get_logger
from .models import AllocationRecord, RunOutcome
from .sizes import ByteSize

logger = get_logger(__name__)

# pprof's diagnostic when -list=<scope> selects no routine
NO_MATCHES_DIAGNOSTIC = "no matches found for regexp"

_COST = r"(?:\d+(?:\.\d+)?(?:[kKMGTPE]?B)?|\.)"


@dataclass(frozen=True)
class LineFormat:
    """The listing layout the parser accepts.

    pprof prints each annotated line as ``" %10s %10s %8d:%s"``. The column
    width is only consulted when a single cost token is present, to decide
    whether the blank column was the flat or the cumulative one.
    """

    name: str
    routine: re.Pattern[str]
    line: re.Pattern[str]
    flat_column_end: int


PPROF_LIST_FORMAT = LineFormat(
    name="pprof-list/v1",
    routine=re.compile(r"^ROUTINE\s*=+\s*(.+?)\s+in\s+(.+)$"),
    line=re.compile(rf"^(?P<costs>\s*(?:{_COST}\s+){{0,2}})(?P<line>\d+):(?P<source>.*)$"),
    flat_column_end=11,
)

_TOKEN_RE = re.compile(r"\S+")


@dataclass
class ParseStats:
    """Counts used to notice when the listing format has drifted."""

    routines: int = 0
    annotated_lines: int = 0
    unmatched_lines: int = 0
    dropped_non_user: int = 0

    @property
    def format_suspect(self) -> bool:
        """Routines were found but none of their lines could be read."""
        return self.routines > 0 and self.annotated_lines == 0 and self.unmatched_lines > 0


@dataclass
class _Routine:
    function: str
    file: str
    user_owned: bool
    declaration: Optional[re.Pattern[str]]


def short_function_name(full_name: str) -> str:
    """``github.com/a/b/v2.(*T).Method`` -> ``(*T).Method``.

    Takes the last path segment, then everything after its first dot.
    """
    after_slash = full_name.rsplit("/", 1)[-1]
    _, dot, rest = after_slash.partition(".")
    return rest if dot else after_slash


def _declaration_pattern(function: str) -> Optional[re.Pattern[str]]:
    # Closures (alloc.func1) have no declaration line of their own
    name = function.rsplit(".", 1)[-1]
    if not re.fullmatch(r"[A-Za-z_]\w*", name):
        return None
    return re.compile(rf"^func\s+(?:\([^)]*\)\s*)?{re.escape(name)}\s*[\[(]")


class ProfileParser:
    """Turns listing lines into allocation records.

    Args:
        is_user_code: Predicate on a routine's source file; lines from files
            it rejects are never turned into records
        artifact: Profile path, used in error messages
        line_format: Expected listing layout
    """

    def __init__(
        self,
        is_user_code: Callable[[str], bool] = lambda _path: True,
        artifact: Union[str, Path] = "",
        line_format: LineFormat = PPROF_LIST_FORMAT,
    ):
        self._is_user_code = is_user_code
        self.artifact = str(artifact)
        self.format = line_format
        self.records: list[AllocationRecord] = []
        self.stats = ParseStats()
        self._routine: Optional[_Routine] = None

    @property
    def in_routine(self) -> bool:
        return self._routine is not None

    def feed(self, line: str) -> Optional[AllocationRecord]:
        """Consume one line; return the record it produced, if any."""
        raw = line.rstrip("\r\n")
        stripped = raw.strip()

        header = self.format.routine.match(stripped)
        if header:
            function, file = header.group(1), header.group(2).strip()
            self._routine = _Routine(
                function=function,
                file=file,
                user_owned=self._is_user_code(file),
                declaration=_declaration_pattern(function),
            )
            self.stats.routines += 1
            return None

        if not stripped:
            self._routine = None
            return None

        routine = self._routine
        if routine is None:
            return None

        if "(flat, cum)" in stripped or stripped.startswith("Total:"):
            return None

        match = self.format.line.match(raw)
        if match is None:
            self.stats.unmatched_lines += 1
            return None
        self.stats.annotated_lines += 1

        if not routine.user_owned:
            self.stats.dropped_non_user += 1
            return None

        line_number = int(match.group("line"))
        if line_number <= 0:
            return None

        flat, cumulative = self._costs(match)
        if not flat:
            return None

        source = match.group("source").strip()
        # Frame-level cost pprof attributes to the `func` line is not an allocation site
        if routine.declaration is not None and routine.declaration.match(source):
            return None

        record = AllocationRecord(
            file=routine.file,
            line=line_number,
            source=source,
            flat=flat,
            cumulative=cumulative,
            function=short_function_name(routine.function),
        )
        self.records.append(record)
        return record

    def parse_lines(self, lines: Iterable[str]) -> list[AllocationRecord]:
        """Feed every line and return all records in listing order."""
        for line in lines:
            self.feed(line)
        return list(self.records)

    def finish(self, returncode: int = 0, stderr: str = "") -> RunOutcome:
        """Classify the finished listing.

        Raises:
            ProfileParseError: pprof exited non-zero with diagnostics
        """
        if NO_MATCHES_DIAGNOSTIC in stderr:
            return RunOutcome.none_found()

        if returncode != 0 and stderr.strip():
            raise ProfileParseError(
                self.artifact, f"pprof exit code {returncode}: {stderr.strip()}"
            )

        if self.stats.format_suspect:
            logger.warning(
                "None of %d listing lines matched the %s layout; the pprof output format may have changed",
                self.stats.unmatched_lines,
                self.format.name,
            )

        if self.stats.dropped_non_user:
            logger.debug("Dropped %d lines outside user code", self.stats.dropped_non_user)

        return RunOutcome.found(self.records)

    def _costs(self, match: re.Match[str]) -> tuple[ByteSize, ByteSize]:
        costs = match.group("costs")
        tokens = list(_TOKEN_RE.finditer(costs))
        if len(tokens) == 2:
            return ByteSize.parse(tokens[0].group()), ByteSize.parse(tokens[1].group())
        if len(tokens) == 1:
            value = ByteSize.parse(tokens[0].group())
            if tokens[0].end() <= self.format.flat_column_end:
                return value, ByteSize.zero()
            return ByteSize.zero(), value
        return ByteSize.zero(), ByteSize.zero()


def parse_listing(
    lines: Iterable[str],
    is_user_code: Callable[[str], bool] = lambda _path: True,
    returncode: int = 0,
    stderr: str = "",
) -> RunOutcome:
    """Parse a complete listing in one call."""
    parser = ProfileParser(is_user_code=is_user_code)
    parser.parse_lines(lines)
    return parser.finish(returncode, stderr)
