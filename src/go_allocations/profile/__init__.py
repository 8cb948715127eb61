"""Memory profile listing parser and allocation records."""

from .models import NO_ALLOCATIONS_MESSAGE, AllocationRecord, OutcomeKind, RunOutcome
from .parser import (
    NO_MATCHES_DIAGNOSTIC,
    PPROF_LIST_FORMAT,
    LineFormat,
    ParseStats,
    ProfileParser,
    parse_listing,
    short_function_name,
)
from .sizes import ByteSize, format_size, parse_size

__all__ = [
    "AllocationRecord",
    "RunOutcome",
    "OutcomeKind",
    "NO_ALLOCATIONS_MESSAGE",
    "ProfileParser",
    "ParseStats",
    "LineFormat",
    "PPROF_LIST_FORMAT",
    "NO_MATCHES_DIAGNOSTIC",
    "parse_listing",
    "short_function_name",
    "ByteSize",
    "parse_size",
    "format_size",
]
