"""Regex-based lookup of benchmark declarations in Go test files.

Only used for navigation: a benchmark whose declaration cannot be found
keeps ``location=None`` and is still runnable.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Union

from ..logging_config import get_logger
from ..models import SourceLocation, normalize_path

logger = get_logger(__name__)

BENCHMARK_DECLARATION = re.compile(
    r"^\s*func\s+(Benchmark\w+)\s*\(\s*\w+\s+\*testing\.B\s*\)", re.MULTILINE
)

TEST_FILE_GLOB = "*_test.go"


def find_benchmark_declarations(package_dir: Union[str, Path]) -> dict[str, SourceLocation]:
    """Map benchmark name to its declaration in the package's test files.

    Files are scanned in name order; the first declaration of a name wins.
    Unreadable files are skipped.
    """
    locations: dict[str, SourceLocation] = {}
    directory = Path(package_dir)
    if not directory.is_dir():
        return locations

    for test_file in sorted(directory.glob(TEST_FILE_GLOB)):
        try:
            content = test_file.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("Cannot read %s: %s", test_file, e)
            continue

        file_path = normalize_path(test_file)
        for match in BENCHMARK_DECLARATION.finditer(content):
            name = match.group(1)
            if name in locations:
                continue
            line = content.count("\n", 0, match.start(1)) + 1
            locations[name] = SourceLocation(file=file_path, line=line)

    return locations
