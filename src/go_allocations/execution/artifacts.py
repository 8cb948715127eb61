"""Temporary memory-profile artifacts.

Each profiled run writes its profile to a file named from a high-resolution
timestamp, a random token and the process id, so concurrent runs in one
process or across processes never share a path.
"""

from __future__ import annotations

import os
import secrets
import tempfile
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from ..config import AllocationsConfig
from ..logging_config import get_logger

logger = get_logger(__name__)

ARTIFACT_SUFFIX = ".pb.gz"


def _get_temp_base(config: AllocationsConfig) -> Path:
    if config.temp_dir:
        return Path(config.temp_dir)
    return Path(tempfile.gettempdir())


def artifact_path(config: AllocationsConfig, base: Optional[Path] = None) -> Path:
    """A fresh, collision-free artifact path. The file is not created."""
    directory = base if base is not None else _get_temp_base(config)
    name = (
        f"{config.artifact_prefix}-{time.time_ns()}-{secrets.token_hex(4)}-{os.getpid()}"
        f"{ARTIFACT_SUFFIX}"
    )
    return directory / name


def remove_artifact(path: Path) -> bool:
    """Delete an artifact. A file that was never written is not an error.

    Returns:
        True if a file was removed
    """
    try:
        path.unlink()
    except FileNotFoundError:
        logger.debug("Artifact already absent: %s", path)
        return False
    except OSError as e:
        logger.warning("Cannot remove profile artifact %s: %s", path, e)
        return False
    return True


@contextmanager
def temporary_artifact(config: AllocationsConfig) -> Generator[Path, None, None]:
    """
    Context manager yielding a unique artifact path, removed on every exit.

    Cleanup runs exactly once whether the body returns, raises or is
    cancelled.
    """
    path = artifact_path(config)
    try:
        yield path
    finally:
        remove_artifact(path)
