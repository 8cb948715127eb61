"""Profiled benchmark execution and artifact lifecycle."""

from .artifacts import artifact_path, remove_artifact, temporary_artifact
from .coordinator import ExecutionCoordinator

__all__ = ["ExecutionCoordinator", "artifact_path", "remove_artifact", "temporary_artifact"]
