"""Configuration loading and management for go-allocations.

Configuration sources are merged in priority order:
    1. Defaults (defined in AllocationsConfig)
    2. Global config (~/.go-allocations.toml)
    3. Project config (./go-allocations.toml)
    4. Explicit config file
    5. Environment variables (GO_ALLOCATIONS_* prefix)
    6. CLI overrides (passed as kwargs)

Example:
    >>> config = load_config(concurrency=4)
    >>> config.concurrency
    4
    >>> config.memprofile_rate
    65536
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

Verbosity = Literal["quiet", "normal", "verbose"]

ENV_PREFIX = "GO_ALLOCATIONS_"
CONFIG_FILENAME = "go-allocations.toml"

# Upper bound on simultaneously running benchmarks; each one is a full
# `go test` build plus a profiled run.
MAX_CONCURRENCY = 16


@dataclass(frozen=True)
class AllocationsConfig:
    """Configuration for discovery and profiled benchmark runs.

    Attributes:
        Toolchain:
            go_binary: Go executable used for every toolchain command
            benchmark_pattern: Regex passed to `go test -list`; must only
                match top-level benchmarks (no sub-benchmark separator)
            memprofile_rate: Sampling rate passed as -memprofilerate

        Execution:
            concurrency: Admission bound for batch runs and package scans
            scope_to_module: Narrow `pprof -list` to the module namespace so
                standard-library frames are never rendered
            temp_dir: Directory for profile artifacts (None = system default)
            artifact_prefix: File name prefix of profile artifacts
            terminate_grace_seconds: Wait between SIGTERM and SIGKILL when a
                cancelled child process does not exit

        Navigation:
            editor_command: Editor used by `open` (None = $VISUAL/$EDITOR/code)

        Output control:
            verbosity: Logging verbosity level
    """

    go_binary: str = "go"
    benchmark_pattern: str = "^Benchmark[_A-Z][^/]*$"
    memprofile_rate: int = 64 * 1024

    concurrency: int = 2
    scope_to_module: bool = True
    temp_dir: Optional[str] = None
    artifact_prefix: str = "go-allocations-memprofile"
    terminate_grace_seconds: float = 2.0

    editor_command: Optional[str] = None

    verbosity: Verbosity = "normal"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.go_binary.strip():
            raise InvalidConfigError("go_binary", self.go_binary, "must not be empty")

        try:
            compiled = re.compile(self.benchmark_pattern)
        except re.error as e:
            raise InvalidConfigError("benchmark_pattern", self.benchmark_pattern, str(e))
        if compiled.match("BenchmarkX/sub"):
            raise InvalidConfigError(
                "benchmark_pattern",
                self.benchmark_pattern,
                "must not match sub-benchmark names",
            )

        if self.memprofile_rate < 1:
            raise InvalidConfigError("memprofile_rate", self.memprofile_rate, "must be at least 1")

        if not 1 <= self.concurrency <= MAX_CONCURRENCY:
            raise InvalidConfigError(
                "concurrency", self.concurrency, f"must be between 1 and {MAX_CONCURRENCY}"
            )

        if self.terminate_grace_seconds < 0:
            raise InvalidConfigError(
                "terminate_grace_seconds", self.terminate_grace_seconds, "must be non-negative"
            )

        if not self.artifact_prefix or os.sep in self.artifact_prefix:
            raise InvalidConfigError(
                "artifact_prefix", self.artifact_prefix, "must be a plain file name prefix"
            )

        if self.verbosity not in ("quiet", "normal", "verbose"):
            raise InvalidConfigError(
                "verbosity", self.verbosity, "must be one of quiet, normal, verbose"
            )

    @property
    def compiled_benchmark_pattern(self) -> re.Pattern[str]:
        return re.compile(self.benchmark_pattern)


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> AllocationsConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags). ``None``
            values are ignored so unset CLI options keep lower-priority values.

    Returns:
        Validated AllocationsConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict[str, Any] = {}

    global_config = Path.home() / f".{CONFIG_FILENAME}"
    if global_config.exists():
        merged.update(_load_toml_file(global_config))

    project_config = Path.cwd() / CONFIG_FILENAME
    if project_config.exists():
        merged.update(_load_toml_file(project_config))

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        merged.update(_load_toml_file(config_file))

    merged.update(_load_env_vars())

    # Convert verbosity boolean flags to string
    if "verbose" in overrides:
        if overrides["verbose"]:
            overrides["verbosity"] = "verbose"
        del overrides["verbose"]
    if "quiet" in overrides:
        if overrides["quiet"]:
            overrides["verbosity"] = "quiet"
        del overrides["quiet"]

    merged.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return AllocationsConfig(**merged)
    except TypeError as e:
        # Unknown field in config
        raise ConfigurationError(f"Invalid configuration: {e}")


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from GO_ALLOCATIONS_* environment variables.

    Every field of AllocationsConfig can be set, e.g.
    GO_ALLOCATIONS_CONCURRENCY=4 or GO_ALLOCATIONS_SCOPE_TO_MODULE=false.
    """
    type_hints = get_type_hints(AllocationsConfig)

    result: dict[str, Any] = {}

    for field_name in AllocationsConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)

        if env_value is None:
            continue

        type_hint = type_hints.get(field_name)
        if type_hint is None:
            continue

        try:
            parsed = _parse_env_value(env_value, type_hint)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    """Parse environment variable string to the correct type.

    Raises:
        ValueError: If value can't be parsed to expected type
    """
    origin = getattr(type_hint, "__origin__", None)

    # Optional[X] is Union[X, None]
    args = getattr(type_hint, "__args__", ())
    if type(None) in args:
        non_none_types = [t for t in args if t is not type(None)]
        if non_none_types:
            type_hint = non_none_types[0]
            origin = getattr(type_hint, "__origin__", None)

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    if type_hint is float:
        return float(value)

    # String (including Literal types like Verbosity)
    if type_hint is str or origin is Literal:
        return value

    return None


def _load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML config file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Invalid config file '{path}': {e}")
