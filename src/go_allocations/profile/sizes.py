"""Byte-size values as printed by pprof (1024-based units)."""

from __future__ import annotations

import re
from dataclasses import dataclass

_UNITS = {
    "": 1,
    "B": 1,
    "KB": 1024,
    "MB": 1024**2,
    "GB": 1024**3,
    "TB": 1024**4,
    "PB": 1024**5,
    "EB": 1024**6,
}

_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)([kKMGTPE]?B)?$")

ZERO_TOKENS = frozenset({"", ".", "0", "0B"})


def parse_size(text: str) -> int:
    """Parse ``3.77GB`` / ``512kB`` / ``.`` into a byte count.

    Raises:
        ValueError: If ``text`` is not a pprof size
    """
    token = text.strip()
    if token in ZERO_TOKENS:
        return 0
    match = _SIZE_RE.match(token)
    if match is None:
        raise ValueError(f"not a size: {text!r}")
    number, unit = match.groups()
    return round(float(number) * _UNITS[(unit or "").upper()])


def format_size(num_bytes: int) -> str:
    """Render a byte count the way pprof does (``3.77GB``, ``512kB``, ``0B``)."""
    value = float(num_bytes)
    for unit in ("B", "kB", "MB", "GB", "TB", "PB"):
        if abs(value) < 1024 or unit == "PB":
            if unit == "B":
                return f"{int(value)}B"
            return f"{value:.2f}".rstrip("0").rstrip(".") + unit
        value /= 1024
    return f"{int(num_bytes)}B"


@dataclass(frozen=True, order=True)
class ByteSize:
    """A cost column value: parsed bytes plus the text pprof printed."""

    bytes: int
    text: str

    @classmethod
    def parse(cls, text: str) -> ByteSize:
        token = text.strip()
        num = parse_size(token)
        if token in ZERO_TOKENS:
            token = "0B"
        return cls(bytes=num, text=token)

    @classmethod
    def zero(cls) -> ByteSize:
        return cls(bytes=0, text="0B")

    def __bool__(self) -> bool:
        return self.bytes != 0

    def __str__(self) -> str:
        return self.text
