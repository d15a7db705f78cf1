"""
=============================================================================
BYTE RANGE REQUESTS
=============================================================================

Parses the Range header of a GET against the size of the selected file.

    Range: bytes=540-761      → bytes 540..761   (222 bytes)
    Range: bytes=540-         → bytes 540..end
    Range: bytes=-100         → the last 100 bytes
    Range: bytes=0-99999999   → clamped to the end of the file

=============================================================================
OUTCOMES
=============================================================================

    ┌─────────────────────────────┬───────────────────────────────────────┐
    │ no Range header, or size 0  │ None  → 200 with the whole file        │
    │ satisfiable range           │ RangeSpec → 206                        │
    │                             │   Content-Range: bytes 540-761/1028    │
    │                             │   Content-Length: 222                  │
    │ malformed / out of bounds   │ RangeNotSatisfiable → 416              │
    │                             │   Content-Range: bytes */1028          │
    └─────────────────────────────┴───────────────────────────────────────┘

A header with several ranges is answered with the first satisfiable one;
multipart/byteranges bodies are never produced. A unit other than
"bytes" counts as malformed.

=============================================================================
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import RangeNotSatisfiable


RANGE_SPEC_PATTERN = re.compile(r"^(\d*)\s*-\s*(\d*)$")


@dataclass(frozen=True)
class RangeSpec:
    """An inclusive byte range with 0 <= start <= end < size."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def _satisfiable(first: str, last: str, size: int) -> Optional[RangeSpec]:
    if not first:
        suffix = int(last)
        if suffix == 0:
            return None
        return RangeSpec(max(size - suffix, 0), size - 1)

    start = int(first)
    end = int(last) if last else size - 1
    if start > end or start >= size:
        return None
    return RangeSpec(start, min(end, size - 1))


def parse_range(size: int, header: Optional[str]) -> Optional[RangeSpec]:
    """
    Parse a Range header for a resource of `size` bytes.

    Returns:
        None when the whole resource should be sent, otherwise the
        range to send.

    Raises:
        RangeNotSatisfiable: The header is malformed, uses another unit,
            or none of its ranges overlaps the resource.
    """
    if header is None or size == 0:
        return None

    unit, sep, ranges = header.partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise RangeNotSatisfiable(size, header)

    specs = []
    for part in ranges.split(","):
        part = part.strip()
        if not part:
            continue
        match = RANGE_SPEC_PATTERN.match(part)
        if not match or not any(match.groups()):
            raise RangeNotSatisfiable(size, header)
        specs.append(match.groups())

    for first, last in specs:
        byte_range = _satisfiable(first, last, size)
        if byte_range is not None:
            return byte_range

    raise RangeNotSatisfiable(size, header)
