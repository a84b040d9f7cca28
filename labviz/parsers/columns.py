"""Fixed-width field extraction for column-oriented records.

Offsets are 0-based, end-exclusive (``line[start:end]``). Every helper
returns ``None`` instead of raising when the field is missing, blank, or
not a valid number, so one bad column never sinks the whole line.
"""

from __future__ import annotations

import math
from typing import Optional


def field(line: str, start: int, end: int) -> Optional[str]:
    if start >= len(line):
        return None
    value = line[start:min(end, len(line))].strip()
    return value or None


def char_field(line: str, pos: int) -> Optional[str]:
    return field(line, pos, pos + 1)


def int_field(line: str, start: int, end: int) -> Optional[int]:
    value = field(line, start, end)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def float_field(line: str, start: int, end: int) -> Optional[float]:
    return to_float(field(line, start, end))


def to_float(value: Optional[str]) -> Optional[float]:
    """Parse a finite float, or None."""
    if not value:
        return None
    try:
        f = float(value)
    except ValueError:
        return None
    return f if math.isfinite(f) else None


def to_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_charge(value: Optional[str]) -> Optional[int]:
    """Formal charge as written in PDB (``2+``, ``1-``) or mmCIF (``-1``)."""
    if not value:
        return None
    value = value.strip()
    if value[-1:] in "+-" and value[:-1].isdigit():
        magnitude = int(value[:-1])
        return -magnitude if value[-1] == "-" else magnitude
    return to_int(value)
