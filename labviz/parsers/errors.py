"""Failure kinds raised by the structure loader.

Per-record problems (a bad atom line, a malformed loop row, a dangling
bond) are not exceptions: they are counted in ``ParseStats``. Everything
here aborts the whole parse call.
"""

from __future__ import annotations


class StructureError(Exception):
    """Base class for terminal parse/validation failures."""

    kind = "structure-error"
    http_status = 400

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": str(self)}


class UnknownFormatError(StructureError):
    kind = "unknown-format"


class SizeLimitExceededError(StructureError):
    kind = "size-limit-exceeded"
    http_status = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Input is {size} characters; maximum is {limit}")
        self.size = size
        self.limit = limit


class ContentSafetyError(StructureError):
    kind = "content-safety-violation"

    def __init__(self, pattern: str) -> None:
        super().__init__(f"File contains potentially malicious content ({pattern})")
        self.pattern = pattern


class FormatMismatchError(StructureError):
    kind = "format-mismatch"


class EmptyStructureError(StructureError):
    kind = "empty-structure"


class InternalParseError(StructureError):
    kind = "internal-parse-error"
    http_status = 500
