"""Checks that gate untrusted text before and after building.

Order used by the parse entrypoint: size, content safety, format marker,
(parse), non-empty result. Every failure raises and ends the call.
"""

from __future__ import annotations

import re
from typing import Optional

from labviz.config import MAX_FILE_BYTES
from labviz.parsers.base import MolecularStructure
from labviz.parsers.detect import StructureFormat, has_legacy_marker, has_tag_marker
from labviz.parsers.errors import (
    ContentSafetyError,
    EmptyStructureError,
    FormatMismatchError,
    SizeLimitExceededError,
)

SUSPICIOUS_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("script tag", re.compile(r"<script", re.IGNORECASE)),
    ("javascript: URI", re.compile(r"javascript:", re.IGNORECASE)),
    (
        "event handler attribute",
        re.compile(
            r"\bon(?:error|load|click|dblclick|mouseover|mouseout|mousedown|mouseup"
            r"|focus|blur|change|submit|input|keydown|keyup|keypress)\s*=",
            re.IGNORECASE,
        ),
    ),
    ("eval call", re.compile(r"\beval\s*\(", re.IGNORECASE)),
    ("NUL byte", re.compile("\x00")),
)


class Validator:
    """Size, content-safety, format-marker and emptiness checks."""

    def __init__(self, max_bytes: int = MAX_FILE_BYTES) -> None:
        self.max_bytes = max_bytes

    def check_size(self, text: str) -> None:
        if len(text) > self.max_bytes:
            raise SizeLimitExceededError(len(text), self.max_bytes)

    def check_content(self, text: str) -> None:
        for label, pattern in SUSPICIOUS_PATTERNS:
            if pattern.search(text):
                raise ContentSafetyError(label)

    def check_format_marker(self, text: str, expected: Optional[StructureFormat]) -> None:
        """``expected`` comes from the file extension; None skips the check."""
        if expected is StructureFormat.LEGACY and not has_legacy_marker(text):
            raise FormatMismatchError(
                "File does not appear to be a valid PDB file (no ATOM/HETATM/HEADER/TITLE record)"
            )
        if expected is StructureFormat.TAG and not has_tag_marker(text):
            raise FormatMismatchError(
                "File does not appear to be a valid CIF/mmCIF file (no data_ block)"
            )

    def check_built(self, structure: MolecularStructure) -> None:
        if structure.num_atoms == 0:
            raise EmptyStructureError("No atoms found in file")
