"""Decide whether raw text is legacy PDB or mmCIF."""

from __future__ import annotations

import re
from enum import Enum

_TAG_MARKER = re.compile(r"^data_", re.MULTILINE)
_LEGACY_MARKER = re.compile(r"^(?:ATOM|HETATM|HEADER|TITLE)", re.MULTILINE)


class StructureFormat(str, Enum):
    LEGACY = "pdb"
    TAG = "mmcif"
    UNKNOWN = "unknown"


def has_tag_marker(text: str) -> bool:
    return _TAG_MARKER.search(text) is not None


def has_legacy_marker(text: str) -> bool:
    return _LEGACY_MARKER.search(text) is not None


def detect_format(text: str) -> StructureFormat:
    """Classify text by the record markers found at line starts.

    mmCIF atom_site rows also begin with ``ATOM``/``HETATM``, so legacy
    markers only count when they appear before the first ``data_`` line.
    Text with legacy records ahead of a data block is ambiguous.
    """
    tag = _TAG_MARKER.search(text)
    if tag is None:
        return StructureFormat.LEGACY if has_legacy_marker(text) else StructureFormat.UNKNOWN
    if _LEGACY_MARKER.search(text, 0, tag.start()):
        return StructureFormat.UNKNOWN
    return StructureFormat.TAG
