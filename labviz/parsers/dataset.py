"""Parse entrypoint, parser registry, and StructureDataset.

``parse_structure`` is what upload/fetch handlers call: it validates the
raw text, detects the format, runs the matching parser and checks the
result. It keeps no state between calls, so independent calls may run
concurrently.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional, overload

from labviz.config import MAX_FILE_BYTES
from labviz.parsers.base import MolecularStructure, StructureParser, read_text
from labviz.parsers.detect import StructureFormat, detect_format
from labviz.parsers.errors import InternalParseError, StructureError, UnknownFormatError
from labviz.parsers.mmcif import CIFParser
from labviz.parsers.pdb_format import PDBFormatParser
from labviz.parsers.validate import Validator

logger = logging.getLogger(__name__)

# ======================================================================
# Parser registry (extension -> parser class, format -> parser class)
# ======================================================================

_REGISTRY: dict[str, type[StructureParser]] = {}
_BY_FORMAT: dict[str, type[StructureParser]] = {}


def register_parser(parser_cls: type[StructureParser]) -> None:
    """Register a parser class for its declared extensions and format."""
    for ext in parser_cls.extensions():
        _REGISTRY[ext.lower()] = parser_cls
    if parser_cls.format_name:
        _BY_FORMAT[parser_cls.format_name] = parser_cls


# Filled at import so concurrent parse calls only ever read the registry.
register_parser(CIFParser)
register_parser(PDBFormatParser)


def _match_extension(name: str) -> Optional[type[StructureParser]]:
    name = name.lower()
    for ext in sorted(_REGISTRY, key=len, reverse=True):
        if name.endswith(ext):
            return _REGISTRY[ext]
    return None


def auto_parser(path: str | Path) -> StructureParser:
    """Return the parser for a file path based on extension."""
    parser_cls = _match_extension(str(path))
    if parser_cls is None:
        available = sorted(set(_REGISTRY.keys()))
        raise ValueError(f"No parser for '{path}'. Supported: {available}")
    return parser_cls()


def format_for_filename(filename: Optional[str]) -> Optional[StructureFormat]:
    """Format implied by a filename's extension, or None if unregistered."""
    if not filename:
        return None
    parser_cls = _match_extension(filename)
    if parser_cls is None:
        return None
    return StructureFormat(parser_cls.format_name)


# ======================================================================
# Entrypoint
# ======================================================================

def parse_structure(
    text: str,
    filename: Optional[str] = None,
    *,
    max_bytes: int = MAX_FILE_BYTES,
) -> MolecularStructure:
    """Validate, detect, parse, and check one structure file's text.

    Raises a StructureError subclass on any terminal failure. Malformed
    individual records are skipped and reported in ``result.stats``.
    """
    validator = Validator(max_bytes=max_bytes)
    validator.check_size(text)
    validator.check_content(text)
    validator.check_format_marker(text, format_for_filename(filename))

    fmt = detect_format(text)
    if fmt is StructureFormat.UNKNOWN:
        raise UnknownFormatError("Could not recognise the file as PDB or mmCIF")

    try:
        structure = _BY_FORMAT[fmt.value]().parse_text(text)
    except StructureError:
        raise
    except Exception as e:
        logger.error("Unexpected error parsing %s: %s", filename or "<text>", e)
        raise InternalParseError(f"{type(e).__name__}: {e}") from e

    validator.check_built(structure)
    if structure.stats.skipped:
        logger.info(
            "Parsed %s (%s): atoms=%d skipped=%d",
            filename or "<text>", fmt.value, structure.num_atoms, structure.stats.skipped,
        )
    return structure


def load_structure(path: str | Path, *, max_bytes: int = MAX_FILE_BYTES) -> MolecularStructure:
    """Read a file (plain or gzip) and run it through ``parse_structure``."""
    path = Path(path)
    name = path.name[:-3] if path.name.lower().endswith(".gz") else path.name
    return parse_structure(read_text(path), filename=name, max_bytes=max_bytes)


# ======================================================================
# StructureDataset
# ======================================================================

class StructureDataset:
    """A list of structure files parsed lazily on access.

    Usage::

        ds = StructureDataset.from_directory("uploads/", pattern="*.pdb")
        for structure in ds:
            print(structure.metadata.id, structure.num_atoms)

        s = ds[0]
        helices = ds.filter(lambda s: any(r.secondary_structure == "helix" for r in s.residues))
    """

    def __init__(self, paths: list[Path], max_bytes: int = MAX_FILE_BYTES):
        self._paths = paths
        self._max_bytes = max_bytes
        self._cache: dict[int, MolecularStructure] = {}

    @classmethod
    def from_paths(cls, paths: list[str | Path], max_bytes: int = MAX_FILE_BYTES) -> "StructureDataset":
        return cls([Path(p) for p in paths], max_bytes=max_bytes)

    @classmethod
    def from_directory(
        cls,
        directory: str | Path,
        pattern: str = "*.pdb",
        max_bytes: int = MAX_FILE_BYTES,
    ) -> "StructureDataset":
        """Create from all matching files in a directory (recursive)."""
        d = Path(directory)
        paths = sorted(d.rglob(pattern))
        logger.info("StructureDataset: found %d files matching '%s' in %s", len(paths), pattern, d)
        return cls(paths, max_bytes=max_bytes)

    def __len__(self) -> int:
        return len(self._paths)

    @overload
    def __getitem__(self, idx: int) -> MolecularStructure: ...
    @overload
    def __getitem__(self, idx: slice) -> list[MolecularStructure]: ...

    def __getitem__(self, idx):
        if isinstance(idx, slice):
            return [self._load(i) for i in range(*idx.indices(len(self)))]
        if idx < 0:
            idx = len(self) + idx
        return self._load(idx)

    def __iter__(self) -> Iterator[MolecularStructure]:
        for i in range(len(self)):
            yield self._load(i)

    def _load(self, idx: int) -> MolecularStructure:
        if idx in self._cache:
            return self._cache[idx]
        path = self._paths[idx]
        try:
            structure = load_structure(path, max_bytes=self._max_bytes)
        except StructureError as e:
            logger.error("Failed to parse %s: %s", path, e)
            raise
        self._cache[idx] = structure
        return structure

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def filter(self, predicate) -> "StructureDataset":
        """New dataset with the structures matching ``predicate`` (parses all)."""
        indices = [i for i in range(len(self)) if predicate(self._load(i))]
        ds = StructureDataset([self._paths[i] for i in indices], max_bytes=self._max_bytes)
        for new_idx, old_idx in enumerate(indices):
            ds._cache[new_idx] = self._cache[old_idx]
        return ds

    def __repr__(self) -> str:
        return f"<StructureDataset n={len(self)} paths={self._paths[:3]}...>"
