"""Legacy PDB format reader.

Reads fixed-column records line by line. Coordinates and identity come
from ATOM/HETATM; descriptive metadata from HEADER, TITLE, EXPDTA, KEYWDS,
AUTHOR, SOURCE and REMARK 2; secondary structure from HELIX/SHEET; explicit
bonds from CONECT. Only the first MODEL is read.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from labviz.core.logging_utils import get_logger
from labviz.parsers.base import (
    AtomRecord,
    Connection,
    HeaderInfo,
    MolecularStructure,
    ParseStats,
    SecondaryRange,
    StructureParser,
    infer_element,
    normalize_element,
)
from labviz.parsers.builder import build_structure
from labviz.parsers.columns import char_field, field as col, float_field, int_field, parse_charge
from labviz.parsers.detect import StructureFormat

logger = get_logger(__name__)

_RESOLUTION = re.compile(r"(\d+\.\d+)\s*ANGSTROM", re.I)
_ORGANISM = re.compile(r"ORGANISM_SCIENTIFIC:\s*([^;]+)", re.I)


class _TextAccumulator:
    """Collects continuation text in encounter order until ``finish``."""

    def __init__(self, sep: str = " ") -> None:
        self._parts: list[str] = []
        self._sep = sep

    def add(self, text: Optional[str]) -> None:
        if text:
            self._parts.append(text.strip())

    def finish(self) -> Optional[str]:
        joined = self._sep.join(p for p in self._parts if p)
        return joined or None


@dataclass
class PDBRecords:
    """Typed records read from a PDB file, in line order."""

    atoms: list[AtomRecord] = field(default_factory=list)
    header: HeaderInfo = field(default_factory=HeaderInfo)
    secondary: list[SecondaryRange] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    skipped: int = 0
    ignored: int = 0


def parse_atom_line(line: str) -> Optional[AtomRecord]:
    """Parse one ATOM/HETATM line, or None if coordinates/element are unusable."""
    x = float_field(line, 30, 38)
    y = float_field(line, 38, 46)
    z = float_field(line, 46, 54)
    if x is None or y is None or z is None:
        return None

    residue_name = col(line, 17, 20)
    element = normalize_element(col(line, 76, 78) or "")
    if not element:
        element = normalize_element(infer_element(line[12:16], residue_name))
    if not element:
        return None

    return AtomRecord(
        x=x,
        y=y,
        z=z,
        element=element,
        name=col(line, 12, 16),
        serial=int_field(line, 6, 11),
        residue_name=residue_name,
        chain_id=char_field(line, 21),
        residue_seq=int_field(line, 22, 26),
        ins_code=char_field(line, 26),
        alt_loc=char_field(line, 16),
        occupancy=float_field(line, 54, 60),
        b_factor=float_field(line, 60, 66),
        charge=parse_charge(col(line, 78, 80)),
        is_hetero=line.startswith("HETATM"),
    )


def _conect_serials(line: str) -> list[Optional[int]]:
    return [int_field(line, start, start + 5) for start in (6, 11, 16, 21, 26)]


def read_pdb_records(text: str) -> PDBRecords:
    """Read every recognised record; unknown record types are ignored."""
    out = PDBRecords()
    title = _TextAccumulator()
    keywords = _TextAccumulator()
    authors = _TextAccumulator(sep="")
    source = _TextAccumulator()
    conect: Counter[tuple[int, int]] = Counter()
    model_done = False

    for line in text.splitlines():
        rec = line[:6].strip()

        if rec in ("ATOM", "HETATM"):
            if model_done:
                out.ignored += 1
                continue
            atom = parse_atom_line(line)
            if atom is None:
                logger.debug("Skipping malformed %s line: %r", rec, line)
                out.skipped += 1
            else:
                out.atoms.append(atom)

        elif rec == "HEADER":
            out.header.id = col(line, 62, 66)
            out.header.deposition_date = col(line, 50, 59)
            classification = col(line, 10, 50)
            if classification:
                out.header.extra["classification"] = classification

        elif rec == "TITLE":
            title.add(col(line, 10, 80))

        elif rec == "EXPDTA":
            out.header.experiment_method = col(line, 10, 79)

        elif rec == "KEYWDS":
            keywords.add(col(line, 10, 79))

        elif rec == "AUTHOR":
            authors.add(col(line, 10, 79))

        elif rec == "SOURCE":
            source.add(col(line, 10, 79))

        elif rec == "REMARK":
            if col(line, 7, 10) == "2" and "RESOLUTION" in line.upper():
                m = _RESOLUTION.search(line)
                if m:
                    out.header.resolution = float(m.group(1))

        elif rec == "HELIX":
            chain = char_field(line, 19) or ""
            start, end = int_field(line, 21, 25), int_field(line, 33, 37)
            if start is not None and end is not None:
                out.secondary.append(SecondaryRange("helix", chain, start, end))
            else:
                out.ignored += 1

        elif rec == "SHEET":
            chain = char_field(line, 21) or ""
            start, end = int_field(line, 22, 26), int_field(line, 33, 37)
            if start is not None and end is not None:
                out.secondary.append(SecondaryRange("sheet", chain, start, end))
            else:
                out.ignored += 1

        elif rec == "CONECT":
            origin, *partners = _conect_serials(line)
            if origin is None or partners[0] is None:
                logger.debug("Bad CONECT record: %r", line)
                out.ignored += 1
                continue
            for partner in partners:
                if partner is not None:
                    conect[(origin, partner)] += 1

        elif rec == "ENDMDL":
            model_done = True

        elif rec:
            out.ignored += 1

    out.header.title = title.finish()
    out.header.keywords = keywords.finish()
    author_text = authors.finish()
    if author_text:
        out.header.authors = [a.strip() for a in author_text.split(",") if a.strip()]
    source_text = source.finish()
    if source_text:
        for m in _ORGANISM.finditer(source_text):
            name = m.group(1).strip()
            if name and name not in out.header.organisms:
                out.header.organisms.append(name)

    # A partner listed n times in one atom's CONECT lines means bond order n.
    out.connections = [Connection(a, b, order) for (a, b), order in conect.items()]
    return out


def parse_pdb_text(text: str) -> MolecularStructure:
    """Read legacy PDB text and build the normalized structure."""
    records = read_pdb_records(text)
    stats = ParseStats(
        format=StructureFormat.LEGACY.value,
        skipped_atoms=records.skipped,
        ignored_lines=records.ignored,
    )
    return build_structure(
        records.atoms,
        records.header,
        stats=stats,
        secondary=records.secondary,
        connections=records.connections,
    )


class PDBFormatParser(StructureParser):
    """Parse PDB-format files (.pdb, .ent, .ent.gz)."""

    format_name = StructureFormat.LEGACY.value

    def parse_text(self, text: str) -> MolecularStructure:
        return parse_pdb_text(text)

    @staticmethod
    def extensions() -> list[str]:
        return [".pdb", ".ent", ".pdb.gz", ".ent.gz"]
