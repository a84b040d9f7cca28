"""Normalized molecular model produced by both readers.

Hierarchy:
    MolecularStructure
    ├── atoms: tuple[Atom, ...]         (index space for everything below)
    ├── bonds: tuple[Bond, ...]         -> atom indices
    ├── residues: tuple[Residue, ...]   -> atom indices
    ├── chains: tuple[Chain, ...]       -> atom + residue indices
    ├── metadata: StructureMetadata
    └── stats: ParseStats               (records skipped while reading)

All value objects are frozen. A parse call allocates a fresh
MolecularStructure; callers that need to change one use ``with_metadata``
or ``dataclasses.replace`` and get a new object back.

The reader-side records (AtomRecord, HeaderInfo, SecondaryRange,
Connection) are what ``pdb_format`` and ``mmcif`` hand to the builder.
"""

from __future__ import annotations

import gzip
import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field, replace
from enum import IntEnum
from pathlib import Path
from typing import Any, Hashable, Iterator, Optional

import numpy as np

THREE_TO_ONE = {
    "ALA": "A", "ARG": "R", "ASN": "N", "ASP": "D", "CYS": "C",
    "GLN": "Q", "GLU": "E", "GLY": "G", "HIS": "H", "ILE": "I",
    "LEU": "L", "LYS": "K", "MET": "M", "PHE": "F", "PRO": "P",
    "SER": "S", "THR": "T", "TRP": "W", "TYR": "Y", "VAL": "V",
    "SEC": "U", "PYL": "O",
    "ASX": "B", "GLX": "Z", "XLE": "J", "UNK": "X",
}

PROTEIN_BACKBONE = frozenset({"N", "CA", "C", "O"})
NUCLEIC_BACKBONE = frozenset({"P", "OP1", "OP2", "O5'", "C5'", "C4'", "C3'", "O3'"})

SECONDARY_STRUCTURES = ("helix", "sheet", "coil")

# Two-letter elements that collide with one-letter + atom-name prefixes
# (CA = calpha vs calcium). Only trusted when the name is left-justified.
_TWO_LETTER_ELEMENTS = frozenset({
    "FE", "ZN", "MG", "MN", "CU", "CO", "NI", "CA", "NA", "CL", "BR",
    "SE", "CD", "HG", "LI", "AL", "SI", "AU", "AG", "PT", "SR", "BA",
})


def normalize_element(symbol: str) -> str:
    """'FE' -> 'Fe', 'c' -> 'C'; strips charge digits and signs."""
    letters = "".join(ch for ch in symbol.strip() if ch.isalpha())
    if not letters:
        return ""
    return letters[0].upper() + letters[1:].lower()


def infer_element(raw_name: str, residue_name: Optional[str] = None) -> str:
    """Guess the element from a 4-character PDB atom-name field.

    PDB left-justifies two-letter elements in the name field (``FE  ``)
    and pads one-letter ones with a leading space (`` CA ``).
    """
    if not raw_name or not raw_name.strip():
        return ""
    if len(raw_name) >= 2 and raw_name[0] != " " and raw_name[:2].upper() in _TWO_LETTER_ELEMENTS:
        if residue_name is None or residue_name.strip().upper() not in THREE_TO_ONE:
            return normalize_element(raw_name[:2])
    for ch in raw_name.strip():
        if ch.isalpha():
            return ch.upper()
    return ""


# ======================================================================
# Value objects
# ======================================================================

@dataclass(frozen=True)
class Atom:
    """Single atom with coordinates and identity."""

    element: str
    x: float
    y: float
    z: float
    serial: Optional[int] = None
    name: Optional[str] = None
    residue_name: Optional[str] = None
    residue_seq: Optional[int] = None
    chain_id: Optional[str] = None
    b_factor: Optional[float] = None
    occupancy: Optional[float] = None
    is_ligand: Optional[bool] = None
    is_backbone: Optional[bool] = None
    alt_loc: Optional[str] = None
    ins_code: Optional[str] = None
    charge: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.element:
            raise ValueError("Atom element must not be empty")
        if not all(math.isfinite(c) for c in (self.x, self.y, self.z)):
            raise ValueError(f"Atom coordinates must be finite, got {(self.x, self.y, self.z)}")

    @property
    def coords(self) -> tuple[float, float, float]:
        return (self.x, self.y, self.z)


class BondOrder(IntEnum):
    SINGLE = 1
    DOUBLE = 2
    TRIPLE = 3
    AROMATIC = 4


@dataclass(frozen=True)
class Bond:
    """Connection between two atoms, by index into MolecularStructure.atoms."""

    atom1: int
    atom2: int
    order: int = BondOrder.SINGLE

    def __post_init__(self) -> None:
        if self.atom1 < 0 or self.atom2 < 0:
            raise ValueError(f"Bond indices must be non-negative: {self.atom1}, {self.atom2}")
        if self.atom1 == self.atom2:
            raise ValueError(f"Self-bond on atom {self.atom1}")
        if self.order not in (1, 2, 3, 4):
            raise ValueError(f"Bond order must be 1-4, got {self.order}")


@dataclass(frozen=True)
class Residue:
    """Single residue (amino acid, nucleotide, or ligand)."""

    id: int
    name: str
    chain_id: str
    atom_indices: tuple[int, ...] = ()
    secondary_structure: Optional[str] = None
    ins_code: str = ""

    def __post_init__(self) -> None:
        if self.secondary_structure is not None and self.secondary_structure not in SECONDARY_STRUCTURES:
            raise ValueError(f"Unknown secondary structure: {self.secondary_structure!r}")

    @property
    def one_letter(self) -> str:
        return THREE_TO_ONE.get(self.name.upper(), "X")

    @property
    def is_standard(self) -> bool:
        return self.name.upper() in THREE_TO_ONE

    @property
    def num_atoms(self) -> int:
        return len(self.atom_indices)


@dataclass(frozen=True)
class Chain:
    """Atoms and residues sharing a chain identifier."""

    id: str
    atom_indices: tuple[int, ...] = ()
    residue_indices: tuple[int, ...] = ()
    name: Optional[str] = None

    @property
    def num_residues(self) -> int:
        return len(self.residue_indices)

    def __len__(self) -> int:
        return len(self.residue_indices)


@dataclass(frozen=True)
class StructureMetadata:
    """Descriptive fields. Counts are derived from the built lists.

    ``extra`` holds loosely typed source-specific values (e.g. the PDB
    HEADER classification); core fields are never read from it.
    """

    atom_count: int
    residue_count: int
    id: Optional[str] = None
    title: Optional[str] = None
    pdb_id: Optional[str] = None
    resolution: Optional[float] = None
    experiment_method: Optional[str] = None
    deposition_date: Optional[str] = None
    authors: tuple[str, ...] = ()
    organisms: tuple[str, ...] = ()
    chains: tuple[str, ...] = ()
    keywords: Optional[str] = None
    source: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ParseStats:
    """Counts of records dropped while reading (never raised as errors)."""

    format: str
    skipped_atoms: int = 0
    skipped_rows: int = 0
    skipped_bonds: int = 0
    ignored_lines: int = 0

    @property
    def skipped(self) -> int:
        return self.skipped_atoms + self.skipped_rows + self.skipped_bonds


# ======================================================================
# Reader output
# ======================================================================

@dataclass(frozen=True)
class AtomRecord:
    """One coordinate record as read from either format, before building."""

    x: float
    y: float
    z: float
    element: str
    name: Optional[str] = None
    serial: Optional[int] = None
    residue_name: Optional[str] = None
    chain_id: Optional[str] = None
    residue_seq: Optional[int] = None
    ins_code: Optional[str] = None
    alt_loc: Optional[str] = None
    occupancy: Optional[float] = None
    b_factor: Optional[float] = None
    charge: Optional[int] = None
    is_hetero: bool = False


@dataclass
class HeaderInfo:
    """Descriptive text captured from HEADER/TITLE records or mmCIF tags."""

    id: Optional[str] = None
    title: Optional[str] = None
    resolution: Optional[float] = None
    experiment_method: Optional[str] = None
    deposition_date: Optional[str] = None
    authors: list[str] = field(default_factory=list)
    organisms: list[str] = field(default_factory=list)
    keywords: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SecondaryRange:
    """Inclusive residue range (``start``..``end``) with a helix/sheet label."""

    kind: str
    chain_id: str
    start: int
    end: int

    def covers(self, chain_id: str, seq: int) -> bool:
        return self.chain_id == chain_id and self.start <= seq <= self.end


@dataclass(frozen=True)
class Connection:
    """Explicit bond between two atoms named by reader-specific keys."""

    a: Hashable
    b: Hashable
    order: int = 1


# ======================================================================
# MolecularStructure
# ======================================================================

@dataclass(frozen=True)
class MolecularStructure:
    """Root aggregate returned by every parse call."""

    atoms: tuple[Atom, ...]
    bonds: tuple[Bond, ...]
    residues: tuple[Residue, ...]
    chains: tuple[Chain, ...]
    metadata: StructureMetadata
    stats: ParseStats
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def num_atoms(self) -> int:
        return len(self.atoms)

    @property
    def num_residues(self) -> int:
        return len(self.residues)

    @property
    def num_chains(self) -> int:
        return len(self.chains)

    @property
    def num_bonds(self) -> int:
        return len(self.bonds)

    @property
    def chain_ids(self) -> list[str]:
        return [c.id for c in self.chains]

    @property
    def sequences(self) -> dict[str, str]:
        """Chain ID -> one-letter sequence of its standard residues."""
        out = {}
        for chain in self.chains:
            residues = (self.residues[i] for i in chain.residue_indices)
            out[chain.id] = "".join(r.one_letter for r in residues if r.is_standard)
        return out

    def get_chain(self, chain_id: str) -> Optional[Chain]:
        for c in self.chains:
            if c.id == chain_id:
                return c
        return None

    def iter_chain_atoms(self, chain_id: str) -> Iterator[Atom]:
        chain = self.get_chain(chain_id)
        if chain is None:
            return
        for i in chain.atom_indices:
            yield self.atoms[i]

    def coordinates(self) -> np.ndarray:
        """(N, 3) float array of atom positions (a fresh copy)."""
        return np.array([a.coords for a in self.atoms], dtype=float).reshape(-1, 3)

    def with_metadata(self, **changes: Any) -> "MolecularStructure":
        return replace(self, metadata=replace(self.metadata, **changes))

    def check_invariants(self) -> None:
        """Raise ValueError if any index or count is inconsistent."""
        n_atoms = len(self.atoms)
        n_res = len(self.residues)
        for b in self.bonds:
            if b.atom1 >= n_atoms or b.atom2 >= n_atoms:
                raise ValueError(f"Bond {b} references a missing atom")
        seen: set[tuple[str, int, str]] = set()
        for r in self.residues:
            key = (r.chain_id, r.id, r.ins_code)
            if key in seen:
                raise ValueError(f"Duplicate residue {r.id}{r.ins_code} in chain {r.chain_id!r}")
            seen.add(key)
            if any(i >= n_atoms for i in r.atom_indices):
                raise ValueError(f"Residue {r.id} references a missing atom")
        for c in self.chains:
            if any(i >= n_atoms for i in c.atom_indices):
                raise ValueError(f"Chain {c.id!r} references a missing atom")
            if any(i >= n_res for i in c.residue_indices):
                raise ValueError(f"Chain {c.id!r} references a missing residue")
        if self.metadata.atom_count != n_atoms or self.metadata.residue_count != n_res:
            raise ValueError("Metadata counts do not match the built lists")

    # -- serialization ---------------------------------------------------

    def to_dict(self) -> dict:
        """JSON-ready dict in the camelCase shape the viewer consumes."""
        m = self.metadata
        return {
            "atoms": [_atom_to_dict(a) for a in self.atoms],
            "bonds": [{"atom1": b.atom1, "atom2": b.atom2, "order": int(b.order)} for b in self.bonds],
            "residues": [
                _drop_none({
                    "id": r.id,
                    "name": r.name,
                    "chainId": r.chain_id,
                    "atomIndices": list(r.atom_indices),
                    "secondaryStructure": r.secondary_structure,
                    "insCode": r.ins_code or None,
                })
                for r in self.residues
            ],
            "chains": [
                _drop_none({
                    "id": c.id,
                    "name": c.name,
                    "atomIndices": list(c.atom_indices),
                    "residueIndices": list(c.residue_indices),
                })
                for c in self.chains
            ],
            "metadata": _drop_none({
                "id": m.id,
                "title": m.title,
                "pdbId": m.pdb_id,
                "resolution": m.resolution,
                "chains": list(m.chains),
                "atomCount": m.atom_count,
                "residueCount": m.residue_count,
                "experimentMethod": m.experiment_method,
                "depositionDate": m.deposition_date,
                "authors": list(m.authors) or None,
                "organisms": list(m.organisms) or None,
                "keywords": m.keywords,
                "source": m.source,
                "extra": dict(m.extra) or None,
            }),
            "stats": asdict(self.stats),
            "extra": dict(self.extra),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MolecularStructure":
        """Inverse of ``to_dict``."""
        m = data.get("metadata", {})
        return cls(
            atoms=tuple(_atom_from_dict(a) for a in data.get("atoms", [])),
            bonds=tuple(Bond(b["atom1"], b["atom2"], b.get("order", 1)) for b in data.get("bonds", [])),
            residues=tuple(
                Residue(
                    id=r["id"],
                    name=r["name"],
                    chain_id=r["chainId"],
                    atom_indices=tuple(r.get("atomIndices", ())),
                    secondary_structure=r.get("secondaryStructure"),
                    ins_code=r.get("insCode") or "",
                )
                for r in data.get("residues", [])
            ),
            chains=tuple(
                Chain(
                    id=c["id"],
                    atom_indices=tuple(c.get("atomIndices", ())),
                    residue_indices=tuple(c.get("residueIndices", ())),
                    name=c.get("name"),
                )
                for c in data.get("chains", [])
            ),
            metadata=StructureMetadata(
                atom_count=m.get("atomCount", 0),
                residue_count=m.get("residueCount", 0),
                id=m.get("id"),
                title=m.get("title"),
                pdb_id=m.get("pdbId"),
                resolution=m.get("resolution"),
                experiment_method=m.get("experimentMethod"),
                deposition_date=m.get("depositionDate"),
                authors=tuple(m.get("authors") or ()),
                organisms=tuple(m.get("organisms") or ()),
                chains=tuple(m.get("chains") or ()),
                keywords=m.get("keywords"),
                source=m.get("source"),
                extra=dict(m.get("extra") or {}),
            ),
            stats=ParseStats(**data.get("stats", {"format": "unknown"})),
            extra=dict(data.get("extra") or {}),
        )

    def summary(self) -> dict:
        """Flat dict for tables and batch reports."""
        m = self.metadata
        return {
            "id": m.id,
            "format": self.stats.format,
            "title": m.title,
            "method": m.experiment_method,
            "resolution": m.resolution,
            "chain_count": self.num_chains,
            "residue_count": m.residue_count,
            "atom_count": m.atom_count,
            "bond_count": self.num_bonds,
            "skipped": self.stats.skipped,
        }

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.metadata.id or '?'} "
            f"chains={self.num_chains} residues={self.num_residues} "
            f"atoms={self.num_atoms} bonds={self.num_bonds}>"
        )


_ATOM_KEYS = (
    ("serial", "id"),
    ("name", "atomName"),
    ("residue_name", "residue"),
    ("residue_seq", "residueId"),
    ("chain_id", "chain"),
    ("b_factor", "bFactor"),
    ("occupancy", "occupancy"),
    ("is_ligand", "isLigand"),
    ("is_backbone", "isBackbone"),
    ("alt_loc", "altLoc"),
    ("ins_code", "insCode"),
    ("charge", "charge"),
)


def _atom_to_dict(a: Atom) -> dict:
    out: dict[str, Any] = {"element": a.element, "x": a.x, "y": a.y, "z": a.z}
    for attr, key in _ATOM_KEYS:
        value = getattr(a, attr)
        if value is not None:
            out[key] = value
    return out


def _atom_from_dict(d: dict) -> Atom:
    kwargs = {attr: d.get(key) for attr, key in _ATOM_KEYS}
    return Atom(element=d["element"], x=d["x"], y=d["y"], z=d["z"], **kwargs)


def _drop_none(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}


# ======================================================================
# Parser protocol
# ======================================================================

def read_text(path: str | Path) -> str:
    """Read a structure file (plain or gzip) as text."""
    path = Path(path)
    opener = gzip.open if path.suffix == ".gz" else open
    mode = "rt" if path.suffix == ".gz" else "r"
    with opener(path, mode, encoding="utf-8", errors="ignore") as f:
        return f.read()


class StructureParser(ABC):
    """Turn the text of one format into a MolecularStructure.

    Implementations only read and build; size/content/marker validation
    happens in ``labviz.parsers.dataset.parse_structure``.
    """

    format_name: str = ""

    @abstractmethod
    def parse_text(self, text: str) -> MolecularStructure:
        ...

    def parse(self, path: str | Path) -> MolecularStructure:
        return self.parse_text(read_text(path))

    @staticmethod
    @abstractmethod
    def extensions() -> list[str]:
        """File extensions this parser handles (e.g. ['.cif', '.cif.gz'])."""
        ...
