"""Assemble reader output into a MolecularStructure.

Both readers produce an ordered list of AtomRecord plus header text,
secondary-structure ranges and explicit connections. The builder assigns
atom indices (input order), groups residues and chains, resolves bonds and
derives metadata counts. No bonds are inferred from geometry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Callable, Hashable, Optional, Sequence

from labviz.parsers.base import (
    NUCLEIC_BACKBONE,
    PROTEIN_BACKBONE,
    Atom,
    AtomRecord,
    Bond,
    Chain,
    Connection,
    HeaderInfo,
    MolecularStructure,
    ParseStats,
    Residue,
    SecondaryRange,
    StructureMetadata,
)

logger = logging.getLogger(__name__)

_PDB_ID = re.compile(r"^[0-9][A-Za-z0-9]{3}$")


def serial_key(record: AtomRecord) -> Optional[int]:
    return record.serial


def _to_atom(record: AtomRecord) -> Atom:
    name = record.name or ""
    backbone = not record.is_hetero and (name in PROTEIN_BACKBONE or name in NUCLEIC_BACKBONE)
    return Atom(
        element=record.element,
        x=record.x,
        y=record.y,
        z=record.z,
        serial=record.serial,
        name=record.name,
        residue_name=record.residue_name,
        residue_seq=record.residue_seq,
        chain_id=record.chain_id,
        b_factor=record.b_factor,
        occupancy=record.occupancy,
        is_ligand=record.is_hetero,
        is_backbone=backbone,
        alt_loc=record.alt_loc,
        ins_code=record.ins_code,
        charge=record.charge,
    )


def _secondary_for(
    chain_id: str,
    seq: int,
    ranges: Sequence[SecondaryRange],
) -> Optional[str]:
    if not ranges:
        return None
    for rng in ranges:
        if rng.covers(chain_id, seq):
            return rng.kind
    return "coil"


def _group_residues(
    records: Sequence[AtomRecord],
    ranges: Sequence[SecondaryRange],
) -> tuple[list[Residue], list[Chain]]:
    # A residue starts whenever (chain, seq, icode) changes; a key that
    # reappears later in the file is folded back into its first residue so
    # ids stay unique within a chain.
    residue_keys: list[tuple[str, int, str]] = []
    residue_names: list[str] = []
    residue_atoms: list[list[int]] = []
    index_of: dict[tuple[str, int, str], int] = {}

    chain_order: list[str] = []
    chain_atoms: dict[str, list[int]] = {}
    chain_residues: dict[str, list[int]] = {}

    prev_key = None
    current = -1
    for i, rec in enumerate(records):
        cid = rec.chain_id or ""
        key = (cid, rec.residue_seq if rec.residue_seq is not None else 0, rec.ins_code or "")
        if cid not in chain_atoms:
            chain_order.append(cid)
            chain_atoms[cid] = []
            chain_residues[cid] = []
        chain_atoms[cid].append(i)

        if key != prev_key:
            if key in index_of:
                current = index_of[key]
            else:
                current = len(residue_keys)
                index_of[key] = current
                residue_keys.append(key)
                residue_names.append(rec.residue_name or "UNK")
                residue_atoms.append([])
                chain_residues[cid].append(current)
            prev_key = key
        residue_atoms[current].append(i)

    residues = [
        Residue(
            id=seq,
            name=name,
            chain_id=cid,
            atom_indices=tuple(atoms),
            secondary_structure=_secondary_for(cid, seq, ranges),
            ins_code=icode,
        )
        for (cid, seq, icode), name, atoms in zip(residue_keys, residue_names, residue_atoms)
    ]
    chains = [
        Chain(id=cid, atom_indices=tuple(chain_atoms[cid]), residue_indices=tuple(chain_residues[cid]))
        for cid in chain_order
    ]
    return residues, chains


def _resolve_bonds(
    records: Sequence[AtomRecord],
    connections: Sequence[Connection],
    atom_key: Callable[[AtomRecord], Hashable],
) -> tuple[list[Bond], int]:
    if not connections:
        return [], 0

    index_of: dict[Hashable, int] = {}
    for i, rec in enumerate(records):
        key = atom_key(rec)
        if key is not None and key not in index_of:
            index_of[key] = i

    orders: dict[tuple[int, int], int] = {}
    dropped = 0
    for conn in connections:
        a = index_of.get(conn.a)
        b = index_of.get(conn.b)
        if a is None or b is None or a == b or conn.order not in (1, 2, 3, 4):
            logger.debug("Dropping connection %s", conn)
            dropped += 1
            continue
        pair = (a, b) if a < b else (b, a)
        orders[pair] = max(orders.get(pair, 0), conn.order)

    bonds = [Bond(a, b, order) for (a, b), order in orders.items()]
    return bonds, dropped


def _metadata(
    header: HeaderInfo,
    atom_count: int,
    residues: Sequence[Residue],
    chains: Sequence[Chain],
) -> StructureMetadata:
    pdb_id = header.id.upper() if header.id and _PDB_ID.match(header.id) else None
    return StructureMetadata(
        atom_count=atom_count,
        residue_count=len(residues),
        id=header.id,
        title=header.title,
        pdb_id=pdb_id,
        resolution=header.resolution,
        experiment_method=header.experiment_method,
        deposition_date=header.deposition_date,
        authors=tuple(header.authors),
        organisms=tuple(header.organisms),
        chains=tuple(c.id for c in chains),
        keywords=header.keywords,
        extra=dict(header.extra),
    )


def build_structure(
    records: Sequence[AtomRecord],
    header: Optional[HeaderInfo] = None,
    *,
    stats: ParseStats,
    secondary: Sequence[SecondaryRange] = (),
    connections: Sequence[Connection] = (),
    atom_key: Callable[[AtomRecord], Hashable] = serial_key,
) -> MolecularStructure:
    """Build the normalized model; atom ``i`` is ``records[i]``."""
    header = header or HeaderInfo()
    atoms = [_to_atom(r) for r in records]
    residues, chains = _group_residues(records, secondary)
    bonds, dropped = _resolve_bonds(records, connections, atom_key)
    if dropped:
        stats = replace(stats, skipped_bonds=stats.skipped_bonds + dropped)

    structure = MolecularStructure(
        atoms=tuple(atoms),
        bonds=tuple(bonds),
        residues=tuple(residues),
        chains=tuple(chains),
        metadata=_metadata(header, len(atoms), residues, chains),
        stats=stats,
    )
    structure.check_invariants()
    return structure
