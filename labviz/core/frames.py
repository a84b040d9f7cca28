from __future__ import annotations

from pathlib import Path

import pandas as pd

from labviz.parsers.base import MolecularStructure

ATOM_COLUMNS = [
    "index", "serial", "name", "element", "residue_name", "residue_seq",
    "chain_id", "x", "y", "z", "occupancy", "b_factor", "is_ligand", "is_backbone",
]


def atoms_frame(structure: MolecularStructure) -> pd.DataFrame:
    """One row per atom; ``index`` is the atom's index in the structure."""
    rows = [
        {
            "index": i,
            "serial": a.serial,
            "name": a.name,
            "element": a.element,
            "residue_name": a.residue_name,
            "residue_seq": a.residue_seq,
            "chain_id": a.chain_id,
            "x": a.x,
            "y": a.y,
            "z": a.z,
            "occupancy": a.occupancy,
            "b_factor": a.b_factor,
            "is_ligand": a.is_ligand,
            "is_backbone": a.is_backbone,
        }
        for i, a in enumerate(structure.atoms)
    ]
    return pd.DataFrame(rows, columns=ATOM_COLUMNS)


def save_atoms(structure: MolecularStructure, path: Path) -> None:
    """Write the atom table as parquet (.parquet) or CSV (anything else)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df = atoms_frame(structure)
    if path.suffix == ".parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)
