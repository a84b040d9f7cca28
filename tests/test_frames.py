"""Tests for the pandas atom table."""

from pathlib import Path

import pandas as pd

from labviz.core.frames import ATOM_COLUMNS, atoms_frame, save_atoms
from labviz.parsers.dataset import load_structure

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def test_atoms_frame():
    s = load_structure(FIXTURES / "sample.pdb")
    df = atoms_frame(s)
    assert list(df.columns) == ATOM_COLUMNS
    assert len(df) == s.num_atoms
    assert df["index"].tolist() == list(range(s.num_atoms))
    assert df.loc[20, "element"] == "Fe"
    assert bool(df.loc[20, "is_ligand"]) is True
    assert set(df["chain_id"]) == {"A", "B"}


def test_save_csv(tmp_path: Path):
    s = load_structure(FIXTURES / "sample.cif")
    out = tmp_path / "out" / "atoms.csv"
    save_atoms(s, out)
    df = pd.read_csv(out)
    assert len(df) == 10
    assert df["x"].iloc[0] == 10.0
