"""Tests for parallel batch parsing."""

import shutil
from pathlib import Path

import pandas as pd

from labviz.core.batch import BatchOptions, parallel_parse

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def _populate(tmp_path: Path) -> list[Path]:
    shutil.copy(FIXTURES / "sample.pdb", tmp_path / "good.pdb")
    shutil.copy(FIXTURES / "sample.cif", tmp_path / "good.cif")
    (tmp_path / "bad.pdb").write_text("nothing here\n")
    return sorted(tmp_path.iterdir())


def test_parallel_parse_collects_failures(tmp_path: Path):
    paths = _populate(tmp_path)
    result = parallel_parse(paths, BatchOptions(max_workers=2, progress=False))
    assert result.ok == 2
    assert result.failed == 1
    assert result.failures[0].kind == "format-mismatch"
    assert result.failures[0].path.endswith("bad.pdb")
    assert result.structures[str(tmp_path / "good.cif")].num_atoms == 10


def test_missing_file_is_io_error(tmp_path: Path):
    result = parallel_parse([tmp_path / "missing.pdb"], BatchOptions(progress=False))
    assert result.failed == 1
    assert result.failures[0].kind == "io-error"


def test_size_limit_applies(tmp_path: Path):
    paths = _populate(tmp_path)
    result = parallel_parse(paths, BatchOptions(max_bytes=50, progress=False))
    assert result.ok == 0
    kinds = sorted(f.kind for f in result.failures)
    # bad.pdb is under the limit and fails later, on its missing records
    assert kinds == ["format-mismatch", "size-limit-exceeded", "size-limit-exceeded"]


def test_empty_input():
    result = parallel_parse([], BatchOptions(progress=False))
    assert result.ok == 0
    assert result.failed == 0
    assert result.to_frame().empty


def test_to_frame(tmp_path: Path):
    result = parallel_parse(_populate(tmp_path), BatchOptions(progress=False))
    df = result.to_frame()
    assert isinstance(df, pd.DataFrame)
    assert len(df) == 3
    assert sorted(df["status"]) == ["format-mismatch", "ok", "ok"]
    ok = df[df["status"] == "ok"].set_index("id")
    assert ok.loc["4HHB", "atom_count"] == 22
    assert ok.loc["1ABC", "atom_count"] == 10


def test_unexpected_error_does_not_abort_batch(tmp_path: Path, monkeypatch):
    from labviz.core import batch

    paths = _populate(tmp_path)
    real_load = batch.load_structure

    def flaky_load(path, max_bytes):
        if Path(path).name == "good.cif":
            raise KeyError("mmcif")
        return real_load(path, max_bytes=max_bytes)

    monkeypatch.setattr(batch, "load_structure", flaky_load)
    result = parallel_parse(paths, BatchOptions(max_workers=2, progress=False))
    assert result.ok == 1
    kinds = {Path(f.path).name: f.kind for f in result.failures}
    assert kinds == {"good.cif": "internal-error", "bad.pdb": "format-mismatch"}
