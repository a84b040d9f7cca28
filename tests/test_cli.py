"""Tests for the labviz command line."""

import json
import shutil
from pathlib import Path

from typer.testing import CliRunner

from labviz import cli
from labviz.alphafold.client import AlphaFoldClient

FIXTURES = Path(__file__).resolve().parent / "fixtures"

runner = CliRunner()


def test_detect():
    result = runner.invoke(cli.app, ["detect", str(FIXTURES / "sample.cif")])
    assert result.exit_code == 0
    assert result.output.strip() == "mmcif"


def test_parse_summary():
    result = runner.invoke(cli.app, ["parse", str(FIXTURES / "sample.pdb")])
    assert result.exit_code == 0
    assert "atom_count: 22" in result.output
    assert "chain A: TCA" in result.output


def test_parse_json_and_atoms(tmp_path: Path):
    out = tmp_path / "atoms.csv"
    result = runner.invoke(cli.app, ["parse", str(FIXTURES / "sample.cif"), "--json", "--atoms", str(out)])
    assert result.exit_code == 0
    payload = json.loads(result.output.strip().splitlines()[0])
    assert payload["metadata"]["atomCount"] == 10
    assert out.is_file()


def test_parse_error_exit_code(tmp_path: Path):
    bad = tmp_path / "bad.cif"
    bad.write_text("HEADER    NOT A CIF\n")
    result = runner.invoke(cli.app, ["parse", str(bad)])
    assert result.exit_code == 1
    assert "format-mismatch" in result.output


def test_batch(tmp_path: Path):
    shutil.copy(FIXTURES / "sample.pdb", tmp_path / "a.pdb")
    report = tmp_path / "report.csv"
    result = runner.invoke(cli.app, ["batch", str(tmp_path), "--workers", "2", "--report", str(report)])
    assert result.exit_code == 0
    assert "parsed=1 failed=0" in result.output
    assert report.is_file()


def test_batch_with_failure(tmp_path: Path):
    (tmp_path / "bad.pdb").write_text("nothing\n")
    result = runner.invoke(cli.app, ["batch", str(tmp_path)])
    assert result.exit_code == 1
    assert "failed=1" in result.output


class _StubClient(AlphaFoldClient):
    def fetch_pdb_text(self, accession):
        return (FIXTURES / "sample.pdb").read_text()


def test_alphafold(monkeypatch):
    monkeypatch.setattr(cli, "client_from_settings", lambda: _StubClient())
    result = runner.invoke(cli.app, ["alphafold", "P69905"])
    assert result.exit_code == 0
    assert "id: P69905" in result.output
    assert "method: COMPUTATIONAL MODEL" in result.output


def test_alphafold_bad_accession():
    result = runner.invoke(cli.app, ["alphafold", "nope"])
    assert result.exit_code != 0
