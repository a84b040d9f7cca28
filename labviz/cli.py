from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from labviz.alphafold.client import AlphaFoldFetchError, is_valid_uniprot_id
from labviz.alphafold.fetch import client_from_settings, fetch_alphafold_structure
from labviz.config import load_settings
from labviz.core.batch import BatchOptions, parallel_parse
from labviz.core.frames import save_atoms
from labviz.core.logging_utils import get_logger
from labviz.parsers.base import MolecularStructure, read_text
from labviz.parsers.dataset import load_structure
from labviz.parsers.detect import detect_format
from labviz.parsers.errors import StructureError

logger = get_logger(__name__)
app = typer.Typer(no_args_is_help=True)


def _echo_structure(structure: MolecularStructure, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(structure.to_dict()))
        return
    for key, value in structure.summary().items():
        typer.echo(f"{key}: {value}")
    for chain_id, seq in structure.sequences.items():
        if seq:
            typer.echo(f"chain {chain_id or '-'}: {seq}")


@app.command("detect")
def detect(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Structure file.")):
    """Print the detected format (pdb, mmcif or unknown)."""
    typer.echo(detect_format(read_text(path)).value)


@app.command("parse")
def parse(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="PDB or mmCIF file (optionally .gz)."),
    as_json: bool = typer.Option(False, "--json", help="Print the full structure as JSON."),
    atoms: Optional[Path] = typer.Option(None, help="Write the atom table (.csv or .parquet)."),
):
    """Validate and parse one structure file."""
    settings = load_settings()
    try:
        structure = load_structure(path, max_bytes=settings.max_file_bytes)
    except StructureError as e:
        typer.echo(f"error ({e.kind}): {e}", err=True)
        raise typer.Exit(code=1)
    _echo_structure(structure, as_json)
    if atoms is not None:
        save_atoms(structure, atoms)
        logger.info("Wrote %d atoms to %s", structure.num_atoms, atoms)


@app.command("batch")
def batch(
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Directory to scan."),
    pattern: str = typer.Option("*.pdb", help="Glob pattern (recursive)."),
    workers: int = typer.Option(0, help="Parallel parse workers (0 = LABVIZ_PARSE_WORKERS)."),
    report: Optional[Path] = typer.Option(None, help="Write a CSV report of all files."),
):
    """Parse every matching file in a directory in parallel."""
    settings = load_settings()
    paths = sorted(directory.rglob(pattern))
    opts = BatchOptions(max_workers=workers or settings.parse_workers, max_bytes=settings.max_file_bytes)
    result = parallel_parse(paths, opts, prefix_label="parse")
    if report is not None:
        report.parent.mkdir(parents=True, exist_ok=True)
        result.to_frame().to_csv(report, index=False)
    typer.echo(f"parsed={result.ok} failed={result.failed}")
    if result.failed:
        raise typer.Exit(code=1)


@app.command("alphafold")
def alphafold(
    accession: str = typer.Argument(..., help="UniProt accession, e.g. P69905."),
    as_json: bool = typer.Option(False, "--json", help="Print the full structure as JSON."),
):
    """Fetch and parse an AlphaFold DB prediction."""
    if not is_valid_uniprot_id(accession):
        raise typer.BadParameter(f"Invalid UniProt ID: {accession}")
    try:
        structure = fetch_alphafold_structure(accession, client_from_settings())
    except (AlphaFoldFetchError, StructureError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)
    _echo_structure(structure, as_json)
