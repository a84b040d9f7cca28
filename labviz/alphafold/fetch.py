"""Fetch an AlphaFold model and run it through the parse entrypoint."""

from __future__ import annotations

from typing import Optional

from labviz.alphafold.client import AlphaFoldClient
from labviz.config import load_settings
from labviz.parsers.base import MolecularStructure
from labviz.parsers.dataset import parse_structure

COMPUTATIONAL_MODEL = "COMPUTATIONAL MODEL"
ALPHAFOLD_SOURCE = "AlphaFold DB"


def client_from_settings() -> AlphaFoldClient:
    s = load_settings()
    return AlphaFoldClient(
        base_url=s.alphafold_url,
        version=s.alphafold_version,
        timeout=s.http_timeout,
        max_retries=s.http_retries,
    )


def enrich_alphafold(structure: MolecularStructure, accession: str) -> MolecularStructure:
    """Mark a parsed structure as an AlphaFold computational model."""
    accession = accession.upper()
    return structure.with_metadata(
        id=accession,
        title=f"AlphaFold prediction for {accession}",
        experiment_method=COMPUTATIONAL_MODEL,
        source=ALPHAFOLD_SOURCE,
    )


def fetch_alphafold_structure(
    accession: str,
    client: Optional[AlphaFoldClient] = None,
) -> MolecularStructure:
    """Download, parse and enrich the AlphaFold model for ``accession``.

    Raises AlphaFoldFetchError on network failure and StructureError
    subclasses when the downloaded text does not parse.
    """
    cl = client or client_from_settings()
    text = cl.fetch_pdb_text(accession)
    structure = parse_structure(text, filename=f"AF-{accession.upper()}.pdb")
    return enrich_alphafold(structure, accession)
