"""AlphaFold DB fetch client and metadata enrichment."""

from labviz.alphafold.client import AlphaFoldClient, AlphaFoldFetchError, is_valid_uniprot_id
from labviz.alphafold.fetch import enrich_alphafold, fetch_alphafold_structure

__all__ = [
    "AlphaFoldClient",
    "AlphaFoldFetchError",
    "is_valid_uniprot_id",
    "enrich_alphafold",
    "fetch_alphafold_structure",
]
