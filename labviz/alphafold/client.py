"""AlphaFold DB client: fetch predicted models as PDB text."""

from __future__ import annotations

import logging
import re
import time
from http.client import HTTPException
from typing import Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

ALPHAFOLD_FILES_URL = "https://alphafold.ebi.ac.uk/files"

_UNIPROT_ACCESSION = re.compile(
    r"^(?:[OPQ][0-9][A-Z0-9]{3}[0-9]|[A-NR-Z][0-9](?:[A-Z][A-Z0-9]{2}[0-9]){1,2})$"
)


def is_valid_uniprot_id(accession: Optional[str]) -> bool:
    """True for a well-formed UniProtKB accession (case-insensitive)."""
    if not accession:
        return False
    return _UNIPROT_ACCESSION.match(accession.strip().upper()) is not None


class AlphaFoldFetchError(RuntimeError):
    """Remote model could not be retrieved."""


class AlphaFoldClient:
    """Download AlphaFold DB model files by UniProt accession."""

    def __init__(
        self,
        base_url: str = ALPHAFOLD_FILES_URL,
        version: str = "v4",
        timeout: float = 30,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.version = version
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_backoff = retry_backoff

    def model_url(self, accession: str) -> str:
        return f"{self.base_url}/AF-{accession.upper()}-F1-model_{self.version}.pdb"

    def fetch_pdb_text(self, accession: str) -> str:
        """GET the model PDB file, retrying transient failures.

        A 404 is not retried. Raises AlphaFoldFetchError when every attempt
        fails.
        """
        url = self.model_url(accession)
        headers = {"User-Agent": "labviz/1.0", "Accept": "chemical/x-pdb, text/plain"}
        last_err: Optional[str] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                with urlopen(Request(url, headers=headers), timeout=self.timeout) as resp:
                    return resp.read().decode("utf-8", errors="replace")
            except HTTPError as e:
                last_err = f"HTTP {e.code} for {url}"
                if e.code == 404:
                    break
            except (URLError, HTTPException, TimeoutError, OSError) as e:
                last_err = f"{type(e).__name__}: {e}"
            if attempt < self.max_retries:
                logger.warning("AlphaFold fetch attempt %d/%d failed: %s", attempt, self.max_retries, last_err)
                time.sleep(self.retry_backoff * attempt)
        raise AlphaFoldFetchError(f"Failed to fetch AlphaFold model for {accession}: {last_err}")
