"""Upload and AlphaFold handlers behind the HTTP routes.

Framework-agnostic: each handler takes plain values and returns a
RouteResponse (status code + JSON body) that the web layer serializes.
Status mapping: validation failures 400, oversize 413, unexpected parse
or fetch failures 500.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from labviz.alphafold.client import AlphaFoldClient, AlphaFoldFetchError, is_valid_uniprot_id
from labviz.alphafold.fetch import fetch_alphafold_structure
from labviz.config import LabvizSettings, load_settings
from labviz.core.cache import StructureCache
from labviz.core.logging_utils import get_logger
from labviz.parsers.dataset import parse_structure
from labviz.parsers.errors import InternalParseError, StructureError

logger = get_logger(__name__)

ALLOWED_MIME_TYPES = (
    "chemical/x-pdb",
    "chemical/x-mmcif",
    "text/plain",
    "application/octet-stream",  # browsers report this for .pdb/.cif
)
ALLOWED_EXTENSIONS = (".pdb", ".cif", ".mmcif")
MAX_FILENAME_LENGTH = 255

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class RouteResponse:
    status: int
    body: dict = field(default_factory=dict)


def sanitize_filename(filename: str) -> str:
    """Replace anything outside ``[A-Za-z0-9._-]`` with ``_`` and cap the length."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)[:MAX_FILENAME_LENGTH]


def _error_response(err: StructureError) -> RouteResponse:
    if isinstance(err, InternalParseError):
        return RouteResponse(err.http_status, {"error": "Failed to process file", "message": str(err)})
    return RouteResponse(err.http_status, {"error": str(err), "kind": err.kind})


def handle_upload(
    filename: Optional[str],
    data: Union[bytes, str, None],
    content_type: str = "",
    settings: Optional[LabvizSettings] = None,
) -> RouteResponse:
    """Validate and parse one uploaded structure file."""
    s = settings or load_settings()
    if not filename or data is None:
        return RouteResponse(400, {"error": "No file provided"})

    if content_type and content_type not in ALLOWED_MIME_TYPES:
        return RouteResponse(400, {
            "error": "Invalid MIME type",
            "detail": f"Expected chemical/x-pdb or chemical/x-mmcif, got {content_type}",
        })

    if len(data) > s.max_file_bytes:
        limit_mb = s.max_file_bytes // (1024 * 1024)
        return RouteResponse(413, {"error": f"File too large. Maximum size is {limit_mb} MB"})

    safe_name = sanitize_filename(filename)
    if not safe_name.lower().endswith(ALLOWED_EXTENSIONS):
        return RouteResponse(400, {
            "error": "Invalid file type. Only .pdb, .cif, and .mmcif files are supported",
        })

    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    if len(text) < s.min_content_chars:
        return RouteResponse(400, {
            "error": f"File appears to be empty or invalid (minimum {s.min_content_chars} characters required)",
        })

    try:
        structure = parse_structure(text, filename=safe_name, max_bytes=s.max_file_bytes)
    except StructureError as e:
        logger.warning("Upload %s rejected (%s): %s", safe_name, e.kind, e)
        return _error_response(e)
    except Exception as e:
        logger.exception("Unexpected error processing upload %s", safe_name)
        return RouteResponse(500, {"error": "Failed to process file", "message": f"{type(e).__name__}: {e}"})

    body = structure.to_dict()
    body.update({
        "uploaded": True,
        "filename": safe_name,
        "originalFilename": filename,
        "validated": True,
    })
    return RouteResponse(200, body)


def handle_alphafold(
    accession: str,
    client: Optional[AlphaFoldClient] = None,
    cache: Optional[StructureCache] = None,
) -> RouteResponse:
    """Fetch, parse and enrich an AlphaFold prediction by UniProt accession."""
    start = time.monotonic()
    acc = (accession or "").strip().upper()
    if not is_valid_uniprot_id(acc):
        return RouteResponse(400, {"error": f"Invalid UniProt ID: {accession}"})

    cache_key = StructureCache.key_for_id(f"alphafold:{acc}")
    try:
        structure = cache.get(cache_key) if cache is not None else None
        cached = structure is not None
        if structure is None:
            structure = fetch_alphafold_structure(acc, client)
            if cache is not None:
                cache.put(cache_key, structure)
    except (AlphaFoldFetchError, StructureError) as e:
        logger.error("Error fetching AlphaFold %s: %s", acc, e)
        return RouteResponse(500, {"error": "Failed to fetch AlphaFold prediction", "message": str(e)})
    except Exception as e:
        logger.exception("Unexpected error fetching AlphaFold %s", acc)
        return RouteResponse(500, {
            "error": "Failed to fetch AlphaFold prediction",
            "message": f"{type(e).__name__}: {e}",
        })

    body = structure.to_dict()
    body.update({
        "cached": cached,
        "fetchTime": int((time.monotonic() - start) * 1000),
    })
    return RouteResponse(200, body)
