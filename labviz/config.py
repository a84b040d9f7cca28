from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parents[1] / ".env"
if _env_path.is_file():
    load_dotenv(_env_path, override=False)

MAX_FILE_BYTES = 50 * 1024 * 1024


@dataclass
class LabvizSettings:
    """Configuration loaded from LABVIZ_* and MINIO_* environment variables.

    Parsing / uploads:
      LABVIZ_MAX_FILE_BYTES=52428800
      LABVIZ_MIN_CONTENT_CHARS=100
      LABVIZ_PARSE_WORKERS=8

    AlphaFold DB:
      LABVIZ_ALPHAFOLD_URL=https://alphafold.ebi.ac.uk/files
      LABVIZ_ALPHAFOLD_VERSION=v4
      LABVIZ_HTTP_TIMEOUT=30
      LABVIZ_HTTP_RETRIES=3

    Structure cache:
      LABVIZ_CACHE_BACKEND=none|local|s3
      LABVIZ_CACHE_ROOT=/data/labviz/cache
      LABVIZ_CACHE_PREFIX=structures/

    MinIO/S3 (only for LABVIZ_CACHE_BACKEND=s3):
      MINIO_ENDPOINT=localhost
      MINIO_PORT=9000
      MINIO_ACCESS_KEY=minioadmin
      MINIO_SECRET_KEY=minioadmin123
      MINIO_BUCKET=labviz-structures
    """

    max_file_bytes: int = MAX_FILE_BYTES
    min_content_chars: int = 100
    parse_workers: int = 8

    alphafold_url: str = "https://alphafold.ebi.ac.uk/files"
    alphafold_version: str = "v4"
    http_timeout: float = 30
    http_retries: int = 3

    cache_backend: Literal["none", "local", "s3"] = "none"
    cache_root: str = "/data/labviz/cache"
    cache_prefix: str = "structures/"

    minio_endpoint: str = "localhost"
    minio_port: int = 9000
    minio_access_key: str = ""
    minio_secret_key: str = ""
    minio_bucket: str = "labviz-structures"
    minio_region: str = "us-east-1"
    minio_secure: bool = False

    @property
    def s3_endpoint_url(self) -> str:
        scheme = "https" if self.minio_secure else "http"
        return f"{scheme}://{self.minio_endpoint}:{self.minio_port}"


def load_settings() -> LabvizSettings:
    """Load settings from environment variables."""
    return LabvizSettings(
        max_file_bytes=int(os.environ.get("LABVIZ_MAX_FILE_BYTES", str(MAX_FILE_BYTES))),
        min_content_chars=int(os.environ.get("LABVIZ_MIN_CONTENT_CHARS", "100")),
        parse_workers=int(os.environ.get("LABVIZ_PARSE_WORKERS", "8")),
        alphafold_url=os.environ.get("LABVIZ_ALPHAFOLD_URL", "https://alphafold.ebi.ac.uk/files"),
        alphafold_version=os.environ.get("LABVIZ_ALPHAFOLD_VERSION", "v4"),
        http_timeout=float(os.environ.get("LABVIZ_HTTP_TIMEOUT", "30")),
        http_retries=int(os.environ.get("LABVIZ_HTTP_RETRIES", "3")),
        cache_backend=os.environ.get("LABVIZ_CACHE_BACKEND", "none"),
        cache_root=os.environ.get("LABVIZ_CACHE_ROOT", "/data/labviz/cache"),
        cache_prefix=os.environ.get("LABVIZ_CACHE_PREFIX", "structures/"),
        minio_endpoint=os.environ.get("MINIO_ENDPOINT", "localhost"),
        minio_port=int(os.environ.get("MINIO_PORT", "9000")),
        minio_access_key=os.environ.get("MINIO_ACCESS_KEY", ""),
        minio_secret_key=os.environ.get("MINIO_SECRET_KEY", ""),
        minio_bucket=os.environ.get("MINIO_BUCKET", "labviz-structures"),
        minio_region=os.environ.get("MINIO_REGION", "us-east-1"),
        minio_secure=os.environ.get("MINIO_SECURE", "false").lower() in ("true", "1", "yes"),
    )
