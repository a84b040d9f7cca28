"""Structure cache keyed by content or identifier hash.

Sits in front of the parser; the parser itself never reads or writes it.
Entries are the JSON form of ``MolecularStructure.to_dict``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from labviz.config import LabvizSettings, load_settings
from labviz.core.storage import LocalStorage, S3Storage, Storage
from labviz.parsers.base import MolecularStructure
from labviz.parsers.dataset import parse_structure

logger = logging.getLogger(__name__)


class StructureCache:
    """get/put of parsed structures in a Storage backend."""

    def __init__(self, storage: Storage, prefix: str = "structures/") -> None:
        self.storage = storage
        self.prefix = prefix if not prefix or prefix.endswith("/") else prefix + "/"

    @staticmethod
    def key_for_text(text: str) -> str:
        return "sha256-" + hashlib.sha256(text.encode("utf-8")).hexdigest()

    @staticmethod
    def key_for_id(identifier: str) -> str:
        return "id-" + hashlib.sha256(identifier.strip().upper().encode("utf-8")).hexdigest()[:32]

    def _object_key(self, key: str) -> str:
        return f"{self.prefix}{key}.json"

    def get(self, key: str) -> Optional[MolecularStructure]:
        raw = self.storage.get_bytes(self._object_key(key))
        if raw is None:
            return None
        try:
            return MolecularStructure.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cache entry %s: %s", key, e)
            return None

    def put(self, key: str, structure: MolecularStructure) -> None:
        body = json.dumps(structure.to_dict(), separators=(",", ":")).encode("utf-8")
        self.storage.put_bytes(self._object_key(key), body)

    def __contains__(self, key: str) -> bool:
        return self.storage.head(self._object_key(key)) is not None

    def keys(self) -> Iterable[str]:
        for obj in self.storage.list_prefix(self.prefix):
            name = obj[len(self.prefix):] if obj.startswith(self.prefix) else obj
            if name.endswith(".json"):
                yield name[: -len(".json")]

    def get_or_parse(self, text: str, filename: Optional[str] = None) -> tuple[MolecularStructure, bool]:
        """Return (structure, was_cached); parse and store on a miss."""
        key = self.key_for_text(text)
        cached = self.get(key)
        if cached is not None:
            return cached, True
        structure = parse_structure(text, filename=filename)
        self.put(key, structure)
        return structure, False


def cache_from_settings(settings: Optional[LabvizSettings] = None) -> Optional[StructureCache]:
    """Build the configured cache, or None when LABVIZ_CACHE_BACKEND=none."""
    s = settings or load_settings()
    if s.cache_backend == "local":
        return StructureCache(LocalStorage(root=Path(s.cache_root)), prefix=s.cache_prefix)
    if s.cache_backend == "s3":
        if not (s.minio_access_key and s.minio_secret_key):
            raise ValueError("S3 cache requires MINIO_ACCESS_KEY and MINIO_SECRET_KEY.")
        storage = S3Storage(
            bucket=s.minio_bucket,
            endpoint_url=s.s3_endpoint_url,
            access_key=s.minio_access_key,
            secret_key=s.minio_secret_key,
            region=s.minio_region,
        )
        return StructureCache(storage, prefix=s.cache_prefix)
    return None
