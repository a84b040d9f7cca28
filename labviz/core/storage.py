from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Protocol, runtime_checkable


@runtime_checkable
class Storage(Protocol):
    """Minimal key/value blob storage behind the structure cache.

      - store and fetch bytes by key
      - check if key exists (head)
      - list a prefix
    """

    def put_bytes(self, key: str, data: bytes) -> None: ...
    def get_bytes(self, key: str) -> Optional[bytes]: ...
    def head(self, key: str) -> Optional[dict]: ...
    def list_prefix(self, prefix: str) -> Iterable[str]: ...


@dataclass(frozen=True)
class LocalStorage:
    """Local filesystem storage using a root directory."""

    root: Path

    def _resolve(self, key: str) -> Path:
        key = key.replace("..", "").lstrip("/")
        return Path(self.root) / key

    def put_bytes(self, key: str, data: bytes) -> None:
        dst = self._resolve(key)
        dst.parent.mkdir(parents=True, exist_ok=True)
        tmp = dst.with_name(dst.name + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(dst)

    def get_bytes(self, key: str) -> Optional[bytes]:
        p = self._resolve(key)
        if not p.is_file():
            return None
        return p.read_bytes()

    def head(self, key: str) -> Optional[dict]:
        p = self._resolve(key)
        if not p.is_file():
            return None
        return {"ContentLength": p.stat().st_size}

    def list_prefix(self, prefix: str) -> Iterable[str]:
        p = self._resolve(prefix)
        if not p.exists():
            return []
        return (
            str(f.relative_to(self.root)).replace("\\", "/")
            for f in sorted(p.rglob("*"))
            if f.is_file() and not f.name.endswith(".tmp")
        )


@dataclass
class S3Storage:
    """S3-compatible storage (MinIO, AWS S3) using boto3."""

    bucket: str
    endpoint_url: str
    access_key: str
    secret_key: str
    region: str = "us-east-1"

    def __post_init__(self) -> None:
        import boto3

        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
        )

    def put_bytes(self, key: str, data: bytes) -> None:
        self._client.put_object(Bucket=self.bucket, Key=key, Body=data)

    def get_bytes(self, key: str) -> Optional[bytes]:
        try:
            resp = self._client.get_object(Bucket=self.bucket, Key=key)
        except self._client.exceptions.NoSuchKey:
            return None
        return resp["Body"].read()

    def head(self, key: str) -> Optional[dict]:
        try:
            return self._client.head_object(Bucket=self.bucket, Key=key)
        except Exception:
            return None

    def list_prefix(self, prefix: str) -> Iterable[str]:
        token: Optional[str] = None
        while True:
            kwargs = {"Bucket": self.bucket, "Prefix": prefix}
            if token:
                kwargs["ContinuationToken"] = token
            resp = self._client.list_objects_v2(**kwargs)
            for obj in resp.get("Contents", []):
                yield obj["Key"]
            if not resp.get("IsTruncated"):
                break
            token = resp.get("NextContinuationToken")
