"""Tests for environment-driven settings and logging setup."""

import logging

from labviz.config import MAX_FILE_BYTES, LabvizSettings, load_settings
from labviz.core.logging_utils import get_logger


def test_defaults(monkeypatch):
    for var in ("LABVIZ_MAX_FILE_BYTES", "LABVIZ_CACHE_BACKEND", "MINIO_SECURE", "LABVIZ_HTTP_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)
    s = load_settings()
    assert s.max_file_bytes == MAX_FILE_BYTES == 50 * 1024 * 1024
    assert s.min_content_chars == 100
    assert s.cache_backend == "none"
    assert s.http_timeout == 30.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LABVIZ_MAX_FILE_BYTES", "1024")
    monkeypatch.setenv("LABVIZ_PARSE_WORKERS", "2")
    monkeypatch.setenv("LABVIZ_CACHE_BACKEND", "local")
    monkeypatch.setenv("MINIO_ENDPOINT", "minio.internal")
    monkeypatch.setenv("MINIO_PORT", "9443")
    monkeypatch.setenv("MINIO_SECURE", "true")
    s = load_settings()
    assert s.max_file_bytes == 1024
    assert s.parse_workers == 2
    assert s.cache_backend == "local"
    assert s.s3_endpoint_url == "https://minio.internal:9443"


def test_s3_endpoint_plain_http():
    assert LabvizSettings().s3_endpoint_url == "http://localhost:9000"


def test_get_logger_returns_named_logger():
    log = get_logger("labviz.test")
    assert isinstance(log, logging.Logger)
    assert log.name == "labviz.test"
    assert logging.getLogger().handlers
