"""Tests for StructureCache over LocalStorage."""

from pathlib import Path

import pytest

from labviz.config import LabvizSettings
from labviz.core.cache import StructureCache, cache_from_settings
from labviz.core.storage import LocalStorage
from labviz.parsers.dataset import load_structure

FIXTURES = Path(__file__).resolve().parent / "fixtures"


@pytest.fixture
def cache(tmp_path: Path) -> StructureCache:
    return StructureCache(LocalStorage(root=tmp_path), prefix="structures")


def test_keys_are_stable():
    assert StructureCache.key_for_text("abc") == StructureCache.key_for_text("abc")
    assert StructureCache.key_for_text("abc") != StructureCache.key_for_text("abd")
    assert StructureCache.key_for_text("abc").startswith("sha256-")
    assert StructureCache.key_for_id(" p69905 ") == StructureCache.key_for_id("P69905")


def test_put_get(cache: StructureCache, tmp_path: Path):
    s = load_structure(FIXTURES / "sample.pdb")
    cache.put("k1", s)
    assert (tmp_path / "structures" / "k1.json").is_file()
    assert "k1" in cache
    assert "k2" not in cache
    assert cache.get("k1") == s
    assert cache.get("k2") is None
    assert list(cache.keys()) == ["k1"]


def test_unreadable_entry_is_a_miss(cache: StructureCache):
    cache.storage.put_bytes("structures/bad.json", b"{not json")
    assert cache.get("bad") is None


def test_get_or_parse(cache: StructureCache):
    text = (FIXTURES / "sample.cif").read_text()
    first, hit1 = cache.get_or_parse(text, filename="sample.cif")
    second, hit2 = cache.get_or_parse(text, filename="sample.cif")
    assert (hit1, hit2) == (False, True)
    assert first == second


def test_cache_from_settings(tmp_path: Path):
    assert cache_from_settings(LabvizSettings(cache_backend="none")) is None
    local = cache_from_settings(LabvizSettings(cache_backend="local", cache_root=str(tmp_path)))
    assert isinstance(local.storage, LocalStorage)
    assert local.prefix == "structures/"


def test_s3_requires_credentials():
    with pytest.raises(ValueError, match="MINIO_ACCESS_KEY"):
        cache_from_settings(LabvizSettings(cache_backend="s3"))
