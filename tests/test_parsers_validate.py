"""Tests for the pre/post-parse Validator."""

import pytest

from labviz.parsers.base import MolecularStructure, ParseStats, StructureMetadata
from labviz.parsers.detect import StructureFormat
from labviz.parsers.errors import (
    ContentSafetyError,
    EmptyStructureError,
    FormatMismatchError,
    SizeLimitExceededError,
)
from labviz.parsers.validate import Validator


@pytest.fixture
def validator():
    return Validator(max_bytes=100)


class TestSize:
    def test_at_limit_passes(self, validator):
        validator.check_size("x" * 100)

    def test_over_limit_raises(self, validator):
        with pytest.raises(SizeLimitExceededError) as exc:
            validator.check_size("x" * 101)
        assert exc.value.size == 101
        assert exc.value.limit == 100
        assert exc.value.http_status == 413


class TestContent:
    @pytest.mark.parametrize(
        "payload",
        [
            "<script>alert(1)</script>",
            "<SCRIPT src=x>",
            "href=javascript:void(0)",
            '<img onerror="x">',
            "body onload = go()",
            "eval(atob('x'))",
            "ATOM\x00",
        ],
    )
    def test_suspicious_patterns(self, validator, payload):
        with pytest.raises(ContentSafetyError):
            validator.check_content("HEADER    TEST\n" + payload)

    def test_plain_structure_text_passes(self, validator):
        validator.check_content("REMARK   3 EVALUATION ONLY\nATOM      1  C   ALA A   1\n")

    def test_message_names_pattern(self, validator):
        with pytest.raises(ContentSafetyError, match="script tag"):
            validator.check_content("<script>")


class TestFormatMarker:
    def test_pdb_without_records(self, validator):
        with pytest.raises(FormatMismatchError):
            validator.check_format_marker("REMARK only\n", StructureFormat.LEGACY)

    def test_cif_without_data_block(self, validator):
        with pytest.raises(FormatMismatchError):
            validator.check_format_marker("_entry.id X\n", StructureFormat.TAG)

    def test_matching_markers(self, validator):
        validator.check_format_marker("HEADER    X\n", StructureFormat.LEGACY)
        validator.check_format_marker("data_X\n", StructureFormat.TAG)

    def test_no_expectation_skips(self, validator):
        validator.check_format_marker("anything", None)


def test_check_built_rejects_empty(validator):
    empty = MolecularStructure(
        atoms=(), bonds=(), residues=(), chains=(),
        metadata=StructureMetadata(atom_count=0, residue_count=0),
        stats=ParseStats(format="pdb"),
    )
    with pytest.raises(EmptyStructureError, match="No atoms found"):
        validator.check_built(empty)
