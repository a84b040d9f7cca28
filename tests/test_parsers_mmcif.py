"""Tests for the mmCIF tokenizer, block reader and atom_site mapping."""

from pathlib import Path

import pytest

from labviz.parsers.mmcif import (
    CIFParser,
    UnterminatedQuoteError,
    atom_records,
    connections,
    header_info,
    parse_cif_text,
    read_cif_blocks,
    secondary_ranges,
    tokenize_line,
)

FIXTURES = Path(__file__).resolve().parent / "fixtures"

ATOM_SITE_HEADER = """data_TEST
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.type_symbol
_atom_site.label_atom_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_seq_id
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
"""


@pytest.fixture(scope="module")
def sample_text():
    return (FIXTURES / "sample.cif").read_text()


@pytest.fixture(scope="module")
def sample():
    return CIFParser().parse(FIXTURES / "sample.cif")


class TestTokenizer:
    def test_plain_and_null_tokens(self):
        assert tokenize_line("ATOM 1 C . ? 1.0") == ["ATOM", "1", "C", None, None, "1.0"]

    def test_quoted_values(self):
        assert tokenize_line("'X-RAY DIFFRACTION' 1") == ["X-RAY DIFFRACTION", "1"]
        assert tokenize_line('"O\'Brien, K." 2') == ["O'Brien, K.", "2"]

    def test_quoted_dot_is_a_value(self):
        assert tokenize_line("'.' '?'") == [".", "?"]

    def test_embedded_quote_does_not_close(self):
        assert tokenize_line("'N'-oxide' x") == ["N'-oxide", "x"]

    def test_comment_ends_line(self):
        assert tokenize_line("a b # trailing") == ["a", "b"]

    def test_unterminated_quote(self):
        with pytest.raises(UnterminatedQuoteError):
            tokenize_line("'never closed")
        assert issubclass(UnterminatedQuoteError, ValueError)


class TestBlockReader:
    def test_single_values_and_loops(self, sample_text):
        assert not hasattr(read_cif_blocks(sample_text), "atoms")
        data = read_cif_blocks(sample_text)
        assert data.name == "1ABC"
        assert data.first("entry", "id") == "1ABC"
        assert data.first("exptl", "method") == "X-RAY DIFFRACTION"
        assert len(data.rows("audit_author")) == 2
        assert len(data.rows("atom_site")) == 11
        assert data.rows("missing") == []

    def test_names_are_lowercased(self, sample_text):
        data = read_cif_blocks(sample_text)
        row = data.rows("atom_site")[0]
        assert "cartn_x" in row
        assert "group_pdb" in row

    def test_text_field(self, sample_text):
        data = read_cif_blocks(sample_text)
        assert data.first("struct_keywords", "text") == "METAL BINDING PROTEIN, ZINC FINGER"

    def test_only_first_block(self):
        text = "data_A\n_entry.id A\ndata_B\n_entry.id B\n"
        data = read_cif_blocks(text)
        assert data.name == "A"
        assert data.first("entry", "id") == "A"

    def test_row_split_across_lines(self):
        text = "data_X\nloop_\n_t.a\n_t.b\n_t.c\n1 2\n3\n4 5 6\n"
        data = read_cif_blocks(text)
        assert data.rows("t") == [{"a": "1", "b": "2", "c": "3"}, {"a": "4", "b": "5", "c": "6"}]

    def test_incomplete_row_counted(self):
        text = "data_X\nloop_\n_t.a\n_t.b\n1 2\n3\n#\n"
        data = read_cif_blocks(text)
        assert len(data.rows("t")) == 1
        assert data.skipped_rows == 1

    def test_unterminated_quote_row_counted(self):
        text = "data_X\nloop_\n_t.a\n_t.b\n1 2\n'bad 3\n4 5\n"
        data = read_cif_blocks(text)
        assert data.rows("t") == [{"a": "1", "b": "2"}, {"a": "4", "b": "5"}]
        assert data.skipped_rows == 1


class TestCategoryMapping:
    def test_atom_records_first_model(self, sample_text):
        records, skipped, ignored = atom_records(read_cif_blocks(sample_text))
        assert len(records) == 10
        assert skipped == 0
        assert ignored == 1
        zn = records[-1]
        assert zn.element == "Zn"
        assert zn.residue_seq == 101
        assert zn.chain_id == "A"
        assert zn.charge == 2
        assert zn.is_hetero is True

    def test_auth_fields_win(self, sample_text):
        records, _, _ = atom_records(read_cif_blocks(sample_text))
        assert records[0].name == "N"
        assert records[0].chain_id == "A"
        assert records[0].residue_name == "ALA"
        assert records[0].ins_code is None

    def test_header_info(self, sample_text):
        h = header_info(read_cif_blocks(sample_text))
        assert h.id == "1ABC"
        assert h.title == "Zinc bound test peptide dimer"
        assert h.experiment_method == "X-RAY DIFFRACTION"
        assert h.resolution == pytest.approx(2.10)
        assert h.deposition_date == "2001-05-04"
        assert h.authors == ["Smith, J.", "O'Brien, K."]
        assert h.organisms == ["Homo sapiens"]
        assert h.keywords == "METAL BINDING PROTEIN"
        assert h.extra == {"data_block": "1ABC"}

    def test_secondary_ranges(self, sample_text):
        ranges = secondary_ranges(read_cif_blocks(sample_text))
        assert [(r.kind, r.chain_id, r.start, r.end) for r in ranges] == [("helix", "A", 1, 2)]

    def test_connections_skip_metal(self, sample_text):
        conns = connections(read_cif_blocks(sample_text))
        assert len(conns) == 1
        assert conns[0].a == ("A", 2, "", "SG")
        assert conns[0].b == ("B", 2, "", "SG")
        assert conns[0].order == 1


class TestSampleStructure:
    def test_counts(self, sample):
        assert sample.num_atoms == 10
        assert sample.metadata.atom_count == 10
        assert sample.num_residues == 4
        assert sample.chain_ids == ["A", "B"]
        assert sample.stats.format == "mmcif"
        assert sample.stats.ignored_lines == 1

    def test_atom_order_follows_rows(self, sample_text, sample):
        rows = read_cif_blocks(sample_text).rows("atom_site")[:10]
        assert [a.serial for a in sample.atoms] == [int(r["id"]) for r in rows]
        assert sample.atoms[0].coords == (10.0, 10.0, 10.0)

    def test_chains(self, sample):
        a = sample.get_chain("A")
        b = sample.get_chain("B")
        assert a.atom_indices == (0, 1, 2, 3, 4, 5, 6, 9)
        assert b.atom_indices == (7, 8)
        assert a.residue_indices == (0, 1, 3)
        assert b.residue_indices == (2,)

    def test_secondary_structure(self, sample):
        ss = {(r.chain_id, r.id): r.secondary_structure for r in sample.residues}
        assert ss == {("A", 1): "helix", ("A", 2): "helix", ("B", 2): "coil", ("A", 101): "coil"}

    def test_disulfide_bond(self, sample):
        assert [(b.atom1, b.atom2, b.order) for b in sample.bonds] == [(6, 8, 1)]

    def test_metadata(self, sample):
        m = sample.metadata
        assert m.id == "1ABC"
        assert m.pdb_id == "1ABC"
        assert m.chains == ("A", "B")
        assert m.authors == ("Smith, J.", "O'Brien, K.")

    def test_sequences(self, sample):
        assert sample.sequences == {"A": "AC", "B": "C"}


class TestMalformedRows:
    def test_non_numeric_coordinate_skipped(self):
        text = ATOM_SITE_HEADER + (
            "ATOM 1 C CA ALA A 1 1.0 2.0 3.0\n"
            "ATOM 2 C CB ALA A 1 abc 2.0 3.0\n"
            "ATOM 3 O O  ALA A 1 4.0 5.0 6.0\n"
        )
        s = parse_cif_text(text)
        assert s.num_atoms == 2
        assert s.stats.skipped_atoms == 1
        assert [a.serial for a in s.atoms] == [1, 3]

    def test_missing_element_inferred(self):
        text = ATOM_SITE_HEADER + "ATOM 1 ? CA ALA A 1 1.0 2.0 3.0\n"
        s = parse_cif_text(text)
        assert s.atoms[0].element == "C"

    def test_unknown_bond_order_dropped(self):
        text = ATOM_SITE_HEADER + (
            "ATOM 1 C C1 LIG A 1 0.0 0.0 0.0\n"
            "ATOM 2 C C2 LIG A 1 1.5 0.0 0.0\n"
            "#\n"
            "loop_\n"
            "_struct_conn.conn_type_id\n"
            "_struct_conn.ptnr1_label_asym_id\n"
            "_struct_conn.ptnr1_label_seq_id\n"
            "_struct_conn.ptnr1_label_atom_id\n"
            "_struct_conn.ptnr2_label_asym_id\n"
            "_struct_conn.ptnr2_label_seq_id\n"
            "_struct_conn.ptnr2_label_atom_id\n"
            "_struct_conn.pdbx_value_order\n"
            "covale A 1 C1 A 1 C2 quad\n"
            "covale A 1 C1 A 1 C2 doub\n"
        )
        s = parse_cif_text(text)
        assert [(b.atom1, b.atom2, b.order) for b in s.bonds] == [(0, 1, 2)]
        assert s.stats.skipped_bonds == 1


def test_extensions():
    assert CIFParser.extensions() == [".cif", ".cif.gz", ".mmcif"]
