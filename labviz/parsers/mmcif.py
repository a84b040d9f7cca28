"""mmCIF reader.

Parses the first ``data_`` block into categories: single ``_cat.item value``
lines become one dict per category, ``loop_`` tables become a list of row
dicts. Category and item names are lower-cased; unquoted ``.`` and ``?``
become None. Atoms come from the ``atom_site`` loop (first model only).

Rows that cannot be tokenized (unterminated quote) or that are left
incomplete when a loop ends are skipped and counted, never fatal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from labviz.core.logging_utils import get_logger
from labviz.parsers.base import (
    AtomRecord,
    Connection,
    HeaderInfo,
    MolecularStructure,
    ParseStats,
    SecondaryRange,
    StructureParser,
    infer_element,
    normalize_element,
)
from labviz.parsers.builder import build_structure
from labviz.parsers.columns import parse_charge, to_float, to_int
from labviz.parsers.detect import StructureFormat

logger = get_logger(__name__)

_BOND_ORDERS = {"sing": 1, "doub": 2, "trip": 3, "arom": 4}


class UnterminatedQuoteError(ValueError):
    pass


# ======================================================================
# Tokenizer
# ======================================================================

def tokenize_line(line: str) -> list[Optional[str]]:
    """Split one line into values.

    A quote opens a value only at the start of a token and closes only
    when followed by whitespace or end of line, so ``'N'-oxide'`` style
    apostrophes survive.
    """
    tokens: list[Optional[str]] = []
    i, n = 0, len(line)
    while i < n:
        ch = line[i]
        if ch.isspace():
            i += 1
            continue
        if ch == "#":
            break
        if ch in ("'", '"'):
            j = i + 1
            while True:
                j = line.find(ch, j)
                if j == -1:
                    raise UnterminatedQuoteError(line)
                if j + 1 == n or line[j + 1].isspace():
                    break
                j += 1
            tokens.append(line[i + 1:j])
            i = j + 1
            continue
        j = i
        while j < n and not line[j].isspace():
            j += 1
        tok = line[i:j]
        tokens.append(None if tok in (".", "?") else tok)
        i = j
    return tokens


def _split_tag(tag: str) -> tuple[str, str]:
    tag = tag.lstrip("_").lower()
    category, _, item = tag.partition(".")
    return category, item


# ======================================================================
# Block reader
# ======================================================================

@dataclass
class CIFData:
    """First data block of an mmCIF file."""

    name: Optional[str] = None
    categories: dict[str, Any] = field(default_factory=dict)
    skipped_rows: int = 0
    ignored_lines: int = 0

    def set_value(self, tag: str, value: Optional[str]) -> None:
        category, item = _split_tag(tag)
        record = self.categories.get(category)
        if not isinstance(record, dict):
            record = {}
            self.categories[category] = record
        record[item] = value

    def rows(self, category: str) -> list[dict[str, Optional[str]]]:
        record = self.categories.get(category)
        if record is None:
            return []
        if isinstance(record, dict):
            return [record]
        return record

    def first(self, category: str, item: str) -> Optional[str]:
        for row in self.rows(category):
            value = row.get(item)
            if value is not None:
                return value
        return None


class _Loop:
    def __init__(self) -> None:
        self.category: Optional[str] = None
        self.columns: list[str] = []
        self.rows: list[dict[str, Optional[str]]] = []
        self.pending: list[Optional[str]] = []
        self.started = False

    def add_column(self, tag: str) -> None:
        category, item = _split_tag(tag)
        if self.category is None:
            self.category = category
        self.columns.append(item)

    def feed(self, tokens: list[Optional[str]]) -> None:
        self.started = True
        self.pending.extend(tokens)
        width = len(self.columns)
        while len(self.pending) >= width:
            self.rows.append(dict(zip(self.columns, self.pending[:width])))
            self.pending = self.pending[width:]


def _close_loop(data: CIFData, loop: Optional[_Loop]) -> None:
    if loop is None or loop.category is None:
        return
    if loop.pending:
        logger.debug("Dropping incomplete %s row: %r", loop.category, loop.pending)
        data.skipped_rows += 1
    existing = data.categories.get(loop.category)
    if isinstance(existing, list):
        existing.extend(loop.rows)
    else:
        data.categories[loop.category] = loop.rows


def read_cif_blocks(text: str) -> CIFData:
    """Read the first data block into categories."""
    data = CIFData()
    lines = text.splitlines()
    loop: Optional[_Loop] = None
    pending_tag: Optional[str] = None
    i, n = 0, len(lines)

    while i < n:
        line = lines[i]
        i += 1

        if line.startswith(";"):
            parts = [line[1:]]
            while i < n and not lines[i].startswith(";"):
                parts.append(lines[i])
                i += 1
            i += 1
            value = "\n".join(parts).strip()
            if loop is not None and loop.columns:
                loop.feed([value])
            elif pending_tag is not None:
                data.set_value(pending_tag, value)
                pending_tag = None
            continue

        stripped = line.strip()
        if not stripped:
            _close_loop(data, loop)
            loop = None
            continue
        if stripped.startswith("#"):
            if loop is not None and loop.started:
                _close_loop(data, loop)
                loop = None
            continue
        if stripped.startswith("data_"):
            if data.name is not None:
                break
            data.name = stripped[5:].strip() or None
            continue
        if stripped.startswith("loop_"):
            _close_loop(data, loop)
            loop = _Loop()
            continue
        if stripped.startswith("_"):
            if loop is not None and not loop.started:
                loop.add_column(stripped.split()[0])
                continue
            _close_loop(data, loop)
            loop = None
            try:
                tokens = tokenize_line(stripped)
            except UnterminatedQuoteError:
                data.skipped_rows += 1
                continue
            tag = tokens[0] or stripped.split()[0]
            if len(tokens) > 1:
                data.set_value(tag, tokens[1])
                pending_tag = None
            else:
                pending_tag = tag
            continue

        try:
            tokens = tokenize_line(stripped)
        except UnterminatedQuoteError:
            logger.debug("Skipping row with unterminated quote: %r", stripped)
            data.skipped_rows += 1
            if loop is not None:
                loop.pending.clear()
            continue
        if loop is not None and loop.columns:
            loop.feed(tokens)
        elif pending_tag is not None and tokens:
            data.set_value(pending_tag, tokens[0])
            pending_tag = None
        else:
            data.ignored_lines += 1

    _close_loop(data, loop)
    return data


# ======================================================================
# Category -> records
# ======================================================================

def _pick(row: dict[str, Optional[str]], *items: str) -> Optional[str]:
    for item in items:
        value = row.get(item)
        if value is not None:
            return value
    return None


def atom_records(data: CIFData) -> tuple[list[AtomRecord], int, int]:
    """Atom records from ``atom_site`` rows.

    Returns (records, skipped, ignored): rows without three finite
    coordinates or an element are skipped; rows of later models ignored.
    """
    records: list[AtomRecord] = []
    skipped = ignored = 0
    first_model: Optional[str] = None

    for row in data.rows("atom_site"):
        model = row.get("pdbx_pdb_model_num")
        if model is not None:
            if first_model is None:
                first_model = model
            elif model != first_model:
                ignored += 1
                continue

        x = to_float(row.get("cartn_x"))
        y = to_float(row.get("cartn_y"))
        z = to_float(row.get("cartn_z"))
        if x is None or y is None or z is None:
            logger.debug("Skipping atom_site row with bad coordinates: %r", row)
            skipped += 1
            continue

        name = _pick(row, "auth_atom_id", "label_atom_id")
        residue_name = _pick(row, "auth_comp_id", "label_comp_id")
        element = normalize_element(row.get("type_symbol") or "")
        if not element:
            element = normalize_element(infer_element(name or "", residue_name))
        if not element:
            skipped += 1
            continue

        records.append(AtomRecord(
            x=x,
            y=y,
            z=z,
            element=element,
            name=name,
            serial=to_int(row.get("id")),
            residue_name=residue_name,
            chain_id=_pick(row, "auth_asym_id", "label_asym_id"),
            residue_seq=to_int(_pick(row, "auth_seq_id", "label_seq_id")),
            ins_code=row.get("pdbx_pdb_ins_code"),
            alt_loc=row.get("label_alt_id"),
            occupancy=to_float(row.get("occupancy")),
            b_factor=to_float(row.get("b_iso_or_equiv")),
            charge=parse_charge(row.get("pdbx_formal_charge")),
            is_hetero=(row.get("group_pdb") or "").upper() == "HETATM",
        ))
    return records, skipped, ignored


def header_info(data: CIFData) -> HeaderInfo:
    g = data.first
    resolution = (
        to_float(g("refine", "ls_d_res_high"))
        or to_float(g("reflns", "d_resolution_high"))
        or to_float(g("em_3d_reconstruction", "resolution"))
    )

    organisms: list[str] = []
    for category, item in (
        ("entity_src_gen", "pdbx_gene_src_scientific_name"),
        ("entity_src_nat", "pdbx_organism_scientific"),
        ("pdbx_entity_src_syn", "organism_scientific"),
    ):
        for row in data.rows(category):
            name = row.get(item)
            if name and name not in organisms:
                organisms.append(name)

    extra: dict[str, Any] = {}
    if data.name:
        extra["data_block"] = data.name

    return HeaderInfo(
        id=g("entry", "id") or data.name,
        title=g("struct", "title"),
        resolution=resolution,
        experiment_method=g("exptl", "method"),
        deposition_date=g("pdbx_database_status", "recvd_initial_deposition_date"),
        authors=[row["name"] for row in data.rows("audit_author") if row.get("name")],
        organisms=organisms,
        keywords=g("struct_keywords", "pdbx_keywords") or g("struct_keywords", "text"),
        extra=extra,
    )


def secondary_ranges(data: CIFData) -> list[SecondaryRange]:
    ranges: list[SecondaryRange] = []
    sources = [("struct_conf", None), ("struct_sheet_range", "sheet")]
    for category, fixed_kind in sources:
        for row in data.rows(category):
            kind = fixed_kind
            if kind is None:
                conf = (row.get("conf_type_id") or "").upper()
                if conf.startswith("HELX"):
                    kind = "helix"
                elif conf.startswith("STRN"):
                    kind = "sheet"
                else:
                    continue
            chain = _pick(row, "beg_auth_asym_id", "beg_label_asym_id")
            start = to_int(_pick(row, "beg_auth_seq_id", "beg_label_seq_id"))
            end = to_int(_pick(row, "end_auth_seq_id", "end_label_seq_id"))
            if chain is None or start is None or end is None:
                continue
            ranges.append(SecondaryRange(kind, chain, start, end))
    return ranges


def _partner_key(row: dict[str, Optional[str]], p: str) -> tuple:
    return (
        _pick(row, f"{p}_auth_asym_id", f"{p}_label_asym_id"),
        to_int(_pick(row, f"{p}_auth_seq_id", f"{p}_label_seq_id")),
        row.get(f"pdbx_{p}_pdb_ins_code") or "",
        row.get(f"{p}_label_atom_id"),
    )


def connections(data: CIFData) -> list[Connection]:
    """Covalent and disulfide links from ``struct_conn``."""
    out: list[Connection] = []
    for row in data.rows("struct_conn"):
        conn_type = (row.get("conn_type_id") or "").lower()
        if not (conn_type.startswith("covale") or conn_type == "disulf"):
            continue
        order_text = (row.get("pdbx_value_order") or "sing").lower()
        out.append(Connection(
            _partner_key(row, "ptnr1"),
            _partner_key(row, "ptnr2"),
            _BOND_ORDERS.get(order_text, 0),
        ))
    return out


def cif_atom_key(record: AtomRecord) -> tuple:
    return (record.chain_id, record.residue_seq, record.ins_code or "", record.name)


def parse_cif_text(text: str) -> MolecularStructure:
    """Read mmCIF text and build the normalized structure."""
    data = read_cif_blocks(text)
    records, skipped, ignored = atom_records(data)
    stats = ParseStats(
        format=StructureFormat.TAG.value,
        skipped_atoms=skipped,
        skipped_rows=data.skipped_rows,
        ignored_lines=data.ignored_lines + ignored,
    )
    return build_structure(
        records,
        header_info(data),
        stats=stats,
        secondary=secondary_ranges(data),
        connections=connections(data),
        atom_key=cif_atom_key,
    )


class CIFParser(StructureParser):
    """Parse mmCIF files (.cif, .cif.gz, .mmcif)."""

    format_name = StructureFormat.TAG.value

    def parse_text(self, text: str) -> MolecularStructure:
        return parse_cif_text(text)

    @staticmethod
    def extensions() -> list[str]:
        return [".cif", ".cif.gz", ".mmcif"]
