"""labviz.parsers — PDB / mmCIF structure loader.

Architecture:
    - detect.py: format detection (legacy PDB vs mmCIF)
    - pdb_format.py: fixed-column PDB record reader
    - mmcif.py: tag/loop mmCIF block reader
    - builder.py: reader output -> MolecularStructure
    - validate.py: size, content-safety, format-marker, emptiness checks
    - dataset.py: parse_structure entrypoint, parser registry, StructureDataset
    - base.py: data model (Atom, Bond, Residue, Chain, StructureMetadata, ...)

Usage::

    from labviz.parsers import parse_structure

    structure = parse_structure(text, filename="upload.pdb")
    print(structure.metadata.atom_count, structure.chain_ids)
    payload = structure.to_dict()   # JSON for the viewer
"""

from labviz.parsers.base import (
    Atom,
    Bond,
    BondOrder,
    Chain,
    MolecularStructure,
    ParseStats,
    Residue,
    StructureMetadata,
    StructureParser,
)
from labviz.parsers.detect import StructureFormat, detect_format
from labviz.parsers.errors import (
    ContentSafetyError,
    EmptyStructureError,
    FormatMismatchError,
    InternalParseError,
    SizeLimitExceededError,
    StructureError,
    UnknownFormatError,
)
from labviz.parsers.mmcif import CIFParser, read_cif_blocks
from labviz.parsers.pdb_format import PDBFormatParser, read_pdb_records
from labviz.parsers.validate import Validator
from labviz.parsers.dataset import (
    StructureDataset,
    auto_parser,
    format_for_filename,
    load_structure,
    parse_structure,
    register_parser,
)

__all__ = [
    # Model
    "Atom",
    "Bond",
    "BondOrder",
    "Chain",
    "MolecularStructure",
    "ParseStats",
    "Residue",
    "StructureMetadata",
    "StructureParser",
    # Detection / readers
    "StructureFormat",
    "detect_format",
    "CIFParser",
    "read_cif_blocks",
    "PDBFormatParser",
    "read_pdb_records",
    "Validator",
    # Entrypoint
    "parse_structure",
    "load_structure",
    "StructureDataset",
    "auto_parser",
    "format_for_filename",
    "register_parser",
    # Errors
    "StructureError",
    "UnknownFormatError",
    "SizeLimitExceededError",
    "ContentSafetyError",
    "FormatMismatchError",
    "EmptyStructureError",
    "InternalParseError",
]
