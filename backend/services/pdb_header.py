"""
PDB header parsing.

Turns the TITLE / COMPND / SOURCE records of a PDB header into a title string
and per-molecule field mappings.

PDB records are fixed-column: record name in columns 1-6, continuation number
in columns 7-10 (right-justified, blank on the first line), text from column 11.
"""
import re
from typing import Dict, Optional
from schemas.pdb_data import FieldValue, MoleculeRecord

HEADER_RECORDS = ("title", "compnd", "source")

# Fields whose values are comma separated token lists
LIST_FIELDS = ("chain", "gene")

RECORD_NAME_WIDTH = 6
TEXT_COLUMN = 10

_LIST_SEPARATOR = re.compile(r"[\s,]+")


def _strip_record_prefix(line: str, identifier: str, count: int) -> str:
    """
    Remove the record name and continuation number from a header line.

    Column-aligned lines are cut at the text column. Anything else is read
    token-wise: the record name is dropped, then the continuation number if it
    is the very next token and equals the occurrence count.
    """
    continuation = line[RECORD_NAME_WIDTH:TEXT_COLUMN]
    if (line[:RECORD_NAME_WIDTH].strip().lower() == identifier
            and (continuation.strip() == "" or continuation.strip().isdigit())
            and continuation[:1].isspace()):
        return line[TEXT_COLUMN:].strip()

    rest = line.strip()[len(identifier):].strip()
    if count > 1:
        parts = rest.split(None, 1)
        if parts and parts[0] == str(count):
            rest = parts[1] if len(parts) > 1 else ""
    return rest.strip()


def split_records(raw: str) -> Dict[str, str]:
    """
    Group raw header lines by record name.

    Args:
        raw: Header text, one record line per line

    Returns:
        Mapping of lower-cased record name -> newline-joined record text
    """
    counts: Dict[str, int] = {}
    buffers: Dict[str, list] = {}

    for line in raw.splitlines():
        tokens = line.split()
        if not tokens:
            continue

        identifier = tokens[0].lower()
        counts[identifier] = counts.get(identifier, 0) + 1

        text = _strip_record_prefix(line, identifier, counts[identifier])
        buffers.setdefault(identifier, []).append(text)

    return {identifier: "\n".join(lines).strip() for identifier, lines in buffers.items()}


def _store_field(content: Dict[str, MoleculeRecord], mol: Optional[MoleculeRecord], record: str) -> Optional[MoleculeRecord]:
    """Store one "field: value;" record, returning the (possibly new) current molecule."""
    if ":" not in record:
        return mol

    field, _, value = record.partition(":")
    field = field.strip().lower()
    value = value.strip()
    if value.endswith(";"):
        value = value[:-1].strip()

    parsed: FieldValue = value
    if field == "mol_id":
        mol = {}
        content[value] = mol
    elif field in LIST_FIELDS:
        parsed = [token for token in _LIST_SEPARATOR.split(value) if token]

    # fields before the first mol_id have no molecule to go to
    if mol is not None:
        mol[field] = parsed

    return mol


def parse_compound(block: Optional[str]) -> Dict[str, MoleculeRecord]:
    """
    Parse a COMPND or SOURCE block into molecule records.

    A record may span several lines and ends with a semicolon, e.g.

        MOL_ID: 1;
        MOLECULE: CELLULAR TUMOR ANTIGEN
        P53;
        CHAIN: A, B;

    gives {"1": {"mol_id": "1", "molecule": "CELLULAR TUMOR ANTIGEN P53", "chain": ["A", "B"]}}.
    """
    content: Dict[str, MoleculeRecord] = {}
    if not block:
        return content

    mol: Optional[MoleculeRecord] = None
    buffer = []

    for line in block.split("\n"):
        buffer.append(line)

        if line.strip().endswith(";"):
            mol = _store_field(content, mol, " ".join(buffer))
            buffer = []

    # the last record of a block is usually not terminated
    if "".join(buffer).strip():
        _store_field(content, mol, " ".join(buffer))

    return content


def parse_title(block: Optional[str]) -> str:
    """Join wrapped title lines; a line ending in a hyphen joins the next without a space."""
    if not block:
        return ""

    parts = []
    for line in block.split("\n"):
        parts.append(line)
        if not line.endswith("-"):
            parts.append(" ")

    return "".join(parts).strip()
