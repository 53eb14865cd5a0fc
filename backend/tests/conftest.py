"""
Shared fixtures: a seeded SQLite residue store, a PDB header fixture and an
httpx client backed by a MockTransport.
"""
import os
import sys

import httpx
import pandas as pd
import pytest

# Add backend directory to path to import server modules
backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, backend_dir)

from services.cache import FileTextCache  # noqa: E402
from services.pdb_fetcher import StructureInfoFetcher  # noqa: E402
from services.residue_store import SqliteResidueStore  # noqa: E402

BASE_URL = "https://pdb.example.org/header"

# Column-aligned PDB header lines mixed with records the parser must ignore
HEADER_1TUP = """\
HEADER    ANTITUMOR PROTEIN/DNA                   11-JUL-95   1TUP
TITLE     TUMOR SUPPRESSOR P53 COMPLEXED WITH DNA: CRYSTAL STRUCTURE AT 2-
TITLE    2 ANGSTROM RESOLUTION
COMPND    MOL_ID: 1;
COMPND   2 MOLECULE: DNA 21-MER;
COMPND   3 CHAIN: E, F;
COMPND   4 ENGINEERED: YES;
COMPND   5 MOL_ID: 2;
COMPND   6 MOLECULE: CELLULAR TUMOR ANTIGEN
COMPND   7 P53;
COMPND   8 CHAIN: A, B, C;
COMPND   9 FRAGMENT: CORE DOMAIN;
COMPND  10 ENGINEERED: YES
SOURCE    MOL_ID: 1;
SOURCE   2 SYNTHETIC: YES;
SOURCE   3 MOL_ID: 2;
SOURCE   4 ORGANISM_SCIENTIFIC: HOMO SAPIENS;
SOURCE   5 ORGANISM_COMMON: HUMAN;
SOURCE   6 GENE: TP53, P53;
SOURCE   7 EXPRESSION_SYSTEM: ESCHERICHIA COLI
KEYWDS    ANTITUMOR PROTEIN, DNA-BINDING
AUTHOR    Y.CHO,S.GORINA,P.D.JEFFREY,N.P.PAVLETICH
REMARK   2 RESOLUTION.    2.20 ANGSTROMS.
"""

ALIGNMENT_ROWS = [
    {
        "alignment_id": 1, "pdb_id": "1tup", "chain": "A", "uniprot_id": "P04637",
        "pdb_from": 94, "pdb_to": 98, "uniprot_from": 94, "uniprot_to": 97,
        "evalue": 1e-50, "identity": 4.0, "identp": 100.0,
        "uniprot_align": "MK-LV", "pdb_align": "MKQ-V", "midline_align": "MK  V",
    },
    {
        "alignment_id": 2, "pdb_id": "2ocj", "chain": "B", "uniprot_id": "P04637",
        "pdb_from": 195, "pdb_to": 197, "uniprot_from": 95, "uniprot_to": 97,
        "evalue": 2e-30, "identity": 3.0, "identp": 99.5,
        "uniprot_align": "ABC", "pdb_align": "ABCD", "midline_align": "ABC",
    },
    {
        "alignment_id": 3, "pdb_id": "3kmd", "chain": "A", "uniprot_id": "P38398",
        "pdb_from": 1, "pdb_to": 3, "uniprot_from": 1, "uniprot_to": 3,
        "evalue": 0.001, "identity": 3.0, "identp": 100.0,
        "uniprot_align": "MDL", "pdb_align": "MDL", "midline_align": "MDL",
    },
]

MAPPING_ROWS = [
    {"alignment_id": 1, "pdb_position": 94, "pdb_insertion_code": None, "uniprot_position": 94, "match": "M"},
    {"alignment_id": 1, "pdb_position": 95, "pdb_insertion_code": None, "uniprot_position": 95, "match": "K"},
    {"alignment_id": 1, "pdb_position": 96, "pdb_insertion_code": "A", "uniprot_position": 96, "match": "L"},
    {"alignment_id": 2, "pdb_position": 195, "pdb_insertion_code": None, "uniprot_position": 95, "match": "A"},
    {"alignment_id": 2, "pdb_position": 197, "pdb_insertion_code": None, "uniprot_position": 97, "match": "C"},
    {"alignment_id": 3, "pdb_position": 1, "pdb_insertion_code": None, "uniprot_position": 1, "match": "M"},
]


@pytest.fixture
def store(tmp_path):
    """SQLite residue store seeded with three alignments."""
    residue_store = SqliteResidueStore(tmp_path / "pdb_uniprot.db")
    residue_store.import_frames(pd.DataFrame(ALIGNMENT_ROWS), pd.DataFrame(MAPPING_ROWS))
    return residue_store


@pytest.fixture
def cache(tmp_path):
    return FileTextCache(tmp_path / "cache")


class HeaderService:
    """Stand-in for the remote PDB file service; records every requested path."""

    def __init__(self, headers=None):
        self.headers = dict(headers or {"1TUP": HEADER_1TUP})
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        name = request.url.path.rsplit("/", 1)[-1]
        pdb_id = name[:-len(".pdb")] if name.endswith(".pdb") else name
        if pdb_id not in self.headers:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(200, text=self.headers[pdb_id])


@pytest.fixture
def header_service():
    return HeaderService()


@pytest.fixture
def fetcher(cache, header_service):
    client = httpx.Client(transport=httpx.MockTransport(header_service))
    yield StructureInfoFetcher(BASE_URL, cache, retries=1, backoff=0, client=client)
    client.close()
