"""
PDB data query service.

A query is answered in one of four modes, picked by which parameters are present:
1) {positions, alignments} : uniprotPos -> pdbPos mapping
2) {pdbIds}                : basic info for the given PDB ids
3) {uniprotId, type=summary}: number of alignments for the UniProt id
4) {uniprotId}             : list of PDB alignments for the UniProt id
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from services.alignment import alignment_string, merge_position_maps
from services.logger import log_info
from services.params import parse_int_values, parse_string_values
from services.pdb_fetcher import StructureInfoFetcher
from services.residue_store import ResidueStore

SUMMARY_TYPE = "summary"


class QueryMode(str, Enum):
    """PDB data query modes"""
    POSITION_MAP = "position_map"
    PDB_INFO = "pdb_info"
    SUMMARY = "summary"
    ALIGNMENTS = "alignments"


class MissingParameterError(ValueError):
    """A query mode was selected without the parameter it needs"""


@dataclass
class PdbDataQuery:
    """Parsed query parameters; empty sets are normalized to None"""
    uniprot_id: Optional[str] = None
    type: Optional[str] = None
    positions: Optional[Set[int]] = None
    alignments: Optional[Set[int]] = None
    pdb_ids: Optional[Set[str]] = None

    def __post_init__(self):
        if self.uniprot_id is not None:
            self.uniprot_id = self.uniprot_id.strip() or None
        self.positions = self.positions or None
        self.alignments = self.alignments or None
        self.pdb_ids = self.pdb_ids or None

    @classmethod
    def from_params(
        cls,
        uniprot_id: Optional[str] = None,
        type: Optional[str] = None,
        positions: Optional[str] = None,
        alignments: Optional[str] = None,
        pdb_ids: Optional[str] = None,
    ) -> "PdbDataQuery":
        """Build a query from raw request parameters."""
        return cls(
            uniprot_id=uniprot_id,
            type=type,
            positions=parse_int_values(positions),
            alignments=parse_int_values(alignments),
            pdb_ids=parse_string_values(pdb_ids),
        )

    @property
    def mode(self) -> QueryMode:
        if self.positions and self.alignments:
            return QueryMode.POSITION_MAP
        if self.pdb_ids:
            return QueryMode.PDB_INFO
        if self.type == SUMMARY_TYPE:
            return QueryMode.SUMMARY
        return QueryMode.ALIGNMENTS


class PdbDataService:
    """Answers PDB data queries from the residue store and the PDB info fetcher"""

    def __init__(self, store: ResidueStore, fetcher: StructureInfoFetcher):
        self.store = store
        self.fetcher = fetcher

    def handle(self, query: PdbDataQuery) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """
        Dispatch a query to the matching mode.

        Raises:
            MissingParameterError: summary/alignment modes without a UniProt id
            PersistenceError: the residue store failed
        """
        mode = query.mode
        log_info("dispatch", f"PDB data query in {mode.value} mode", stage="dispatch", mode=mode.value)

        if mode == QueryMode.POSITION_MAP:
            return self.get_position_map(query.alignments, query.positions)
        if mode == QueryMode.PDB_INFO:
            return self.get_pdb_info(query.pdb_ids)

        if not query.uniprot_id:
            raise MissingParameterError("uniprotId is required")

        if mode == QueryMode.SUMMARY:
            return self.get_alignment_summary(query.uniprot_id)
        return self.get_alignment_array(query.uniprot_id)

    def get_position_map(self, alignments: Set[int], positions: Set[int]) -> Dict[str, Any]:
        position_map = merge_position_maps(self.store, alignments, positions)
        return {
            "positionMap": {
                str(position): mapping.to_json()
                for position, mapping in sorted(position_map.items())
            }
        }

    def get_pdb_info(self, pdb_ids: Set[str]) -> Dict[str, Any]:
        infos = self.fetcher.get_info_batch(sorted(pdb_ids))
        return {
            pdb_id: info.model_dump() if info is not None else None
            for pdb_id, info in infos.items()
        }

    def get_alignment_summary(self, uniprot_id: str) -> Dict[str, int]:
        return {"alignmentCount": self.store.count_alignments(uniprot_id)}

    def get_alignment_array(self, uniprot_id: str) -> List[Dict[str, Any]]:
        return [
            alignment.to_json(alignment_string(alignment))
            for alignment in self.store.list_alignments(uniprot_id)
        ]
