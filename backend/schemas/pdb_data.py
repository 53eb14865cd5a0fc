"""
Pydantic models for PDB/UniProt alignments, residue mappings and PDB header info.
"""
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

# A compound/source field is either a scalar string or, for "chain" and
# "gene", an ordered token list.
FieldValue = Union[List[str], str]
MoleculeRecord = Dict[str, FieldValue]


class Alignment(BaseModel):
    """One UniProt -> PDB chain alignment row"""
    model_config = ConfigDict(frozen=True)

    alignment_id: int
    pdb_id: str
    chain: str
    uniprot_id: str
    pdb_from: int
    pdb_to: int
    uniprot_from: int
    uniprot_to: int
    e_value: Optional[float] = None
    identity_perc: Optional[float] = None
    uniprot_align: str = ""
    pdb_align: str = ""
    midline_align: str = ""

    def to_json(self, alignment_string: str) -> dict:
        """Listing object with the field names the frontend expects."""
        return {
            "alignmentId": self.alignment_id,
            "pdbId": self.pdb_id,
            "chain": self.chain,
            "uniprotId": self.uniprot_id,
            "pdbFrom": self.pdb_from,
            "pdbTo": self.pdb_to,
            "uniprotFrom": self.uniprot_from,
            "uniprotTo": self.uniprot_to,
            "eValue": self.e_value,
            "identityPerc": self.identity_perc,
            "alignmentString": alignment_string,
        }


class ResidueMapping(BaseModel):
    """UniProt position -> PDB position (+ insertion code) within one alignment"""
    model_config = ConfigDict(frozen=True)

    alignment_id: int
    uniprot_pos: int
    pdb_pos: int
    insertion: str = ""

    def to_json(self) -> dict:
        return {"pdbPos": self.pdb_pos, "insertion": self.insertion}


class StructureInfo(BaseModel):
    """Normalized PDB header info: title, compound and source records keyed by mol_id"""
    model_config = ConfigDict(json_schema_extra={
        "example": {
            "title": "CRYSTAL STRUCTURE OF HUMAN P53 CORE DOMAIN",
            "compound": {"1": {"mol_id": "1", "molecule": "CELLULAR TUMOR ANTIGEN P53", "chain": ["A", "B"]}},
            "source": {"1": {"mol_id": "1", "organism_scientific": "HOMO SAPIENS", "gene": ["TP53"]}},
        }
    })

    title: str = ""
    compound: Dict[str, MoleculeRecord] = Field(default_factory=dict)
    source: Dict[str, MoleculeRecord] = Field(default_factory=dict)
