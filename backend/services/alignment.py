"""
Alignment visualization and UniProt -> PDB position mapping.
"""
from typing import Dict, Iterable

from schemas.pdb_data import Alignment, ResidueMapping
from services.logger import log_debug

GAP = "-"
# Returned when the three alignment tracks disagree in length
NOT_AVAILABLE = "NA"


def alignment_string(alignment: Alignment) -> str:
    """
    Compact per-residue view of an alignment, one character per UniProt residue.

    Columns with a gap in the UniProt track are skipped, columns with a gap in
    the PDB track become "-", everything else takes the midline character.
    """
    uniprot = alignment.uniprot_align
    pdb = alignment.pdb_align
    midline = alignment.midline_align

    if not (len(midline) == len(uniprot) == len(pdb)):
        return NOT_AVAILABLE

    chars = []
    for uniprot_char, pdb_char, midline_char in zip(uniprot, pdb, midline):
        if uniprot_char == GAP:
            continue
        chars.append(GAP if pdb_char == GAP else midline_char)

    return "".join(chars)


def merge_position_maps(store, alignment_ids: Iterable[int], positions: Iterable[int]) -> Dict[int, ResidueMapping]:
    """
    UniProt position -> ResidueMapping across several alignments.

    Alignments are processed in ascending id order; when two alignments map the
    same position the higher alignment id wins.
    """
    positions = set(positions)
    position_map: Dict[int, ResidueMapping] = {}

    for alignment_id in sorted(set(alignment_ids)):
        mappings = store.map_positions(alignment_id, positions)

        overlap = position_map.keys() & mappings.keys()
        if overlap:
            log_debug("position_map_overwrite",
                      f"Alignment {alignment_id} overrides {len(overlap)} positions",
                      stage="persistence", alignment_id=alignment_id, positions=sorted(overlap))

        position_map.update(mappings)

    return position_map
