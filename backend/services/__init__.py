# Services module
from .pdb_header import (
    split_records,
    parse_compound,
    parse_title,
)
from .alignment import alignment_string, merge_position_maps
from .params import parse_int_values, parse_string_values

__all__ = [
    'split_records',
    'parse_compound',
    'parse_title',
    'alignment_string',
    'merge_position_maps',
    'parse_int_values',
    'parse_string_values',
]
