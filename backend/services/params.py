"""
Request parameter parsing for delimiter-separated id and position lists.
"""
import re
from typing import Optional, Set
from services.logger import log_warning

# Sentinel position/id used by the frontend for "unknown"
NO_VALUE = -1

_SEPARATOR = re.compile(r"[\s,]+")


def _tokens(values: str):
    return [value for value in _SEPARATOR.split(values.strip()) if value]


def parse_string_values(values: Optional[str]) -> Optional[Set[str]]:
    """
    Split a whitespace/comma separated list into a set of strings.

    Returns:
        None if the input is absent or blank, otherwise the set of tokens
    """
    if values is None or not values.strip():
        return None
    return set(_tokens(values))


def parse_int_values(values: Optional[str]) -> Optional[Set[int]]:
    """
    Split a whitespace/comma separated list into a set of integers.

    Tokens that are not integers are dropped with a warning, and -1 is
    always dropped: "5, 7,,abc,-1" -> {5, 7}.

    Returns:
        None if the input is absent or blank, otherwise the set of integers
    """
    if values is None or not values.strip():
        return None

    result = set()
    for value in _tokens(values):
        try:
            number = int(value)
        except ValueError:
            log_warning("param_parse", f"Dropping non-integer value '{value}'", stage="params")
            continue

        if number != NO_VALUE:
            result.add(number)

    return result
