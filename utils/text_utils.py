"""
Text utilities for header and cell comparison.

Used by the section detector, the row populator and the fuzzy matcher.
"""

from typing import Any, Optional, Sequence


_CONDENSE_CHARS = (" ", "_", "-", "/")


def clean_cell(value: Any) -> str:
    """
    Convert a raw cell value to text.

    - None → ""
    - NaN (pandas empty cell) → ""
    - everything else → str(value), untrimmed

    Args:
        value: Raw cell from a CSV row or worksheet

    Returns:
        Cell text
    """
    if value is None:
        return ""
    # NaN is the only value not equal to itself
    if isinstance(value, float) and value != value:
        return ""
    return value if isinstance(value, str) else str(value)


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty or whitespace-only strings."""
    return value is None or not value.strip()


def is_blank_row(row: Sequence[str]) -> bool:
    """True if every cell of the row is empty or whitespace."""
    return all(is_blank(cell) for cell in row)


def header_key(text: Optional[str]) -> str:
    """
    Key used to compare header cells with declared column headers.

    - "  Base kV " → "base kv"
    - "BUSES" → "buses"
    """
    if not text:
        return ""
    return text.strip().lower()


def condense_name(text: str) -> str:
    """
    Remove separators and lower-case a name.

    - "LV Breakers" → "lvbreakers"
    - "Bus_Rating-A" → "busratinga"
    - "AC/DC" → "acdc"
    """
    for char in _CONDENSE_CHARS:
        text = text.replace(char, "")
    return text.lower()
