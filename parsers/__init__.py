"""
Source file readers.
"""

from parsers.source_reader import (
    SourceUnit,
    WorkbookReader,
    read_csv_unit,
    read_source_units,
    source_kind,
    SUPPORTED_EXTENSIONS,
)

__all__ = [
    "SourceUnit",
    "WorkbookReader",
    "read_csv_unit",
    "read_source_units",
    "source_kind",
    "SUPPORTED_EXTENSIONS",
]
