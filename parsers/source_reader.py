"""
Raw row reader for vendor exports.

Reads CSV files and spreadsheet worksheets into plain rows of text with
no header interpretation: one vendor file can hold several sections,
each with its own header row, so header detection happens later in the
section detector.

    .csv  → one SourceUnit named after the file
    .xlsx → one SourceUnit per worksheet (openpyxl)
    .xls  → one SourceUnit per worksheet (xlrd)
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union
import structlog

import pandas as pd

from config import settings
from exceptions import SourceReadError, UnsupportedFileTypeError
from utils.text_utils import clean_cell

logger = structlog.get_logger(__name__)

EXCEL_ENGINES = {
    ".xlsx": "openpyxl",
    ".xls": "xlrd",
}
SUPPORTED_EXTENSIONS = (".csv",) + tuple(EXCEL_ENGINES)


@dataclass
class SourceUnit:
    """
    Rows of one CSV file or one worksheet.

    Row numbers reported to users are 1-based (index + 1).
    """
    name: str
    rows: list[list[str]] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def numbered_rows(self) -> Iterator[tuple[int, list[str]]]:
        for index, row in enumerate(self.rows):
            yield index + 1, row


def source_kind(path: Union[str, Path]) -> str:
    """
    Lower-cased extension of a supported source file.

    Raises:
        UnsupportedFileTypeError: For anything but .csv/.xls/.xlsx
    """
    extension = Path(path).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(str(path), extension)
    return extension


# ===================
# CSV
# ===================

def read_csv_unit(path: Union[str, Path], encoding: Optional[str] = None) -> SourceUnit:
    """
    Read a CSV file as ragged text rows.

    Blank lines are kept so that row numbers match the file. Every cell is
    text; empty cells are "".

    Raises:
        SourceReadError: If no encoding can decode the file
    """
    path = Path(path)
    encodings_to_try = list(dict.fromkeys([encoding or settings.csv_encoding, "utf-8", "cp1252", "latin-1"]))

    last_error: Optional[Exception] = None
    for enc in encodings_to_try:
        try:
            width = _csv_width(path, enc)
            if width == 0:
                return SourceUnit(name=path.name, rows=[])
            df = pd.read_csv(
                path,
                header=None,
                names=list(range(width)),
                dtype=str,
                encoding=enc,
                keep_default_na=False,
                skip_blank_lines=False,
            )
            logger.debug("csv_loaded", path=str(path), encoding=enc, rows=len(df), columns=width)
            return SourceUnit(name=path.name, rows=_frame_rows(df))
        except (UnicodeDecodeError, pd.errors.ParserError) as e:
            last_error = e
            continue
        except pd.errors.EmptyDataError:
            return SourceUnit(name=path.name, rows=[])

    logger.error("csv_read_failed", path=str(path), error=str(last_error))
    raise SourceReadError(
        message=f"Failed to read CSV file: {path.name}",
        details={"path": str(path), "original_error": str(last_error)}
    )


def _csv_width(path: Path, encoding: str) -> int:
    # Upper bound on columns per row; quoted commas only overcount
    width = 0
    with open(path, "r", encoding=encoding, newline="") as f:
        for line in f:
            if line.strip():
                width = max(width, line.count(",") + 1)
    return width


# ===================
# WORKBOOKS
# ===================

class WorkbookReader:
    """
    Scoped access to a workbook's worksheets.

    Use as a context manager so the file handle is closed on every path:

        with WorkbookReader(path) as workbook:
            for name in workbook.sheet_names:
                unit = workbook.read_sheet(name)
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        extension = source_kind(self.path)
        if extension not in EXCEL_ENGINES:
            raise UnsupportedFileTypeError(str(self.path), extension)
        self.engine = EXCEL_ENGINES[extension]
        self._excel: Optional[pd.ExcelFile] = None

    def __enter__(self) -> "WorkbookReader":
        try:
            self._excel = pd.ExcelFile(self.path, engine=self.engine)
        except Exception as e:
            logger.error("workbook_read_failed", path=str(self.path), error=str(e))
            raise SourceReadError(
                message=f"Failed to read workbook: {self.path.name}",
                details={"path": str(self.path), "original_error": str(e)}
            )
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._excel is not None:
            self._excel.close()
            self._excel = None

    @property
    def sheet_names(self) -> list[str]:
        if self._excel is None:
            raise RuntimeError("WorkbookReader used outside of a with-block")
        return [str(name) for name in self._excel.sheet_names]

    def read_sheet(self, sheet_name: str) -> SourceUnit:
        """
        Read one worksheet as text rows.

        Raises:
            SourceReadError: If the sheet cannot be parsed
        """
        if self._excel is None:
            raise RuntimeError("WorkbookReader used outside of a with-block")
        try:
            df = self._excel.parse(sheet_name, header=None, dtype=str, keep_default_na=False)
        except Exception as e:
            raise SourceReadError(
                message=f"Failed to read sheet '{sheet_name}'",
                details={"sheet": sheet_name, "original_error": str(e)}
            )
        return SourceUnit(name=sheet_name, rows=_frame_rows(df))


def read_source_units(path: Union[str, Path]) -> list[SourceUnit]:
    """Read every unit of a source file (one for CSV, one per worksheet otherwise)."""
    if source_kind(path) == ".csv":
        return [read_csv_unit(path)]
    with WorkbookReader(path) as workbook:
        return [workbook.read_sheet(name) for name in workbook.sheet_names]


def _frame_rows(df: pd.DataFrame) -> list[list[str]]:
    return [[clean_cell(value) for value in row] for row in df.itertuples(index=False, name=None)]
