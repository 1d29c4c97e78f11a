"""
Row populator: builds one typed record from one data row.

For every mapping entry of the active record type:
    - header absent → recorded as missing; required+Error entries are also
      recorded as missing-required; otherwise DefaultValue (if any) is used
    - header present → the cell is coerced to the field's kind and set

Coercion never raises. A value that cannot be coerced leaves the field
unset, and a failure inside one field never aborts the rest of the row.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence
import structlog

from models.mapping import AnyMappingEntry, MappingSeverity
from models.records import FieldKind, FieldSpec, RecordType
from services.import_log import ImportLog, MemoryImportLog
from utils.text_utils import header_key, is_blank

logger = structlog.get_logger(__name__)

CATEGORY = "populate"

# Vendor exports spell booleans many ways; "adjustable"/"fixed" come from trip units
TRUE_TOKENS = frozenset({"true", "t", "yes", "y", "1", "x", "adjustable", "adj"})
FALSE_TOKENS = frozenset({"false", "f", "no", "n", "0", "fixed"})


@dataclass
class PopulateResult:
    """A populated record plus what was missing for it."""
    record: Any
    missing_headers: list[str] = field(default_factory=list)
    missing_required: list[str] = field(default_factory=list)
    field_errors: int = 0


# ===================
# COERCION
# ===================

def coerce_boolean(raw: Optional[str]) -> bool:
    """
    Tolerant boolean parsing.

    "Yes", "x", "ADJUSTABLE" → True
    "", "No", "Fixed", "maybe" → False (unknown tokens are False)
    """
    if is_blank(raw):
        return False
    token = raw.strip().lower()
    if token in TRUE_TOKENS:
        return True
    return False


def is_known_boolean_token(raw: Optional[str]) -> bool:
    if is_blank(raw):
        return True
    token = raw.strip().lower()
    return token in TRUE_TOKENS or token in FALSE_TOKENS


def coerce_enum(raw: Optional[str], enum_type: type) -> Optional[Enum]:
    """Case-insensitive match on member value or name; None if nothing matches."""
    if is_blank(raw):
        return None
    token = raw.strip().lower()
    for member in enum_type:
        if str(member.value).lower() == token or member.name.lower() == token:
            return member
    return None


def coerce_float(raw: Optional[str]) -> Optional[float]:
    """Parse a real number; None for blanks, garbage, NaN and infinities."""
    if is_blank(raw):
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def coerce_int(raw: Optional[str]) -> Optional[int]:
    """Parse an integer; accepts whole-number reals such as "3.0"."""
    if is_blank(raw):
        return None
    text = raw.strip()
    try:
        return int(text)
    except ValueError:
        pass
    value = coerce_float(text)
    if value is None or not value.is_integer():
        return None
    return int(value)


def coerce_value(spec: FieldSpec, raw: Optional[str]) -> Any:
    """Convert raw cell text to the field's kind."""
    if spec.kind == FieldKind.TEXT:
        return raw
    if spec.kind == FieldKind.BOOLEAN:
        return coerce_boolean(raw)
    if spec.kind == FieldKind.ENUM:
        return coerce_enum(raw, spec.value_type)
    if spec.kind == FieldKind.INTEGER:
        return coerce_int(raw)
    if spec.kind == FieldKind.REAL:
        return coerce_float(raw)
    # Unrecognized kinds are stored as text
    return raw


def uses_default_when_missing(entry: AnyMappingEntry) -> bool:
    """
    Whether an absent column falls back to the entry's DefaultValue.

    Required+Error entries never do; every other combination does.
    """
    severity = entry.severity
    if severity == MappingSeverity.ERROR:
        return not entry.required
    elif severity == MappingSeverity.WARNING:
        return True
    elif severity == MappingSeverity.INFO:
        return True
    raise ValueError(f"Unhandled mapping severity: {severity}")


# ===================
# POPULATOR
# ===================

class RowPopulator:
    """
    Builds records from rows. One instance serves one import run.

    Unknown property names are logged once per (type, property).
    """

    def __init__(self, log: Optional[ImportLog] = None):
        self.log = log or MemoryImportLog(verbose_enabled=False)
        self._reported_unknown: set[tuple[str, str]] = set()

    def populate(
        self,
        record_type: RecordType,
        entries: Sequence[AnyMappingEntry],
        row: Sequence[str],
        header_index: dict[str, int],
        row_number: int = 0,
        unit_name: str = "",
    ) -> PopulateResult:
        """
        Populate one record of record_type from a data row.

        Args:
            record_type: Active record type for the section
            entries: Mapping entries whose target type is record_type
            row: Cell texts of the data row
            header_index: Lower-cased header text → column index
            row_number: 1-based row number (for diagnostics)
            unit_name: File or sheet name (for diagnostics)

        Returns:
            PopulateResult with the record and missing header lists
        """
        record = record_type.new_record()
        result = PopulateResult(record=record)

        for entry in entries:
            spec = record_type.setter_for(entry.property_name)
            if spec is None:
                self._report_unknown_property(record_type.name, entry.property_name)
                continue

            column = header_index.get(header_key(entry.column_header))
            if column is None:
                result.missing_headers.append(entry.column_header)
                if entry.is_required_error:
                    result.missing_required.append(entry.column_header)
                elif entry.default_value is not None and uses_default_when_missing(entry):
                    self._assign(result, spec, entry.default_value, row_number, unit_name, entry.column_header)
                continue

            raw = row[column] if column < len(row) else None
            self._assign(result, spec, raw, row_number, unit_name, entry.column_header)

        return result

    def _assign(
        self,
        result: PopulateResult,
        spec: FieldSpec,
        raw: Optional[str],
        row_number: int,
        unit_name: str,
        column_header: str,
    ) -> None:
        try:
            if spec.kind == FieldKind.BOOLEAN and not is_known_boolean_token(raw):
                self.log.verbose(
                    CATEGORY,
                    f"Unrecognized boolean '{raw}' for {spec.property_name} at row {row_number}; using False",
                    {"unit": unit_name, "column": column_header},
                )
            spec.setter(result.record, coerce_value(spec, raw))
        except Exception as e:
            result.field_errors += 1
            self.log.error(
                CATEGORY,
                f"Failed to set {spec.property_name} at row {row_number}, column '{column_header}': {e}",
                {"unit": unit_name, "row": row_number, "column": column_header, "value": raw},
            )

    def _report_unknown_property(self, type_name: str, property_name: str) -> None:
        marker = (type_name, property_name)
        if marker in self._reported_unknown:
            return
        self._reported_unknown.add(marker)
        self.log.error(CATEGORY, f"{type_name} has no property '{property_name}'; mapping entry ignored")
        logger.warning("unknown_property", record_type=type_name, property=property_name)
