"""
Section & signature detector.

Walks the rows of one source unit (a CSV file or a worksheet), finds the
header rows that open each section, and decides which declared record
type a section holds.

Header row: at least two cells equal (trimmed, case-insensitive) a
ColumnHeader declared anywhere in the mapping. The first non-blank row of
a unit needs only one match.

Type selection for a header row:
    1. Score each top-level type (no "." in its name):
       overlap = declared headers present / declared headers of the type
    2. Drop types below the overlap threshold (default 30%)
    3. Sort by match count desc, then overlap desc; take the top type
    4. Activate it only if its Id header is present in the row

Several device types share most of their vocabulary (AC/DC, Status,
Base kV), so raw overlap alone is not enough; the identifier header
decides.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Sequence
import structlog

from config import settings
from models.mapping import AnyMappingConfiguration, AnyMappingEntry, first_entry_per_property
from models.records import RecordType, find_record_type
from parsers.source_reader import SourceUnit
from services.import_log import ImportLog, MemoryImportLog
from services.row_populator import PopulateResult, RowPopulator
from utils.text_utils import header_key, is_blank, is_blank_row

logger = structlog.get_logger(__name__)

CATEGORY = "detect"
MIN_HEADER_MATCHES = 2
MIN_FIRST_ROW_HEADER_MATCHES = 1


class DetectorState(str, Enum):
    SCANNING_FOR_HEADER = "ScanningForHeader"
    IN_KNOWN_SECTION = "InKnownSection"
    IN_UNKNOWN_SECTION = "InUnknownSection"


@dataclass(frozen=True)
class TypeScore:
    """How well a header row matches one declared record type."""
    type_name: str
    match_count: int
    declared_count: int
    has_identifier: bool

    @property
    def overlap(self) -> float:
        if self.declared_count == 0:
            return 0.0
        return self.match_count / self.declared_count


@dataclass
class SectionInfo:
    """A detected header row and what it activated."""
    unit_name: str
    row_number: int
    headers: list[str]
    header_index: dict[str, int]
    candidates: list[TypeScore] = field(default_factory=list)
    active_type: Optional[str] = None
    missing_headers: list[str] = field(default_factory=list)
    missing_required: list[str] = field(default_factory=list)
    record_rows: int = 0


@dataclass
class DetectedRecord:
    """One record produced from one data row."""
    type_name: str
    record_type: RecordType
    row_number: int
    unit_name: str
    result: PopulateResult

    @property
    def record(self):
        return self.result.record


@dataclass
class _TypeSignature:
    record_type: RecordType
    entries: list
    header_keys: frozenset
    identifier_entry: Optional[AnyMappingEntry]


class SectionDetector:
    """
    State machine over the rows of source units.

    Header state resets for every unit and every header row; accumulated
    diagnostics (observed headers, sections) persist across units so one
    detector can serve a whole multi-sheet import.
    """

    def __init__(
        self,
        mapping_config: AnyMappingConfiguration,
        populator: Optional[RowPopulator] = None,
        log: Optional[ImportLog] = None,
        overlap_threshold: Optional[float] = None,
    ):
        self.log = log or MemoryImportLog(verbose_enabled=False)
        self.populator = populator or RowPopulator(self.log)
        self.overlap_threshold = (
            settings.header_overlap_threshold if overlap_threshold is None else overlap_threshold
        )
        self.declared_headers = mapping_config.declared_headers()
        self.signatures = self._build_signatures(mapping_config)

        self.state = DetectorState.SCANNING_FOR_HEADER
        self.observed_headers: set[str] = set()
        self.sections: list[SectionInfo] = []

    def _build_signatures(self, mapping_config: AnyMappingConfiguration) -> dict[str, _TypeSignature]:
        signatures = {}
        for type_name, entries in mapping_config.entries_by_type().items():
            # Nested groups ("Parent.Child") never open a section on their own
            if "." in type_name:
                continue
            record_type = find_record_type(type_name)
            if record_type is None:
                self.log.error(CATEGORY, f"Mapping targets unknown record type '{type_name}'; entries ignored")
                continue
            entries = first_entry_per_property(entries)
            identifier = next(
                (e for e in entries if e.property_name == record_type.identifier_property),
                None,
            )
            signatures[type_name] = _TypeSignature(
                record_type=record_type,
                entries=entries,
                header_keys=frozenset(header_key(e.column_header) for e in entries if not is_blank(e.column_header)),
                identifier_entry=identifier,
            )
        return signatures

    # ===================
    # CLASSIFICATION
    # ===================

    def count_header_matches(self, row: Sequence[str]) -> int:
        return sum(1 for cell in row if header_key(cell) in self.declared_headers)

    def is_header_row(self, row: Sequence[str], first_non_blank: bool = False) -> bool:
        """True if the row looks like a header row for some declared type."""
        needed = MIN_FIRST_ROW_HEADER_MATCHES if first_non_blank else MIN_HEADER_MATCHES
        return self.count_header_matches(row) >= needed

    @staticmethod
    def build_header_index(row: Sequence[str]) -> dict[str, int]:
        """Lower-cased header → column index; first occurrence wins, blanks skipped."""
        index: dict[str, int] = {}
        for column, cell in enumerate(row):
            key = header_key(cell)
            if key and key not in index:
                index[key] = column
        return index

    def score_types(self, header_index: dict[str, int]) -> list[TypeScore]:
        """
        Candidate types for a header row, best first.

        Types below the overlap threshold are dropped.
        """
        candidates = []
        for type_name, signature in self.signatures.items():
            if not signature.header_keys:
                continue
            present = sum(1 for key in signature.header_keys if key in header_index)
            identifier = signature.identifier_entry
            score = TypeScore(
                type_name=type_name,
                match_count=present,
                declared_count=len(signature.header_keys),
                has_identifier=(
                    identifier is not None and header_key(identifier.column_header) in header_index
                ),
            )
            if score.overlap < self.overlap_threshold:
                continue
            candidates.append(score)
        candidates.sort(key=lambda s: (-s.match_count, -s.overlap))
        return candidates

    def select_type(self, candidates: list[TypeScore]) -> Optional[str]:
        """The top candidate, if its identifier header is present."""
        if not candidates:
            return None
        best = candidates[0]
        return best.type_name if best.has_identifier else None

    # ===================
    # SCANNING
    # ===================

    def scan(self, unit: SourceUnit) -> Iterator[DetectedRecord]:
        """
        Yield a record for every data row of every known section in the unit.

        Rows with a blank identifier are skipped. A failure while building a
        row's record is logged and the row is skipped.
        """
        self.state = DetectorState.SCANNING_FOR_HEADER
        section: Optional[SectionInfo] = None
        seen_non_blank = False

        for row_number, row in unit.numbered_rows():
            if is_blank_row(row):
                continue

            first_non_blank = not seen_non_blank
            seen_non_blank = True

            if self.is_header_row(row, first_non_blank):
                section = self._open_section(unit.name, row_number, row)
                continue

            if self.state != DetectorState.IN_KNOWN_SECTION or section is None:
                continue

            detected = self._populate_row(section, unit.name, row_number, row)
            if detected is not None:
                section.record_rows += 1
                yield detected

    def _open_section(self, unit_name: str, row_number: int, row: Sequence[str]) -> SectionInfo:
        headers = [cell.strip() for cell in row]
        header_index = self.build_header_index(row)
        self.observed_headers.update(header_index)

        candidates = self.score_types(header_index)
        active = self.select_type(candidates)
        section = SectionInfo(
            unit_name=unit_name,
            row_number=row_number,
            headers=[h for h in headers if h],
            header_index=header_index,
            candidates=candidates,
            active_type=active,
        )
        self.sections.append(section)

        if active is None:
            self.state = DetectorState.IN_UNKNOWN_SECTION
            self._report_unknown_section(section)
            return section

        self.state = DetectorState.IN_KNOWN_SECTION
        signature = self.signatures[active]
        for entry in signature.entries:
            if header_key(entry.column_header) in header_index:
                continue
            section.missing_headers.append(entry.column_header)
            if entry.is_required_error:
                section.missing_required.append(entry.column_header)
                self.log.error(
                    CATEGORY,
                    f"Required header missing: {entry.column_header} for {entry.target_type}.{entry.property_name}",
                    {"unit": unit_name, "row": row_number},
                )
            else:
                self.log.verbose(
                    CATEGORY,
                    f"Header missing: {entry.column_header} for {entry.target_type}.{entry.property_name}"
                    f" ({entry.severity.value})",
                    {"unit": unit_name, "row": row_number},
                )

        best = candidates[0]
        self.log.verbose(
            CATEGORY,
            f"Activated {active} section at {unit_name} row {row_number} "
            f"({best.match_count}/{best.declared_count} headers, {best.overlap:.0%})",
            {"headers": section.headers},
        )
        return section

    def _report_unknown_section(self, section: SectionInfo) -> None:
        if section.candidates:
            best = section.candidates[0]
            self.log.info(
                CATEGORY,
                f"Header row at {section.unit_name} row {section.row_number} resembles {best.type_name} "
                f"({best.overlap:.0%} overlap) but its identifier header is missing; section skipped",
                {"headers": section.headers},
            )
        else:
            self.log.verbose(
                CATEGORY,
                f"Header row at {section.unit_name} row {section.row_number} matches no mapped type; section skipped",
                {"headers": section.headers},
            )

    def _populate_row(
        self,
        section: SectionInfo,
        unit_name: str,
        row_number: int,
        row: Sequence[str],
    ) -> Optional[DetectedRecord]:
        signature = self.signatures[section.active_type]
        id_column = section.header_index[header_key(signature.identifier_entry.column_header)]
        id_value = row[id_column] if id_column < len(row) else ""
        if is_blank(id_value):
            return None

        try:
            result = self.populator.populate(
                signature.record_type,
                signature.entries,
                row,
                section.header_index,
                row_number=row_number,
                unit_name=unit_name,
            )
        except Exception as e:
            self.log.error(
                CATEGORY,
                f"Exception processing {section.active_type} at {unit_name} row {row_number}: {e}",
            )
            logger.exception("row_failed", unit=unit_name, row=row_number)
            return None

        return DetectedRecord(
            type_name=signature.record_type.name,
            record_type=signature.record_type,
            row_number=row_number,
            unit_name=unit_name,
            result=result,
        )

    # ===================
    # DIAGNOSTICS
    # ===================

    @property
    def section_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for section in self.sections:
            if section.active_type:
                counts[section.active_type] = counts.get(section.active_type, 0) + 1
        return counts

    def missing_required_headers(self, entries: Sequence[AnyMappingEntry]) -> list[str]:
        """Required+Error headers never seen in any header row so far."""
        missing: dict[str, str] = {}
        for entry in entries:
            if not entry.is_required_error or is_blank(entry.column_header):
                continue
            key = header_key(entry.column_header)
            if key not in self.observed_headers and key not in missing:
                missing[key] = entry.column_header
        return sorted(missing.values(), key=str.lower)
