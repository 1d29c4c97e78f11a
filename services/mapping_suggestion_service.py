"""
Mapping authoring assistance.

Helps a person write a mapping file for a new vendor export:
    - extract_columns: list the header cells of each CSV/worksheet
    - suggest_mappings: fuzzy-match a record type's fields to those headers
    - find_invalid_entries: entries that point at unknown types or fields

Nothing here runs during an import.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union
import structlog

from config import settings
from models.fuzzy import FuzzyMatchResult
from models.mapping import AnyMappingConfiguration, AnyMappingEntry, MappingEntry, MappingSeverity
from models.records import RecordType, find_record_type, get_record_type
from parsers.source_reader import read_source_units
from services.fuzzy_matcher import FuzzyMatcher, get_fuzzy_matcher
from services.section_detector import SectionDetector
from utils.text_utils import header_key, is_blank, is_blank_row

logger = structlog.get_logger(__name__)

# Identifier fields must not drift onto descriptor columns such as "Breaker Style"
DESCRIPTOR_KEYWORDS = ("style", "type", "category", "class", "kind", "mode")
EXPLICIT_ID_COLUMNS = ("id", "id name", "identifier", "uniqueid")
EXPLICIT_ID_SCORE = 0.95


class SuggestionStrategy(str, Enum):
    FUZZY = "fuzzy"
    FIRST_COLUMN = "first_column"
    EXPLICIT_ID = "explicit_id"


@dataclass(frozen=True)
class MappingSuggestion:
    """Proposed binding of one property to one source column."""
    property_name: str
    column_header: str
    score: float
    strategy: SuggestionStrategy


@dataclass
class SuggestionReport:
    """Outcome of auto-mapping one record type."""
    target_type: str
    mapped: list[MappingSuggestion] = field(default_factory=list)
    low_confidence: list[MappingSuggestion] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)

    def to_entries(self) -> list[MappingEntry]:
        """
        Accepted suggestions as mapping entries.

        Key properties become Required/Error entries; the rest are Info.
        """
        record_type = get_record_type(self.target_type)
        entries = []
        for suggestion in self.mapped:
            is_key = suggestion.property_name in record_type.key_properties
            entries.append(MappingEntry(
                target_type=record_type.name,
                property_name=suggestion.property_name,
                column_header=suggestion.column_header,
                required=is_key,
                severity=MappingSeverity.ERROR if is_key else MappingSeverity.INFO,
            ))
        return entries


@dataclass(frozen=True)
class InvalidMapping:
    """A mapping entry the importer will ignore."""
    entry: AnyMappingEntry
    reason: str


class MappingSuggestionService:
    """Column extraction and fuzzy auto-mapping for mapping authors."""

    def __init__(self, matcher: Optional[FuzzyMatcher] = None):
        self.matcher = matcher or get_fuzzy_matcher()

    # ===================
    # COLUMN EXTRACTION
    # ===================

    def extract_columns(
        self,
        source_path: Union[str, Path],
        mapping_config: Optional[AnyMappingConfiguration] = None,
    ) -> dict[str, list[str]]:
        """
        Header cells per unit (file name for CSV, sheet name otherwise).

        Without a mapping, the first non-blank row of each unit is taken as
        its header. With a mapping, every row the section detector would
        treat as a header row contributes, so repeated sections are covered.

        Returns:
            {unit name: distinct non-blank header texts, in column order}
        """
        detector = SectionDetector(mapping_config) if mapping_config is not None else None
        columns: dict[str, list[str]] = {}

        for unit in read_source_units(source_path):
            seen: dict[str, str] = {}
            first = True
            for _, row in unit.numbered_rows():
                if is_blank_row(row):
                    continue
                if detector is None:
                    is_header = first
                else:
                    is_header = detector.is_header_row(row, first_non_blank=first)
                first = False
                if not is_header:
                    if detector is None:
                        break
                    continue
                for cell in row:
                    if not is_blank(cell):
                        seen.setdefault(header_key(cell), cell.strip())
            columns[unit.name] = list(seen.values())

        logger.info(
            "columns_extracted",
            path=str(source_path),
            units=len(columns),
            columns=sum(len(c) for c in columns.values())
        )
        return columns

    # ===================
    # AUTO-MAP
    # ===================

    def suggest_mappings(
        self,
        target_type: str,
        source_headers: Sequence[str],
        existing: Optional[AnyMappingConfiguration] = None,
    ) -> SuggestionReport:
        """
        Propose column bindings for every unmapped field of a record type.

        Phase 1 fuzzy-matches each property name (and its description) to
        the unused headers. Identifier-like properties need a higher score
        when the column looks like a descriptor (style, type, ...).
        Phase 2 maps a still-unmapped Id to the first unused column, or to
        an explicit "ID" column.

        Raises:
            UnknownRecordTypeError: If target_type is not declared
        """
        record_type = get_record_type(target_type)
        report = SuggestionReport(target_type=record_type.name)

        already_mapped, used_headers = self._existing_bindings(record_type, existing)
        ordered_headers = [h.strip() for h in source_headers if not is_blank(h)]
        available = [h for h in dict.fromkeys(ordered_headers) if header_key(h) not in used_headers]

        for spec in record_type.fields.values():
            if spec.property_name in already_mapped:
                continue
            best = self._best_match(spec.property_name, spec.description, available)
            if best is None:
                report.unmatched.append(spec.property_name)
                continue

            threshold = settings.suggestion_threshold
            if self._is_identifier_like(record_type, spec.property_name) and _looks_like_descriptor(best.target):
                threshold = max(threshold, settings.suggestion_id_threshold)
                logger.debug("suggestion_descriptor_filter", property=spec.property_name, column=best.target)

            suggestion = MappingSuggestion(spec.property_name, best.target, best.score, SuggestionStrategy.FUZZY)
            if best.score >= threshold:
                report.mapped.append(suggestion)
                available.remove(best.target)
            else:
                report.low_confidence.append(suggestion)

        self._map_identifier_fallback(record_type, report, already_mapped, available)

        logger.info(
            "suggestions_built",
            record_type=record_type.name,
            mapped=len(report.mapped),
            low_confidence=len(report.low_confidence),
            unmatched=len(report.unmatched)
        )
        return report

    def _best_match(self, property_name: str, description: str, headers: list[str]) -> Optional[FuzzyMatchResult]:
        options = dict(max_results=1, min_score=settings.suggestion_min_score)
        matches = self.matcher.find_best_matches(property_name, headers, **options)
        if description and description != property_name:
            by_description = self.matcher.find_best_matches(description, headers, **options)
            if by_description and (not matches or by_description[0].score > matches[0].score):
                matches = by_description
        return matches[0] if matches else None

    def _map_identifier_fallback(
        self,
        record_type: RecordType,
        report: SuggestionReport,
        already_mapped: set[str],
        available: list[str],
    ) -> None:
        identifier = record_type.identifier_property
        mapped_properties = already_mapped | {s.property_name for s in report.mapped}
        if identifier in mapped_properties or not available:
            return

        # Vendor reports put the element name in the first column
        column = available[0]
        strategy, score = SuggestionStrategy.FIRST_COLUMN, 1.0
        if _looks_like_descriptor(column):
            explicit = next((h for h in available if header_key(h) in EXPLICIT_ID_COLUMNS), None)
            if explicit is None:
                return
            column, strategy, score = explicit, SuggestionStrategy.EXPLICIT_ID, EXPLICIT_ID_SCORE

        report.low_confidence = [s for s in report.low_confidence if s.property_name != identifier]
        if identifier in report.unmatched:
            report.unmatched.remove(identifier)
        report.mapped.insert(0, MappingSuggestion(identifier, column, score, strategy))
        available.remove(column)
        logger.info("identifier_mapped", record_type=record_type.name, column=column, strategy=strategy.value)

    @staticmethod
    def _is_identifier_like(record_type: RecordType, property_name: str) -> bool:
        lowered = property_name.lower()
        return (
            property_name in record_type.key_properties
            or lowered == record_type.name.lower()
            or lowered == record_type.name.lower() + "s"
            or lowered.endswith("id")
            or lowered.endswith("name")
        )

    @staticmethod
    def _existing_bindings(
        record_type: RecordType,
        existing: Optional[AnyMappingConfiguration],
    ) -> tuple[set[str], set[str]]:
        if existing is None:
            return set(), set()
        properties, headers = set(), set()
        for entry in existing.import_map:
            if entry.target_type.lower() != record_type.name.lower():
                continue
            properties.add(entry.property_name)
            headers.add(header_key(entry.column_header))
        return properties, headers

    # ===================
    # INVALID ENTRIES
    # ===================

    def find_invalid_entries(self, mapping_config: AnyMappingConfiguration) -> list[InvalidMapping]:
        """Entries whose type is undeclared or whose property has no setter."""
        invalid = []
        for entry in mapping_config.import_map:
            if "." in entry.target_type:
                continue
            record_type = find_record_type(entry.target_type)
            if record_type is None:
                invalid.append(InvalidMapping(entry, f"Unknown record type '{entry.target_type}'"))
            elif record_type.setter_for(entry.property_name) is None:
                invalid.append(InvalidMapping(
                    entry, f"{record_type.name} has no property '{entry.property_name}'"
                ))
        return invalid


def _looks_like_descriptor(column: str) -> bool:
    lowered = column.lower()
    return any(keyword in lowered for keyword in DESCRIPTOR_KEYWORDS)


# Singleton instance
_suggestion_service: Optional[MappingSuggestionService] = None


def get_suggestion_service() -> MappingSuggestionService:
    """Get or create MappingSuggestionService instance."""
    global _suggestion_service
    if _suggestion_service is None:
        _suggestion_service = MappingSuggestionService()
    return _suggestion_service
