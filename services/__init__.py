"""
Business logic services.

Each service handles one stage of an import.
"""

from services.import_log import ImportLog, FileImportLog, MemoryImportLog, LogLevel, get_default_log
from services.fuzzy_matcher import FuzzyMatcher, get_fuzzy_matcher
from services.row_populator import RowPopulator, PopulateResult
from services.section_detector import SectionDetector, DetectorState, SectionInfo, TypeScore
from services.import_service import ImportService, get_import_service
from services.mapping_suggestion_service import (
    MappingSuggestionService,
    get_suggestion_service,
    MappingSuggestion,
    SuggestionReport,
)

__all__ = [
    "ImportLog",
    "FileImportLog",
    "MemoryImportLog",
    "LogLevel",
    "get_default_log",
    "FuzzyMatcher",
    "get_fuzzy_matcher",
    "RowPopulator",
    "PopulateResult",
    "SectionDetector",
    "DetectorState",
    "SectionInfo",
    "TypeScore",
    "ImportService",
    "get_import_service",
    "MappingSuggestionService",
    "get_suggestion_service",
    "MappingSuggestion",
    "SuggestionReport",
]
