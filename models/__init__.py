"""
Data models: mapping configuration, records, store, results.
"""

from models.base import BaseSchema
from models.mapping import (
    MappingSeverity,
    MappingEntry,
    MappingConfiguration,
    ImmutableMappingEntry,
    ImmutableMappingConfiguration,
    ValidationResult,
)
from models.fuzzy import MatchReason, FuzzyMatchResult
from models.records import (
    AcDc,
    EquipmentStatus,
    Bus,
    LVBreaker,
    Fuse,
    Cable,
    ArcFlash,
    ShortCircuit,
    FieldKind,
    KeyShape,
    FieldSpec,
    RecordType,
    RECORD_TYPES,
    find_record_type,
    get_record_type,
)
from models.data_store import DataStore
from models.import_result import ImportOptions, ImportResult, ImportAuditResult

__all__ = [
    # Base
    "BaseSchema",

    # Mapping
    "MappingSeverity",
    "MappingEntry",
    "MappingConfiguration",
    "ImmutableMappingEntry",
    "ImmutableMappingConfiguration",
    "ValidationResult",

    # Fuzzy
    "MatchReason",
    "FuzzyMatchResult",

    # Records
    "AcDc",
    "EquipmentStatus",
    "Bus",
    "LVBreaker",
    "Fuse",
    "Cable",
    "ArcFlash",
    "ShortCircuit",
    "FieldKind",
    "KeyShape",
    "FieldSpec",
    "RecordType",
    "RECORD_TYPES",
    "find_record_type",
    "get_record_type",

    # Store and results
    "DataStore",
    "ImportOptions",
    "ImportResult",
    "ImportAuditResult",
]
