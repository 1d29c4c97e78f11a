"""
Mapping configuration model.

A mapping file binds source column headers to record fields:

    {
      "SoftwareVersion": "3.1.0",
      "MapVersion": "2024-06",
      "ImportMap": [
        {"TargetType": "Bus", "PropertyName": "Id", "ColumnHeader": "Buses",
         "Required": true, "Severity": "Error", "Aliases": ["Bus ID"]},
        {"TargetType": "Bus", "PropertyName": "BaseKV", "ColumnHeader": "Base kV",
         "DefaultValue": "0.48"}
      ]
    }

Lifecycle: load → normalize → validate_mapping → to_immutable. Only the
immutable snapshot may be shared between concurrent imports.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from exceptions import (
    MappingConfigError,
    MappingFieldNameError,
    MappingFileNotFoundError,
    MappingValidationError,
)
from models.base import BaseSchema
from utils.text_utils import header_key, is_blank

logger = structlog.get_logger(__name__)

# Hand-authored files must use exact PascalCase keys; "$schema" style keys are exempt
FIELD_NAME_PATTERN = re.compile(r"^[A-Z][A-Za-z0-9]*$")
SCHEMA_MARKER = "$"


class MappingSeverity(str, Enum):
    """How serious it is when a mapped column is absent."""
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


class MappingEntry(BaseSchema):
    """One column → field binding."""
    target_type: str = Field(default="", alias="TargetType")
    property_name: str = Field(default="", alias="PropertyName")
    column_header: str = Field(default="", alias="ColumnHeader")
    required: bool = Field(default=False, alias="Required")
    severity: MappingSeverity = Field(default=MappingSeverity.INFO, alias="Severity")
    default_value: Optional[str] = Field(default=None, alias="DefaultValue")
    aliases: list[str] = Field(default_factory=list, alias="Aliases")

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, v: Any) -> Any:
        """Accept severity names in any case ("error", "ERROR")."""
        if isinstance(v, str):
            for member in MappingSeverity:
                if member.value.lower() == v.strip().lower():
                    return member
        return v

    @field_validator("aliases", mode="before")
    @classmethod
    def none_aliases_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def is_required_error(self) -> bool:
        """Required with Error severity: the only combination strict mode enforces."""
        return self.required and self.severity == MappingSeverity.ERROR


@dataclass
class ValidationResult:
    """Outcome of validating a mapping configuration."""
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def to_dict(self) -> dict:
        return {
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "has_errors": self.has_errors,
        }


@dataclass(frozen=True)
class ImmutableMappingEntry:
    """Read-only copy of a MappingEntry."""
    target_type: str
    property_name: str
    column_header: str
    required: bool
    severity: MappingSeverity
    default_value: Optional[str]
    aliases: tuple[str, ...]

    @classmethod
    def from_entry(cls, entry: MappingEntry) -> "ImmutableMappingEntry":
        return cls(
            target_type=entry.target_type,
            property_name=entry.property_name,
            column_header=entry.column_header,
            required=entry.required,
            severity=entry.severity,
            default_value=entry.default_value,
            aliases=tuple(entry.aliases),
        )

    @property
    def is_required_error(self) -> bool:
        return self.required and self.severity == MappingSeverity.ERROR

    def to_dict(self) -> dict:
        return {
            "TargetType": self.target_type,
            "PropertyName": self.property_name,
            "ColumnHeader": self.column_header,
            "Required": self.required,
            "Severity": self.severity.value,
            "DefaultValue": self.default_value,
            "Aliases": list(self.aliases),
        }


# Either form of an entry; both expose the same read attributes
AnyMappingEntry = Union[MappingEntry, ImmutableMappingEntry]


class MappingConfiguration(BaseSchema):
    """
    Editable mapping configuration as read from a mapping file.

    Not safe to share across concurrent imports; call to_immutable() first.
    """
    software_version: str = Field(default="", alias="SoftwareVersion")
    map_version: Optional[str] = Field(default=None, alias="MapVersion")
    import_map: list[MappingEntry] = Field(default_factory=list, alias="ImportMap")

    @field_validator("software_version", mode="before")
    @classmethod
    def none_version_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("import_map", mode="before")
    @classmethod
    def none_map_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    # ===================
    # LOADING
    # ===================

    @classmethod
    def load(cls, path: Union[str, Path]) -> "MappingConfiguration":
        """
        Load and normalize a mapping file.

        Args:
            path: Path to the JSON mapping file

        Returns:
            Normalized (not yet validated) configuration

        Raises:
            MappingFileNotFoundError: If the file does not exist
            MappingFieldNameError: If any field name is not PascalCase
            MappingConfigError: If the file is not valid JSON or has bad values
        """
        path = Path(path)
        if not path.is_file():
            raise MappingFileNotFoundError(str(path))

        logger.info("loading_mapping", path=str(path))
        try:
            text = path.read_text(encoding="utf-8-sig")
        except OSError as e:
            raise MappingConfigError(
                message=f"Failed to read mapping file: {path}",
                details={"original_error": str(e)}
            )
        return cls.from_json(text)

    @classmethod
    def from_json(cls, text: str) -> "MappingConfiguration":
        """Parse mapping JSON text. Same checks as load()."""
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise MappingConfigError(
                message="Mapping file is not valid JSON",
                details={"original_error": str(e), "line": e.lineno, "column": e.colno}
            )

        if not isinstance(document, dict):
            raise MappingConfigError(message="Mapping file must contain a JSON object")

        invalid = find_invalid_field_names(document)
        if invalid:
            logger.error("mapping_field_names_invalid", invalid=invalid)
            raise MappingFieldNameError(invalid)

        try:
            config = cls.model_validate(document)
        except PydanticValidationError as e:
            raise MappingConfigError(
                message="Mapping file has invalid values",
                details={"original_error": str(e)}
            )

        config.normalize()
        logger.info(
            "mapping_loaded",
            software_version=config.software_version,
            map_version=config.map_version,
            entries=len(config.import_map)
        )
        return config

    # ===================
    # NORMALIZE / VALIDATE
    # ===================

    def normalize(self) -> None:
        """Trim key fields of every entry, in place."""
        for entry in self.import_map:
            entry.target_type = (entry.target_type or "").strip()
            entry.property_name = (entry.property_name or "").strip()
            entry.column_header = (entry.column_header or "").strip()

    def validate_mapping(self) -> ValidationResult:
        """
        Check the configuration for duplicates and blank entries.

        - Each (TargetType, PropertyName) group with >1 entry → one warning
        - Each entry with a blank TargetType/PropertyName/ColumnHeader → one error
        - Each required entry whose group has >1 entry → one error
        """
        result = ValidationResult()
        groups = _group_by_key(self.import_map)

        for (type_key, property_key), members in groups.items():
            if len(members) > 1:
                result.warnings.append(
                    f"Duplicate mapping entries for {type_key}.{property_key} (using first occurrence)."
                )

        for index, entry in enumerate(self.import_map):
            if is_blank(entry.target_type) or is_blank(entry.property_name) or is_blank(entry.column_header):
                result.errors.append(
                    f"Entry {index} has blank TargetType/PropertyName/ColumnHeader - invalid."
                )

        for entry in self.import_map:
            if entry.required and len(groups[_entry_key(entry)]) > 1:
                result.errors.append(
                    f"Required mapping duplicated: {entry.target_type}.{entry.property_name}"
                )

        logger.debug(
            "mapping_validated",
            warnings=len(result.warnings),
            errors=len(result.errors)
        )
        return result

    def to_immutable(self) -> "ImmutableMappingConfiguration":
        """
        Validate and freeze into a shareable snapshot.

        Raises:
            MappingValidationError: If validation reports any error
        """
        result = self.validate_mapping()
        if result.has_errors:
            raise MappingValidationError(result.errors)
        return ImmutableMappingConfiguration(
            software_version=self.software_version,
            map_version=self.map_version,
            import_map=tuple(ImmutableMappingEntry.from_entry(e) for e in self.import_map),
        )

    # ===================
    # SERIALIZATION
    # ===================

    def to_dict(self) -> dict:
        """PascalCase dictionary in mapping-file shape."""
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: Union[str, Path]) -> None:
        Path(path).write_text(self.to_json(), encoding="utf-8")
        logger.info("mapping_saved", path=str(path), entries=len(self.import_map))

    # ===================
    # LOOKUPS
    # ===================

    def entries_by_type(self) -> dict[str, list[MappingEntry]]:
        return group_entries_by_type(self.import_map)

    def declared_headers(self) -> set[str]:
        return declared_header_keys(self.import_map)


@dataclass(frozen=True)
class ImmutableMappingConfiguration:
    """
    Deep-copied, read-only mapping configuration.

    Created only by MappingConfiguration.to_immutable(), so it always
    validated without errors.
    """
    software_version: str
    map_version: Optional[str]
    import_map: tuple[ImmutableMappingEntry, ...]

    def entries_by_type(self) -> dict[str, list[ImmutableMappingEntry]]:
        return group_entries_by_type(self.import_map)

    def declared_headers(self) -> set[str]:
        return declared_header_keys(self.import_map)

    def to_dict(self) -> dict:
        return {
            "SoftwareVersion": self.software_version,
            "MapVersion": self.map_version,
            "ImportMap": [e.to_dict() for e in self.import_map],
        }


# Either form of a configuration; the import service accepts both
AnyMappingConfiguration = Union[MappingConfiguration, ImmutableMappingConfiguration]


# ===================
# HELPERS
# ===================

def find_invalid_field_names(document: Any) -> list[str]:
    """
    Collect every object key that is not PascalCase.

    Walks nested objects and arrays. Keys starting with "$" are skipped.

    Returns:
        Sorted, de-duplicated list of offending names
    """
    invalid: set[str] = set()
    _walk_field_names(document, invalid)
    return sorted(invalid)


def _walk_field_names(node: Any, invalid: set[str]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            if not key.startswith(SCHEMA_MARKER) and not FIELD_NAME_PATTERN.match(key):
                invalid.add(key)
            _walk_field_names(value, invalid)
    elif isinstance(node, list):
        for item in node:
            _walk_field_names(item, invalid)


def group_entries_by_type(entries: Iterable[AnyMappingEntry]) -> dict[str, list]:
    """Group entries by target type, keeping first-seen order."""
    grouped: dict[str, list] = {}
    for entry in entries:
        if is_blank(entry.target_type):
            continue
        grouped.setdefault(entry.target_type, []).append(entry)
    return grouped


def first_entry_per_property(entries: Iterable[AnyMappingEntry]) -> list:
    """Drop repeated (type, property) entries; the first occurrence is the one used."""
    groups = _group_by_key(entries)
    return [group[0] for group in groups.values()]


def declared_header_keys(entries: Iterable[AnyMappingEntry]) -> set[str]:
    """Lower-cased column headers declared anywhere in the configuration."""
    return {header_key(e.column_header) for e in entries if not is_blank(e.column_header)}


def _entry_key(entry: AnyMappingEntry) -> tuple[str, str]:
    return (
        (entry.target_type or "").strip().lower(),
        (entry.property_name or "").strip().lower(),
    )


def _group_by_key(entries: Iterable[AnyMappingEntry]) -> dict[tuple[str, str], list]:
    groups: dict[tuple[str, str], list] = {}
    for entry in entries:
        groups.setdefault(_entry_key(entry), []).append(entry)
    return groups
