"""
Software version comparison for mapping files and data stores.

Versions are dotted numbers ("3", "3.1", "3.1.2"). Missing parts are
padded with zeros, so "3" compares as "3.0.0".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VersionSeverity(str, Enum):
    """How serious a version difference is."""
    NONE = "None"
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


@dataclass(frozen=True)
class VersionComparison:
    """Result of comparing a mapping version with a store version."""
    severity: VersionSeverity
    message: str

    @property
    def is_match(self) -> bool:
        return self.severity == VersionSeverity.NONE


def normalize_version(version: Optional[str]) -> Optional[str]:
    """
    Normalize a version string to major.minor.build.

    Examples:
        "3" → "3.0.0"
        " 3.1 " → "3.1.0"
        "3.1.2.7" → "3.1.2"
        "v3" → None (unparsable)

    Returns:
        Normalized version, or None if it cannot be parsed
    """
    parts = _parse(version)
    if parts is None:
        return None
    return ".".join(str(p) for p in parts)


def compare_versions(mapping_version: Optional[str], store_version: Optional[str]) -> VersionComparison:
    """
    Compare the version a mapping targets with the version a store was built from.

    - Major differs → ERROR
    - Minor differs → WARNING (older or newer)
    - Build differs → INFO
    - Either side unparsable → WARNING
    - Equal after normalization → NONE
    """
    mapping_parts = _parse(mapping_version)
    store_parts = _parse(store_version)

    if mapping_parts is None or store_parts is None:
        return VersionComparison(
            VersionSeverity.WARNING,
            f"Unable to compare versions '{mapping_version}' and '{store_version}'",
        )

    if mapping_parts == store_parts:
        return VersionComparison(VersionSeverity.NONE, "Versions match")

    mapping_text = ".".join(str(p) for p in mapping_parts)
    store_text = ".".join(str(p) for p in store_parts)

    if mapping_parts[0] != store_parts[0]:
        return VersionComparison(
            VersionSeverity.ERROR,
            f"Major version mismatch: mapping {mapping_text}, data {store_text}",
        )
    if mapping_parts[1] != store_parts[1]:
        relation = "older" if mapping_parts[1] < store_parts[1] else "newer"
        return VersionComparison(
            VersionSeverity.WARNING,
            f"Mapping version {mapping_text} is {relation} than data version {store_text}",
        )
    return VersionComparison(
        VersionSeverity.INFO,
        f"Build differs: mapping {mapping_text}, data {store_text}",
    )


def _parse(version: Optional[str]) -> Optional[tuple[int, int, int]]:
    if version is None or not version.strip():
        return None
    pieces = version.strip().split(".")
    try:
        numbers = [int(p) for p in pieces[:3]]
    except ValueError:
        return None
    if any(n < 0 for n in numbers):
        return None
    while len(numbers) < 3:
        numbers.append(0)
    return numbers[0], numbers[1], numbers[2]
