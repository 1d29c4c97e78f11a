"""
Import options and results.

ImportOptions is what the caller passes in; ImportResult and
ImportAuditResult are what the import service hands back.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import Field

from config import settings
from models.base import BaseSchema
from utils.version_util import VersionComparison


class ImportOptions(BaseSchema):
    """
    Per-call import options.

    Accepts PascalCase keys too, e.g. {"StrictMissingRequiredHeaders": true}.
    """
    strict_missing_required_headers: bool = Field(
        default_factory=lambda: settings.strict_missing_required_headers,
        alias="StrictMissingRequiredHeaders"
    )
    worksheet_names: Optional[list[str]] = Field(default=None, alias="WorksheetNames")
    selected_scenarios: Optional[list[str]] = Field(default=None, alias="SelectedScenarios")
    scenario_overrides: dict[str, str] = Field(default_factory=dict, alias="ScenarioOverrides")

    def is_scenario_selected(self, scenario: str) -> bool:
        """No selection means every scenario is selected."""
        if not self.selected_scenarios:
            return True
        wanted = scenario.strip().lower()
        return any(s.strip().lower() == wanted for s in self.selected_scenarios)

    def override_scenario(self, scenario: str) -> str:
        """Replacement scenario name, or the original when none is configured."""
        wanted = scenario.strip().lower()
        for original, replacement in self.scenario_overrides.items():
            if original.strip().lower() == wanted:
                return replacement
        return scenario

    def wants_worksheet(self, sheet_name: str) -> bool:
        if not self.worksheet_names:
            return True
        wanted = sheet_name.strip().lower()
        return any(s.strip().lower() == wanted for s in self.worksheet_names)


@dataclass
class ImportResult:
    """Outcome of one import call. Counts are deltas for this call."""
    source_path: str
    units: list[str] = field(default_factory=list)
    imported: dict[str, int] = field(default_factory=dict)
    duplicates: dict[str, int] = field(default_factory=dict)
    filtered: dict[str, int] = field(default_factory=dict)
    sections: dict[str, int] = field(default_factory=dict)
    header_rows: int = 0
    field_errors: int = 0
    missing_headers: list[str] = field(default_factory=list)
    missing_required_headers: list[str] = field(default_factory=list)
    version_check: Optional[VersionComparison] = None
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if no errors occurred."""
        return len(self.errors) == 0

    @property
    def total_imported(self) -> int:
        return sum(self.imported.values())

    @property
    def total_duplicates(self) -> int:
        return sum(self.duplicates.values())

    def summary(self) -> str:
        parts = [f"{self.total_imported} imported"]
        if self.total_duplicates:
            parts.append(f"{self.total_duplicates} duplicates skipped")
        if self.missing_headers:
            parts.append(f"{len(self.missing_headers)} missing headers")
        if self.errors:
            parts.append(f"{len(self.errors)} errors")
        detail = ", ".join(f"{name}: {count}" for name, count in sorted(self.imported.items()) if count)
        text = "; ".join(parts)
        return f"{text} ({detail})" if detail else text

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for CLI/JSON output."""
        return {
            "source_path": self.source_path,
            "success": self.success,
            "units": list(self.units),
            "imported": dict(self.imported),
            "duplicates": dict(self.duplicates),
            "filtered": dict(self.filtered),
            "sections": dict(self.sections),
            "header_rows": self.header_rows,
            "field_errors": self.field_errors,
            "missing_headers": list(self.missing_headers),
            "missing_required_headers": list(self.missing_required_headers),
            "version_check": (
                {
                    "severity": self.version_check.severity.value,
                    "message": self.version_check.message,
                }
                if self.version_check else None
            ),
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


@dataclass
class ImportAuditResult:
    """Dry-run preview of what an import would produce."""
    source_path: str
    detected_data_types: list[str] = field(default_factory=list)
    discovered_scenarios: list[str] = field(default_factory=list)
    record_counts: dict[str, int] = field(default_factory=dict)
    scenario_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_records(self) -> int:
        return sum(self.record_counts.values())

    @property
    def can_import(self) -> bool:
        """True when the file yields records and nothing blocks the import."""
        return not self.errors and self.total_records > 0

    def summary(self) -> str:
        if not self.detected_data_types:
            return "No importable data detected"
        lines = [f"{self.total_records} records in {len(self.detected_data_types)} data types"]
        for type_name in self.detected_data_types:
            line = f"  {type_name}: {self.record_counts.get(type_name, 0)}"
            per_scenario = self.scenario_counts.get(type_name)
            if per_scenario:
                line += " (" + ", ".join(f"{s}: {c}" for s, c in sorted(per_scenario.items())) + ")"
            lines.append(line)
        if self.discovered_scenarios:
            lines.append("Scenarios: " + ", ".join(self.discovered_scenarios))
        if self.warnings:
            lines.append(f"{len(self.warnings)} warnings")
        if self.errors:
            lines.append(f"{len(self.errors)} errors")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_path": self.source_path,
            "detected_data_types": list(self.detected_data_types),
            "discovered_scenarios": list(self.discovered_scenarios),
            "record_counts": dict(self.record_counts),
            "scenario_counts": {k: dict(v) for k, v in self.scenario_counts.items()},
            "warnings": list(self.warnings),
            "errors": list(self.errors),
            "can_import": self.can_import,
        }
