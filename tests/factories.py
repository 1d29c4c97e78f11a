"""
Test data factories.

Builds mapping documents and source files for import tests.
"""

import csv
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd


class MappingEntryFactory:
    """
    Factory for mapping entry dicts in mapping-file shape.

    Usage:
        # Optional Info entry
        entry = MappingEntryFactory.create("Bus", "Status", "Status")

        # Required identifier
        entry = MappingEntryFactory.required("Bus", "Id", "Buses")
    """

    @classmethod
    def create(
        cls,
        target_type: str,
        property_name: str,
        column_header: str,
        required: bool = False,
        severity: str = "Info",
        default_value: Optional[str] = None,
        aliases: Optional[list[str]] = None
    ) -> dict:
        entry = {
            "TargetType": target_type,
            "PropertyName": property_name,
            "ColumnHeader": column_header,
            "Required": required,
            "Severity": severity,
        }
        if default_value is not None:
            entry["DefaultValue"] = default_value
        if aliases is not None:
            entry["Aliases"] = aliases
        return entry

    @classmethod
    def required(cls, target_type: str, property_name: str, column_header: str) -> dict:
        """Required entry with Error severity."""
        return cls.create(target_type, property_name, column_header, required=True, severity="Error")


class MappingDocumentFactory:
    """Factory for whole mapping documents."""

    @classmethod
    def create(
        cls,
        entries: Sequence[dict],
        software_version: Optional[str] = "3.1.0",
        map_version: Optional[str] = "2024-06"
    ) -> dict:
        document = {"ImportMap": list(entries)}
        if software_version is not None:
            document["SoftwareVersion"] = software_version
        if map_version is not None:
            document["MapVersion"] = map_version
        return document

    @classmethod
    def study(cls, software_version: Optional[str] = "3.1.0") -> dict:
        """
        Mapping covering buses, LV breakers, arc flash and short circuit.

        Bus, LVBreaker share AC/DC and Status; ArcFlash and ShortCircuit
        share Scenario.
        """
        E = MappingEntryFactory
        return cls.create(
            [
                E.required("Bus", "Id", "Buses"),
                E.create("Bus", "AcDc", "AC/DC"),
                E.create("Bus", "Status", "Status"),
                E.create("Bus", "BaseKV", "Base kV", required=True, severity="Warning", default_value="0.48"),
                E.create("Bus", "NoOfPhases", "No of Phases", default_value="3"),

                E.required("LVBreaker", "Id", "LV Breakers"),
                E.create("LVBreaker", "OnBus", "On Bus"),
                E.create("LVBreaker", "AcDc", "AC/DC"),
                E.create("LVBreaker", "Status", "Status"),
                E.create("LVBreaker", "TripAdjust", "Trip Adjust"),
                E.create("LVBreaker", "FrameA", "Frame (A)"),

                E.required("ArcFlash", "Id", "Arc Fault Bus Name"),
                E.required("ArcFlash", "Scenario", "Scenario"),
                E.create("ArcFlash", "WorstCase", "Worst Case"),
                E.create("ArcFlash", "IncidentEnergy", "Incident Energy"),

                E.required("ShortCircuit", "Id", "Equipment Name"),
                E.required("ShortCircuit", "BusName", "Bus Name"),
                E.required("ShortCircuit", "Scenario", "Scenario"),
                E.create("ShortCircuit", "HalfCycleDutyKA", "1/2 Cycle Duty"),
            ],
            software_version=software_version,
        )

    @classmethod
    def buses_only(cls, software_version: Optional[str] = "3.1.0") -> dict:
        """Bus entries only, so strict mode only cares about bus headers."""
        E = MappingEntryFactory
        return cls.create(
            [
                E.required("Bus", "Id", "Buses"),
                E.create("Bus", "AcDc", "AC/DC"),
                E.create("Bus", "Status", "Status"),
                E.create("Bus", "BaseKV", "Base kV", default_value="0.48"),
            ],
            software_version=software_version,
        )


# ===================
# SOURCE FILES
# ===================

BUS_ROWS = [
    ["Buses", "AC/DC", "Status", "Base kV", "No of Phases"],
    ["BUS-1", "AC", "Existing", "0.48", "3"],
    ["BUS-2", "AC", "New", "13.8", "3"],
    ["BUS-3", "DC", "Existing", "0.125", "2"],
]

LV_BREAKER_ROWS = [
    ["LV Breakers", "On Bus", "AC/DC", "Status", "Trip Adjust", "Frame (A)"],
    ["CB-1", "BUS-1", "AC", "Existing", "Adjustable", "800"],
    ["CB-2", "BUS-1", "AC", "Existing", "Fixed", "400"],
]

ARC_FLASH_ROWS = [
    ["Arc Fault Bus Name", "Scenario", "Worst Case", "Incident Energy"],
    ["BUS-1", "Max", "Yes", "8.2"],
    ["BUS-1", "Min", "No", "4.1"],
    ["BUS-2", "Max", "x", "12.5"],
]

SHORT_CIRCUIT_ROWS = [
    ["Equipment Name", "Bus Name", "Scenario", "1/2 Cycle Duty"],
    ["CB-1", "BUS-1", "Max", "25.3"],
    ["CB-1", "BUS-1", "Min", "18.0"],
]


def write_csv(path: Path, rows: Sequence[Sequence[str]]) -> Path:
    """Write rows as a CSV file (ragged rows allowed)."""
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        for row in rows:
            writer.writerow(row)
    return path


def write_workbook(path: Path, sheets: dict[str, Sequence[Sequence[str]]]) -> Path:
    """Write one worksheet per entry, rows as-is with no header row."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(list(rows)).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path
