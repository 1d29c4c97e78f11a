"""
Shared test fixtures.

Source files are written to tmp_path; nothing touches the working directory.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

import pytest

from config import settings
from models.data_store import DataStore
from models.mapping import MappingConfiguration
from services.import_log import MemoryImportLog
from tests.factories import (
    ARC_FLASH_ROWS,
    BUS_ROWS,
    LV_BREAKER_ROWS,
    SHORT_CIRCUIT_ROWS,
    MappingDocumentFactory,
    write_csv,
    write_workbook,
)


@pytest.fixture(autouse=True)
def no_default_log_file(monkeypatch):
    """Keep the default import log in memory during tests."""
    monkeypatch.setattr(settings, "log_file", None)


# ===================
# MAPPINGS
# ===================

@pytest.fixture
def study_document() -> dict:
    return MappingDocumentFactory.study()


@pytest.fixture
def study_mapping(study_document) -> MappingConfiguration:
    return MappingConfiguration.model_validate(study_document)


@pytest.fixture
def study_config(study_mapping):
    """Immutable snapshot of the study mapping."""
    return study_mapping.to_immutable()


@pytest.fixture
def buses_config():
    return MappingConfiguration.model_validate(MappingDocumentFactory.buses_only()).to_immutable()


# ===================
# RUNTIME
# ===================

@pytest.fixture
def memory_log() -> MemoryImportLog:
    return MemoryImportLog(verbose_enabled=True)


@pytest.fixture
def store() -> DataStore:
    return DataStore()


# ===================
# SOURCE FILES
# ===================

@pytest.fixture
def buses_csv(tmp_path) -> Path:
    return write_csv(tmp_path / "buses.csv", BUS_ROWS)


@pytest.fixture
def multi_section_csv(tmp_path) -> Path:
    """Buses, then a blank line, then LV breakers, in one file."""
    rows = BUS_ROWS + [[]] + LV_BREAKER_ROWS
    return write_csv(tmp_path / "equipment.csv", rows)


@pytest.fixture
def study_workbook(tmp_path) -> Path:
    """Workbook with one sheet per report plus a notes sheet."""
    return write_workbook(
        tmp_path / "study.xlsx",
        {
            "Buses": BUS_ROWS,
            "Arc Flash": ARC_FLASH_ROWS,
            "Short Circuit": SHORT_CIRCUIT_ROWS,
            "Notes": [["Study notes"], ["Generated by the study tool"]],
        },
    )
