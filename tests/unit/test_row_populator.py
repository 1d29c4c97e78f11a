"""
Unit tests for the row populator and its coercion helpers.
"""

from dataclasses import replace

import pytest

from models.mapping import MappingEntry, MappingSeverity
from models.records import AcDc, EquipmentStatus, get_record_type
from services.import_log import LogLevel, MemoryImportLog
from services.row_populator import (
    RowPopulator,
    coerce_boolean,
    coerce_enum,
    coerce_float,
    coerce_int,
    uses_default_when_missing,
)
from services.section_detector import SectionDetector


def entry(property_name, column_header, required=False, severity="Info", default_value=None, target_type="Bus"):
    return MappingEntry(
        target_type=target_type,
        property_name=property_name,
        column_header=column_header,
        required=required,
        severity=severity,
        default_value=default_value,
    )


@pytest.fixture
def bus_type():
    return get_record_type("Bus")


@pytest.fixture
def populator(memory_log):
    return RowPopulator(memory_log)


# ===================
# BOOLEAN COERCION TESTS
# ===================

class TestCoerceBoolean:
    """Tests for tolerant boolean parsing."""

    @pytest.mark.parametrize("raw", ["Yes", "x", "ADJUSTABLE", "true", "T", "y", "1", "Adj", " yes "])
    def test_true_tokens(self, raw):
        assert coerce_boolean(raw) is True

    @pytest.mark.parametrize("raw", ["", "No", "Fixed", "maybe", None, "0", "false", "F", "n", "  "])
    def test_false_and_unknown_tokens(self, raw):
        assert coerce_boolean(raw) is False


# ===================
# ENUM AND NUMBER COERCION TESTS
# ===================

class TestCoerceEnum:
    """Tests for enumeration coercion."""

    def test_matches_value_case_insensitive(self):
        assert coerce_enum("existing", EquipmentStatus) == EquipmentStatus.EXISTING
        assert coerce_enum(" dc ", AcDc) == AcDc.DC

    def test_matches_member_name(self):
        assert coerce_enum("REMOVED", EquipmentStatus) == EquipmentStatus.REMOVED

    def test_unknown_is_none(self):
        assert coerce_enum("Retired", EquipmentStatus) is None
        assert coerce_enum("", EquipmentStatus) is None


class TestCoerceNumbers:
    """Tests for integer and real coercion."""

    def test_float_values(self):
        assert coerce_float("0.48") == 0.48
        assert coerce_float(" 13.8 ") == 13.8
        assert coerce_float("1e3") == 1000.0

    @pytest.mark.parametrize("raw", ["", None, "abc", "nan", "inf", "-inf", "1,200"])
    def test_float_failures_are_none(self, raw):
        assert coerce_float(raw) is None

    def test_int_values(self):
        assert coerce_int("3") == 3
        assert coerce_int("3.0") == 3
        assert coerce_int(" -2 ") == -2

    @pytest.mark.parametrize("raw", ["", None, "3.5", "three"])
    def test_int_failures_are_none(self, raw):
        assert coerce_int(raw) is None


# ===================
# DEFAULT RULE TESTS
# ===================

class TestUsesDefaultWhenMissing:
    """Only required Error entries skip their default."""

    @pytest.mark.parametrize("required,severity,expected", [
        (True, MappingSeverity.ERROR, False),
        (False, MappingSeverity.ERROR, True),
        (True, MappingSeverity.WARNING, True),
        (True, MappingSeverity.INFO, True),
        (False, MappingSeverity.INFO, True),
    ])
    def test_rule(self, required, severity, expected):
        assert uses_default_when_missing(entry("BaseKV", "Base kV", required, severity)) is expected


# ===================
# POPULATE TESTS
# ===================

class TestPopulate:
    """Tests for RowPopulator.populate."""

    def test_populates_typed_fields(self, populator, bus_type):
        entries = [
            entry("Id", "Buses", True, "Error"),
            entry("AcDc", "AC/DC"),
            entry("Status", "Status"),
            entry("BaseKV", "Base kV"),
            entry("NoOfPhases", "No of Phases"),
        ]
        header = ["Buses", "AC/DC", "Status", "Base kV", "No of Phases"]
        index = SectionDetector.build_header_index(header)

        result = populator.populate(bus_type, entries, ["BUS-1", "ac", "Existing", "0.48", "3"], index)

        bus = result.record
        assert bus.id == "BUS-1"
        assert bus.ac_dc == AcDc.AC
        assert bus.status == EquipmentStatus.EXISTING
        assert bus.base_kv == 0.48
        assert bus.no_of_phases == 3
        assert result.missing_headers == []
        assert result.field_errors == 0

    def test_text_assigned_verbatim(self, populator, bus_type):
        entries = [entry("Id", "Buses"), entry("Service", "Service")]
        index = {"buses": 0, "service": 1}

        result = populator.populate(bus_type, entries, ["BUS-1", "  Normal  "], index)

        assert result.record.service == "  Normal  "

    def test_bad_values_leave_field_unset(self, populator, bus_type):
        """Unparsable numbers and enums leave the field None without failing the row."""
        entries = [entry("Id", "Buses"), entry("BaseKV", "Base kV"), entry("Status", "Status")]
        index = {"buses": 0, "base kv": 1, "status": 2}

        result = populator.populate(bus_type, entries, ["BUS-1", "n/a", "Retired"], index)

        assert result.record.id == "BUS-1"
        assert result.record.base_kv is None
        assert result.record.status is None
        assert result.field_errors == 0

    def test_missing_header_uses_default(self, populator, bus_type):
        entries = [
            entry("Id", "Buses", True, "Error"),
            entry("BaseKV", "Base kV", True, "Warning", default_value="0.48"),
            entry("NoOfPhases", "No of Phases", default_value="3"),
        ]

        result = populator.populate(bus_type, entries, ["BUS-1"], {"buses": 0})

        assert result.record.base_kv == 0.48
        assert result.record.no_of_phases == 3
        assert result.missing_headers == ["Base kV", "No of Phases"]
        assert result.missing_required == []

    def test_missing_required_error_header(self, populator, bus_type):
        """Required Error entries are missing-required and never defaulted."""
        entries = [
            entry("Id", "Buses", True, "Error"),
            entry("AcDc", "AC/DC", True, "Error", default_value="AC"),
        ]

        result = populator.populate(bus_type, entries, ["BUS-1"], {"buses": 0})

        assert result.missing_headers == ["AC/DC"]
        assert result.missing_required == ["AC/DC"]
        assert result.record.ac_dc is None

    def test_short_row_cells_are_blank(self, populator, bus_type):
        """Columns past the end of a ragged row read as blank."""
        entries = [entry("Id", "Buses"), entry("BaseKV", "Base kV"), entry("Service", "Service")]
        index = {"buses": 0, "base kv": 1, "service": 2}

        result = populator.populate(bus_type, entries, ["BUS-1"], index)

        assert result.record.base_kv is None
        assert result.record.service is None
        assert result.missing_headers == []

    def test_boolean_fields(self, populator, memory_log):
        lv_type = get_record_type("LVBreaker")
        entries = [
            entry("Id", "LV Breakers", target_type="LVBreaker"),
            entry("TripAdjust", "Trip Adjust", target_type="LVBreaker"),
            entry("MaintMode", "Maint Mode", target_type="LVBreaker"),
        ]
        index = {"lv breakers": 0, "trip adjust": 1, "maint mode": 2}

        result = populator.populate(lv_type, entries, ["CB-1", "Adjustable", "maybe"], index, row_number=7)

        assert result.record.trip_adjust is True
        assert result.record.maint_mode is False
        assert memory_log.contains("Unrecognized boolean 'maybe'", LogLevel.VERBOSE)

    def test_unknown_property_logged_once(self, populator, memory_log, bus_type):
        entries = [entry("Id", "Buses"), entry("Voltage", "Voltage")]
        index = {"buses": 0, "voltage": 1}

        populator.populate(bus_type, entries, ["BUS-1", "480"], index)
        populator.populate(bus_type, entries, ["BUS-2", "480"], index)

        errors = [m for m in memory_log.messages(LogLevel.ERROR) if "Voltage" in m]
        assert errors == ["Bus has no property 'Voltage'; mapping entry ignored"]

    def test_setter_failure_does_not_abort_row(self, populator, memory_log, bus_type):
        """An exception in one field is logged and the rest of the row is kept."""
        entries = [entry("Id", "Buses"), entry("Area", "Area"), entry("Zone", "Zone")]
        index = {"buses": 0, "area": 1, "zone": 2}

        def broken_setter(record, value):
            raise RuntimeError("setter exploded")

        broken_area = replace(bus_type.fields["Area"], setter=broken_setter)
        broken_type = replace(bus_type, fields={**bus_type.fields, "Area": broken_area})

        result = populator.populate(broken_type, entries, ["BUS-1", "North", "Z1"], index, row_number=4)

        assert result.field_errors == 1
        assert result.record.id == "BUS-1"
        assert result.record.zone == "Z1"
        assert result.record.area is None
        assert memory_log.contains("Failed to set Area at row 4", LogLevel.ERROR)

    def test_records_are_independent(self, populator, bus_type):
        entries = [entry("Id", "Buses")]

        first = populator.populate(bus_type, entries, ["BUS-1"], {"buses": 0}).record
        second = populator.populate(bus_type, entries, ["BUS-2"], {"buses": 0}).record

        assert first is not second
        assert first.id == "BUS-1"


class TestPopulatorDefaults:
    def test_default_log_is_quiet(self, bus_type):
        populator = RowPopulator()

        result = populator.populate(bus_type, [entry("Id", "Buses")], ["BUS-1"], {"buses": 0})

        assert isinstance(populator.log, MemoryImportLog)
        assert populator.log.verbose_enabled is False
        assert result.record.id == "BUS-1"
