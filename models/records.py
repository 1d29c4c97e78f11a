"""
Declared record types for imported study data.

Each record type is a dataclass. Its fields carry the mapping property
name ("BaseKV") and the vendor column description ("Base kV") in their
metadata. At import time the registry turns every class into a
RecordType: a setter dispatch table keyed by property name plus the
key shape used to store records.

Key shapes:
    SINGLE  Id                      → "BUS-1"
    PAIR    (Id, Scenario)          → ("BUS-1", "Max")
    TRIPLE  (Id, BusName, Scenario) → ("CB-1", "BUS-1", "Max")
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Optional, Union, get_args, get_origin, get_type_hints

from exceptions import UnknownRecordTypeError
from utils.text_utils import is_blank


# ===================
# VALUE ENUMS
# ===================

class AcDc(str, Enum):
    AC = "AC"
    DC = "DC"


class EquipmentStatus(str, Enum):
    EXISTING = "Existing"
    NEW = "New"
    FUTURE = "Future"
    REMOVED = "Removed"
    OFF = "Off"


def _prop(property_name: str, description: Optional[str] = None):
    """Dataclass field bound to a mapping property name."""
    return field(
        default=None,
        metadata={"property": property_name, "description": description or property_name},
    )


# ===================
# RECORDS
# ===================

@dataclass
class Bus:
    """Bus (switchboard, panel, node) from the buses report."""
    id: Optional[str] = _prop("Id", "Buses")
    ac_dc: Optional[AcDc] = _prop("AcDc", "AC/DC")
    status: Optional[EquipmentStatus] = _prop("Status")
    base_kv: Optional[float] = _prop("BaseKV", "Base kV")
    no_of_phases: Optional[int] = _prop("NoOfPhases", "No of Phases")
    service: Optional[str] = _prop("Service")
    area: Optional[str] = _prop("Area")
    zone: Optional[str] = _prop("Zone")
    device_code: Optional[str] = _prop("DeviceCode", "Device Code")
    manufacturer: Optional[str] = _prop("Manufacturer")
    type: Optional[str] = _prop("Type")
    bus_rating_a: Optional[float] = _prop("BusRatingA", "Bus Rating (A)")


@dataclass
class LVBreaker:
    """Low-voltage circuit breaker and its trip unit."""
    id: Optional[str] = _prop("Id", "LV Breakers")
    ac_dc: Optional[AcDc] = _prop("AcDc", "AC/DC")
    status: Optional[EquipmentStatus] = _prop("Status")
    no_of_phases: Optional[int] = _prop("NoOfPhases", "No of Phases")
    on_bus: Optional[str] = _prop("OnBus", "On Bus")
    base_kv: Optional[float] = _prop("BaseKV", "Base kV")
    breaker_class: Optional[str] = _prop("Class")
    breaker_mfr: Optional[str] = _prop("BreakerMfr", "Breaker Mfr")
    breaker_type: Optional[str] = _prop("BreakerType", "Breaker Type")
    breaker_style: Optional[str] = _prop("BreakerStyle", "Breaker Style")
    frame_a: Optional[float] = _prop("FrameA", "Frame (A)")
    trip_mfr: Optional[str] = _prop("TripMfr", "Trip Mfr")
    trip_type: Optional[str] = _prop("TripType", "Trip Type")
    trip_style: Optional[str] = _prop("TripStyle", "Trip Style")
    trip_adjust: Optional[bool] = _prop("TripAdjust", "Trip Adjust")
    inst_override: Optional[bool] = _prop("InstOverride", "Inst Override")
    maint_mode: Optional[bool] = _prop("MaintMode", "Maint Mode")


@dataclass
class Fuse:
    """Fuse and its holder."""
    id: Optional[str] = _prop("Id", "Fuses")
    ac_dc: Optional[AcDc] = _prop("AcDc", "AC/DC")
    status: Optional[EquipmentStatus] = _prop("Status")
    no_of_phases: Optional[int] = _prop("NoOfPhases", "No of Phases")
    on_bus: Optional[str] = _prop("OnBus", "On Bus")
    base_kv: Optional[float] = _prop("BaseKV", "Base kV")
    fuse_mfr: Optional[str] = _prop("FuseMfr", "Fuse Mfr")
    fuse_type: Optional[str] = _prop("FuseType", "Fuse Type")
    fuse_style: Optional[str] = _prop("FuseStyle", "Fuse Style")
    model: Optional[str] = _prop("Model")
    size: Optional[str] = _prop("Size")
    sc_int_ka: Optional[float] = _prop("SCIntKA", "SC Int kA")


@dataclass
class Cable:
    """Cable run between two buses."""
    id: Optional[str] = _prop("Id", "Cables")
    ac_dc: Optional[AcDc] = _prop("AcDc", "AC/DC")
    status: Optional[EquipmentStatus] = _prop("Status")
    no_of_phases: Optional[int] = _prop("NoOfPhases", "No of Phases")
    from_bus_id: Optional[str] = _prop("FromBusId", "From Bus ID")
    to_bus_id: Optional[str] = _prop("ToBusId", "To Bus ID")
    unit: Optional[str] = _prop("Unit")
    type: Optional[str] = _prop("Type")
    no_per_phase: Optional[int] = _prop("NoPerPhase", "No/Ph")
    size: Optional[str] = _prop("Size")
    length: Optional[float] = _prop("Length")


@dataclass
class ArcFlash:
    """Arc flash study result for one bus in one scenario."""
    id: Optional[str] = _prop("Id", "Arc Fault Bus Name")
    scenario: Optional[str] = _prop("Scenario")
    worst_case: Optional[bool] = _prop("WorstCase", "Worst Case")
    arc_fault_bus_kv: Optional[float] = _prop("ArcFaultBusKV", "Arc Fault Bus kV")
    upstream_trip_device_name: Optional[str] = _prop("UpstreamTripDeviceName", "Upstream Trip Device Name")
    equip_type: Optional[str] = _prop("EquipType", "Equip Type")
    electrode_configuration: Optional[str] = _prop("ElectrodeConfiguration", "Electrode Configuration")
    working_distance: Optional[float] = _prop("WorkingDistance", "Working Distance")
    incident_energy: Optional[float] = _prop("IncidentEnergy", "Incident Energy")
    est_arc_flash_boundary: Optional[float] = _prop("EstArcFlashBoundary", "Est Arc Flash Boundary")
    comments: Optional[str] = _prop("Comments")


@dataclass
class ShortCircuit:
    """Short circuit duty of one device on one bus in one scenario."""
    id: Optional[str] = _prop("Id", "Equipment Name")
    bus_name: Optional[str] = _prop("BusName", "Bus Name")
    scenario: Optional[str] = _prop("Scenario")
    worst_case: Optional[bool] = _prop("WorstCase", "Worst Case")
    fault_type: Optional[str] = _prop("FaultType", "Fault Type")
    vpu: Optional[float] = _prop("Vpu")
    bus_base_kv: Optional[float] = _prop("BusBaseKV", "Bus Base kV")
    equipment_manufacturer: Optional[str] = _prop("EquipmentManufacturer", "Equipment Manufacturer")
    equipment_style: Optional[str] = _prop("EquipmentStyle", "Equipment Style")
    half_cycle_rating_ka: Optional[float] = _prop("HalfCycleRatingKA", "1/2 Cycle Rating")
    half_cycle_duty_ka: Optional[float] = _prop("HalfCycleDutyKA", "1/2 Cycle Duty")
    half_cycle_duty_percent: Optional[float] = _prop("HalfCycleDutyPercent", "1/2 Cycle Duty (%)")
    comments: Optional[str] = _prop("Comments")


# ===================
# FIELD KINDS AND KEY SHAPES
# ===================

class FieldKind(str, Enum):
    """Coercion class of a record field."""
    TEXT = "text"
    BOOLEAN = "boolean"
    ENUM = "enum"
    INTEGER = "integer"
    REAL = "real"
    OTHER = "other"


class KeyShape(Enum):
    """Number of values that identify a record within its type."""
    SINGLE = 1
    PAIR = 2
    TRIPLE = 3

    @property
    def arity(self) -> int:
        return self.value

    def build(self, values: tuple[str, ...]) -> Union[str, tuple[str, ...]]:
        """SINGLE keys are the bare id; wider keys are tuples."""
        if len(values) != self.arity:
            raise ValueError(f"{self.name} key needs {self.arity} values, got {len(values)}")
        return values[0] if self is KeyShape.SINGLE else tuple(values)


def format_key(key: Union[str, tuple[str, ...]]) -> str:
    """ "BUS-1" → "BUS-1"; ("BUS-1", "Max") → "(BUS-1, Max)" """
    if isinstance(key, tuple):
        return "(" + ", ".join(key) + ")"
    return key


Setter = Callable[[Any, Any], None]


@dataclass(frozen=True)
class FieldSpec:
    """One settable field of a record type."""
    property_name: str
    attribute: str
    kind: FieldKind
    value_type: Optional[type]
    description: str
    setter: Setter

    def get(self, record: Any) -> Any:
        return getattr(record, self.attribute)


@dataclass(frozen=True)
class RecordType:
    """A record class plus its setter dispatch table and key shape."""
    name: str
    record_class: type
    key_shape: KeyShape
    key_properties: tuple[str, ...]
    fields: dict[str, FieldSpec]
    identifier_property: str = "Id"

    def new_record(self) -> Any:
        return self.record_class()

    def setter_for(self, property_name: str) -> Optional[FieldSpec]:
        return self.fields.get(property_name)

    @property
    def scenario_property(self) -> Optional[str]:
        """Property holding the study scenario, for scenario-keyed types."""
        if self.key_shape is KeyShape.SINGLE:
            return None
        return "Scenario" if "Scenario" in self.key_properties else None

    def key_for(self, record: Any) -> Optional[Union[str, tuple[str, ...]]]:
        """
        Composite key of a populated record.

        Returns:
            The key, or None if any key value is blank
        """
        values = []
        for prop in self.key_properties:
            value = self.fields[prop].get(record)
            if value is None or (isinstance(value, str) and is_blank(value)):
                return None
            values.append(value if isinstance(value, str) else str(value))
        return self.key_shape.build(tuple(values))


def _field_kind(annotation: Any) -> tuple[FieldKind, Optional[type]]:
    # Unwrap Optional[X]
    if get_origin(annotation) is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        annotation = args[0] if len(args) == 1 else None
    if annotation is str:
        return FieldKind.TEXT, str
    if annotation is bool:
        return FieldKind.BOOLEAN, bool
    if annotation is int:
        return FieldKind.INTEGER, int
    if annotation is float:
        return FieldKind.REAL, float
    if isinstance(annotation, type) and issubclass(annotation, Enum):
        return FieldKind.ENUM, annotation
    return FieldKind.OTHER, annotation if isinstance(annotation, type) else None


def _make_setter(attribute: str) -> Setter:
    def setter(record: Any, value: Any) -> None:
        setattr(record, attribute, value)
    return setter


def build_record_type(
    name: str,
    record_class: type,
    key_shape: KeyShape,
    key_properties: tuple[str, ...]
) -> RecordType:
    """
    Build the dispatch table for a record dataclass.

    Raises:
        ValueError: If key properties do not match the key shape or the class
    """
    hints = get_type_hints(record_class)
    specs: dict[str, FieldSpec] = {}
    for f in fields(record_class):
        prop = f.metadata.get("property")
        if prop is None:
            continue
        kind, value_type = _field_kind(hints[f.name])
        specs[prop] = FieldSpec(
            property_name=prop,
            attribute=f.name,
            kind=kind,
            value_type=value_type,
            description=f.metadata.get("description", prop),
            setter=_make_setter(f.name),
        )

    if len(key_properties) != key_shape.arity:
        raise ValueError(f"{name}: {key_shape.name} key needs {key_shape.arity} properties")
    unknown = [p for p in key_properties if p not in specs]
    if unknown:
        raise ValueError(f"{name}: unknown key properties {unknown}")

    return RecordType(
        name=name,
        record_class=record_class,
        key_shape=key_shape,
        key_properties=key_properties,
        fields=specs,
    )


# ===================
# REGISTRY
# ===================

RECORD_TYPES: dict[str, RecordType] = {
    rt.name: rt
    for rt in (
        build_record_type("Bus", Bus, KeyShape.SINGLE, ("Id",)),
        build_record_type("LVBreaker", LVBreaker, KeyShape.SINGLE, ("Id",)),
        build_record_type("Fuse", Fuse, KeyShape.SINGLE, ("Id",)),
        build_record_type("Cable", Cable, KeyShape.SINGLE, ("Id",)),
        build_record_type("ArcFlash", ArcFlash, KeyShape.PAIR, ("Id", "Scenario")),
        build_record_type("ShortCircuit", ShortCircuit, KeyShape.TRIPLE, ("Id", "BusName", "Scenario")),
    )
}


def find_record_type(name: Optional[str]) -> Optional[RecordType]:
    """Look up a record type by name (case-insensitive)."""
    if not name:
        return None
    found = RECORD_TYPES.get(name)
    if found is not None:
        return found
    lowered = name.lower()
    for type_name, record_type in RECORD_TYPES.items():
        if type_name.lower() == lowered:
            return record_type
    return None


def get_record_type(name: str) -> RecordType:
    """
    Look up a record type by name.

    Raises:
        UnknownRecordTypeError: If no such type is declared
    """
    record_type = find_record_type(name)
    if record_type is None:
        raise UnknownRecordTypeError(name)
    return record_type
