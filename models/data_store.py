"""
Keyed target store for imported records.

One dict per record type, keyed by the type's composite key. A store can
receive several sequential imports (e.g. one project built from many
files). It is not thread-safe; concurrent imports need separate stores.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from models.records import RECORD_TYPES

Key = Union[str, tuple[str, ...]]


@dataclass
class DataStore:
    """Imported records per type, plus the software version they came from."""
    software_version: Optional[str] = None
    entries: dict[str, dict[Key, Any]] = field(default_factory=dict)

    def collection(self, type_name: str) -> dict[Key, Any]:
        """Records of one type (created empty on first use)."""
        return self.entries.setdefault(type_name, {})

    def contains(self, type_name: str, key: Key) -> bool:
        return key in self.entries.get(type_name, {})

    def add(self, type_name: str, key: Key, record: Any) -> bool:
        """
        Insert a record unless its key already exists.

        Returns:
            True if inserted, False for a duplicate (existing record kept)
        """
        records = self.collection(type_name)
        if key in records:
            return False
        records[key] = record
        return True

    def get(self, type_name: str, key: Key) -> Optional[Any]:
        return self.entries.get(type_name, {}).get(key)

    def counts(self) -> dict[str, int]:
        """Record count per type, including declared types with no records."""
        counts = {name: 0 for name in RECORD_TYPES}
        for name, records in self.entries.items():
            counts[name] = len(records)
        return counts

    @property
    def total(self) -> int:
        return sum(len(records) for records in self.entries.values())

    def scenarios(self) -> set[str]:
        """Distinct scenarios across all scenario-keyed records."""
        found = set()
        for name, records in self.entries.items():
            record_type = RECORD_TYPES.get(name)
            if record_type is None or record_type.scenario_property is None:
                continue
            spec = record_type.fields[record_type.scenario_property]
            for record in records.values():
                value = spec.get(record)
                if value:
                    found.add(value)
        return found

    # ===================
    # TYPED ACCESSORS
    # ===================

    @property
    def buses(self) -> dict[Key, Any]:
        return self.collection("Bus")

    @property
    def lv_breakers(self) -> dict[Key, Any]:
        return self.collection("LVBreaker")

    @property
    def fuses(self) -> dict[Key, Any]:
        return self.collection("Fuse")

    @property
    def cables(self) -> dict[Key, Any]:
        return self.collection("Cable")

    @property
    def arc_flash(self) -> dict[Key, Any]:
        return self.collection("ArcFlash")

    @property
    def short_circuits(self) -> dict[Key, Any]:
        return self.collection("ShortCircuit")
