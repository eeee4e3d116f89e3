"""
Diagnostic Record

Result of one full read: every field slot holds either a decoded value
or a typed marker saying why there is none. Records are immutable once
returned and can be exported to JSON or YAML.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from ebike_hmi.core.app_logging import get_logger

logger = get_logger(__name__)


class FieldStatus(Enum):
    """Outcome of reading one field."""

    OK = "ok"
    UNAVAILABLE = "unavailable"  # no answer, hardware likely absent
    ERROR = "error"  # answer arrived but was unusable
    NOT_QUERIED = "not_queried"


class SubsystemStatus(Enum):
    """Availability of a subsystem behind the display."""

    AVAILABLE = "available"
    NOT_CONNECTED = "not_connected"
    NOT_QUERIED = "not_queried"
    ERROR = "error"


@dataclass(frozen=True)
class FieldValue:
    """Decoded value or error marker for one field."""

    name: str
    status: FieldStatus
    value: str | None = None
    error: str | None = None
    error_code: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == FieldStatus.OK

    def __str__(self) -> str:
        if self.status == FieldStatus.OK:
            return self.value or ""
        if self.status == FieldStatus.UNAVAILABLE:
            return "Not connected (timeout)"
        if self.status == FieldStatus.NOT_QUERIED:
            return "Not queried"
        if self.error_code is not None:
            return f"Error 0x{self.error_code:02X}: {self.error}"
        return f"Error: {self.error}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.value is not None:
            data["value"] = self.value
        if self.error is not None:
            data["error"] = self.error
        if self.error_code is not None:
            data["errorCode"] = self.error_code
        return data


@dataclass(frozen=True)
class SubsystemRecord:
    """Fields of the drive unit or battery management system."""

    status: SubsystemStatus
    message: str | None = None
    fields: Mapping[str, FieldValue] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def not_queried(cls) -> "SubsystemRecord":
        return cls(status=SubsystemStatus.NOT_QUERIED)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.message:
            data["message"] = self.message
        for name, value in self.fields.items():
            data[name] = value.to_dict()
        return data


@dataclass(frozen=True)
class DiagnosticRecord:
    """
    Snapshot of everything one full read collected.

    Field mappings, including those of the subsystem records, are
    read-only views; building a record is the session's job, not the
    caller's.
    """

    fields: Mapping[str, FieldValue]
    drive_unit: SubsystemRecord = field(default_factory=SubsystemRecord.not_queried)
    battery_management: SubsystemRecord = field(default_factory=SubsystemRecord.not_queried)
    last_update: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def __getitem__(self, name: str) -> FieldValue:
        return self.fields[name]

    def value_of(self, name: str) -> str | None:
        """Decoded value of a field, None if it has none."""
        entry = self.fields.get(name)
        return entry.value if entry is not None else None

    def get_summary(self) -> dict[str, int]:
        """Count fields per status."""
        summary = {status.value: 0 for status in FieldStatus}
        for entry in self.fields.values():
            summary[entry.status.value] += 1
        return summary

    def to_dict(self) -> dict[str, Any]:
        """Export for serialization."""
        data: dict[str, Any] = {
            name: value.to_dict() for name, value in self.fields.items()
        }
        data["driveUnit"] = self.drive_unit.to_dict()
        data["batteryManagement"] = self.battery_management.to_dict()
        data["lastUpdate"] = {"date": self.last_update.isoformat()}
        return data


def save_record(record: DiagnosticRecord, path: Path) -> None:
    """
    Write a record to disk.

    The format follows the suffix: ``.yaml``/``.yml`` for YAML,
    anything else JSON.

    Raises:
        OSError: If the file cannot be written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(record.to_dict(), f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(record.to_dict(), f, indent=2)

    logger.info(f"Record exported to {path}")
