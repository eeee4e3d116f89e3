"""
Field Tables

Declarative description of every field a full read collects. Each entry
names the identifier to request, where its payload lives and how to
decode it, so the session reads all of them through one code path.
"""

from dataclasses import dataclass
from enum import Enum

from ebike_hmi.protocols.constants import DataIdentifier
from ebike_hmi.protocols.decoders import (
    Decoder,
    decode_article_number,
    decode_ascii,
    decode_component_type,
    decode_date,
    decode_serial_number,
    decode_time,
    decode_version,
)


class ReadScope(Enum):
    """How much a full read collects."""

    PRIMARY = "primary"  # display only
    EXTENDED = "extended"  # display, drive unit and battery system


@dataclass(frozen=True)
class FieldSpec:
    """One readable field."""

    name: str
    identifier: int
    decoder: Decoder
    length: int | None = None  # None: rest of frame
    auxiliary: bool = False  # subsystem that may be physically absent

    @property
    def label(self) -> str:
        """Human-readable label derived from the camelCase name."""
        words = []
        current = ""
        for char in self.name:
            if char.isupper() and current:
                words.append(current)
                current = char
            else:
                current += char
        words.append(current)
        return " ".join(w.capitalize() for w in words)


PRIMARY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("serialNumber", DataIdentifier.SERIAL_NUMBER, decode_serial_number, 12),
    FieldSpec("hardwareVersion", DataIdentifier.HARDWARE_VERSION, decode_version, 4),
    FieldSpec("softwareVersion", DataIdentifier.SOFTWARE_VERSION, decode_version, 4),
    FieldSpec("productCode", DataIdentifier.PRODUCT_CODE, decode_ascii, 6),
    FieldSpec("articleNumber", DataIdentifier.HMI_PART_NUMBER, decode_article_number, 10),
    FieldSpec("componentType", DataIdentifier.COMPONENT_TYPE, decode_component_type, 1),
    FieldSpec("currentTime", DataIdentifier.CURRENT_TIME, decode_time, 2),
    FieldSpec("currentDate", DataIdentifier.PRESENT_DATE_TIME, decode_date, 3),
)


def _subsystem_fields() -> tuple[FieldSpec, ...]:
    # Drive unit and battery system answer the same identifiers
    return (
        FieldSpec("partNumber", DataIdentifier.PART_NUMBER, decode_article_number, 10, True),
        FieldSpec(
            "serialNumber", DataIdentifier.SUBSYSTEM_SERIAL_NUMBER, decode_serial_number, 12, True
        ),
        FieldSpec("hardwareVersion", DataIdentifier.SUBSYSTEM_HW_VERSION, decode_version, 4, True),
        FieldSpec("softwareVersion", DataIdentifier.SUBSYSTEM_SW_VERSION, decode_version, 4, True),
    )


DRIVE_UNIT_FIELDS: tuple[FieldSpec, ...] = _subsystem_fields()
BATTERY_FIELDS: tuple[FieldSpec, ...] = _subsystem_fields()

FIELDS_BY_NAME: dict[str, FieldSpec] = {f.name: f for f in PRIMARY_FIELDS}
FIELDS_BY_IDENTIFIER: dict[int, FieldSpec] = {f.identifier: f for f in PRIMARY_FIELDS}
