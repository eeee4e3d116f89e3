"""
Simulated Display

Deterministic display responder for simulation mode and tests. Answers
the handshake, identifier reads and the date/time write with the frame
layout observed on real hardware.
"""

from dataclasses import dataclass, field
from datetime import datetime

from ebike_hmi.core.app_logging import get_logger
from ebike_hmi.protocols.constants import (
    HANDSHAKE_RESPONSE_HEADER,
    DataIdentifier,
    ResponseCode,
    UDSNegativeResponse,
    UDSServiceID,
)
from ebike_hmi.protocols.frames import (
    encode_handshake_request,
    identify_request,
    pad_frame,
)

logger = get_logger(__name__)

DATE_TIME_PAYLOAD_LENGTH = 5

SUBSYSTEM_IDENTIFIERS = frozenset(
    {
        DataIdentifier.PART_NUMBER,
        DataIdentifier.SUBSYSTEM_SERIAL_NUMBER,
        DataIdentifier.SUBSYSTEM_HW_VERSION,
        DataIdentifier.SUBSYSTEM_SW_VERSION,
    }
)


def _default_display_values() -> dict[int, bytes]:
    return {
        DataIdentifier.SERIAL_NUMBER: bytes.fromhex("37FFD705564E313046442000"),
        DataIdentifier.HARDWARE_VERSION: bytes([0, 0, 2, 2]),
        DataIdentifier.SOFTWARE_VERSION: bytes([5, 9, 2, 0]),
        DataIdentifier.PRODUCT_CODE: b"BUI255",
        DataIdentifier.HMI_PART_NUMBER: b"1270020909",
        DataIdentifier.COMPONENT_TYPE: bytes([0x0B]),
    }


def _default_subsystem_values() -> dict[int, bytes]:
    return {
        DataIdentifier.PART_NUMBER: b"0275007034",
        DataIdentifier.SUBSYSTEM_SERIAL_NUMBER: bytes.fromhex("4B1A00C3D2E1F00102030405"),
        DataIdentifier.SUBSYSTEM_HW_VERSION: bytes([1, 0, 0, 0]),
        DataIdentifier.SUBSYSTEM_SW_VERSION: bytes([4, 2, 0, 1]),
    }


@dataclass
class SimulationConfig:
    """Configuration for the simulated display."""

    display_values: dict[int, bytes] = field(default_factory=_default_display_values)
    subsystem_values: dict[int, bytes] = field(default_factory=_default_subsystem_values)

    # Drive unit and battery share identifiers; both answer or neither does
    subsystems_connected: bool = False

    clock: datetime = field(default_factory=lambda: datetime(2024, 6, 15, 14, 30))

    # Frame layout
    header_byte: int = 0x3D  # index 2, varies between firmware revisions
    short_header: bool = False  # 3-byte header: no index-2 byte, data at 5
    echo_identifier: bool = True

    # Failure injection
    answer_handshake: bool = True
    reject_handshake: bool = False


class MockDisplay:
    """
    Simulated display.

    process_frame() takes one written frame and returns the frame the
    display would send back, or None when it stays silent.
    """

    def __init__(self, config: SimulationConfig | None = None) -> None:
        self._config = config or SimulationConfig()
        self._clock = self._config.clock
        self._requests: list[tuple[int, int]] = []

    @property
    def clock(self) -> datetime:
        """Current simulated clock setting."""
        return self._clock

    @property
    def requests(self) -> list[tuple[int, int]]:
        """(service id, identifier) of every UDS request received."""
        return self._requests.copy()

    def process_frame(self, frame: bytes) -> bytes | None:
        """
        Answer one frame.

        Args:
            frame: 64-byte frame as written by the client

        Returns:
            64-byte response frame, or None for no answer
        """
        if bytes(frame) == encode_handshake_request():
            return self._handle_handshake()

        request = identify_request(frame)
        if request is None:
            logger.debug(f"[SIM] Ignoring unknown frame: {bytes(frame[:8]).hex(' ')}")
            return None

        service_id, identifier = request
        self._requests.append(request)
        logger.debug(f"[SIM] Request: {service_id:02X} {identifier:04X}")

        handlers = {
            UDSServiceID.READ_DATA_BY_ID: self._handle_read,
            UDSServiceID.WRITE_DATA_BY_ID: self._handle_write,
        }

        handler = handlers.get(service_id)
        if handler is None:
            return self._negative_response(service_id, UDSNegativeResponse.SERVICE_NOT_SUPPORTED)

        return handler(identifier, bytes(frame[8:]))

    def _handle_handshake(self) -> bytes | None:
        if not self._config.answer_handshake:
            return None
        if self._config.reject_handshake:
            return pad_frame(bytes([0x00, 0x01, 0x00, 0x00]))
        return pad_frame(HANDSHAKE_RESPONSE_HEADER)

    def _handle_read(self, identifier: int, _extra: bytes) -> bytes | None:
        """Handle ReadDataByIdentifier."""
        if identifier in SUBSYSTEM_IDENTIFIERS:
            if not self._config.subsystems_connected:
                return None
            value = self._config.subsystem_values.get(identifier)
        elif identifier == DataIdentifier.CURRENT_TIME:
            value = bytes([self._clock.hour, self._clock.minute])
        elif identifier == DataIdentifier.PRESENT_DATE_TIME:
            value = bytes([self._clock.year - 2000, self._clock.month, self._clock.day])
        else:
            value = self._config.display_values.get(identifier)

        if value is None:
            return self._negative_response(
                UDSServiceID.READ_DATA_BY_ID, UDSNegativeResponse.REQUEST_OUT_OF_RANGE
            )

        return self._positive_response(
            UDSServiceID.READ_DATA_BY_ID, ResponseCode.POSITIVE_READ, identifier, value
        )

    def _handle_write(self, identifier: int, extra: bytes) -> bytes:
        """Handle WriteDataByIdentifier; only the clock is writable."""
        if identifier != DataIdentifier.PRESENT_DATE_TIME:
            return self._negative_response(
                UDSServiceID.WRITE_DATA_BY_ID, UDSNegativeResponse.REQUEST_OUT_OF_RANGE
            )

        year, month, day, hour, minute = extra[:DATE_TIME_PAYLOAD_LENGTH]
        try:
            self._clock = datetime(2000 + year, month, day, hour, minute)
        except ValueError:
            return self._negative_response(
                UDSServiceID.WRITE_DATA_BY_ID, UDSNegativeResponse.REQUEST_OUT_OF_RANGE
            )

        logger.info(f"[SIM] Clock set to {self._clock:%d.%m.%Y %H:%M}")
        return self._positive_response(
            UDSServiceID.WRITE_DATA_BY_ID, ResponseCode.POSITIVE_WRITE, identifier, b""
        )

    def _positive_response(
        self, service_id: int, code: int, identifier: int, payload: bytes
    ) -> bytes:
        """Build a positive response frame."""
        data = identifier.to_bytes(2, "big") if self._config.echo_identifier else b""
        data += payload
        return pad_frame(self._header(len(data), service_id, code) + data)

    def _negative_response(self, service_id: int, nrc: int) -> bytes:
        """Build a negative response frame."""
        header = self._header(2, service_id, ResponseCode.NEGATIVE)
        return pad_frame(header + bytes([service_id, nrc]))

    def _header(self, length: int, service_id: int, code: int) -> bytes:
        if self._config.short_header:
            return bytes([0x01, 0x00, length, service_id, code])
        return bytes([0x01, 0x00, self._config.header_byte, length, service_id, code])
