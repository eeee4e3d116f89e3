"""
Diagnostic Session

Owns the connection to one display:
- Connection state machine (handshake before anything else)
- Single field reads and writes
- Full reads driven by the field tables
- State change notifications
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
from typing import Callable

from ebike_hmi.core.app_logging import (
    get_logger,
    log_audit_event,
    log_diagnostic_action,
)
from ebike_hmi.core.config import ProtocolConfig
from ebike_hmi.core.fields import (
    BATTERY_FIELDS,
    DRIVE_UNIT_FIELDS,
    FIELDS_BY_IDENTIFIER,
    PRIMARY_FIELDS,
    FieldSpec,
    ReadScope,
)
from ebike_hmi.core.record import (
    DiagnosticRecord,
    FieldStatus,
    FieldValue,
    SubsystemRecord,
    SubsystemStatus,
)
from ebike_hmi.core.safety import SafetyManager
from ebike_hmi.protocols.constants import CURRENT_DATE, ResponseCode
from ebike_hmi.protocols.decoders import decode_hex, extract_payload
from ebike_hmi.protocols.errors import (
    CODE_NOT_READY,
    HandshakeError,
    SessionNotReady,
    TransactionTimeout,
    UDSError,
)
from ebike_hmi.protocols.handshake import perform_handshake
from ebike_hmi.protocols.uds_client import UDSClient
from ebike_hmi.transport.base import BaseTransport, TransportError

logger = get_logger(__name__)


class ConnectionState(Enum):
    """Session state machine states."""

    DISCONNECTED = auto()
    HANDSHAKE_IN_FLIGHT = auto()
    READY = auto()


StateChangeCallback = Callable[[ConnectionState, ConnectionState], None]


@dataclass(frozen=True)
class _Subsystem:
    label: str
    fields: tuple[FieldSpec, ...]


DRIVE_UNIT = _Subsystem("Drive unit", DRIVE_UNIT_FIELDS)
BATTERY_MANAGEMENT = _Subsystem("Battery management system", BATTERY_FIELDS)


class DiagnosticSession:
    """
    Serial, blocking diagnostic session over one transport.

    The transport is owned by the session between connect() and
    disconnect(); nothing else may read from or write to it.
    """

    def __init__(
        self,
        config: ProtocolConfig | None = None,
        safety_manager: SafetyManager | None = None,
    ) -> None:
        self._config = config or ProtocolConfig()
        self._config.validate()
        self._safety = safety_manager or SafetyManager()
        self._state = ConnectionState.DISCONNECTED
        self._transport: BaseTransport | None = None
        self._client: UDSClient | None = None
        self._state_callbacks: list[StateChangeCallback] = []

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """True once the handshake has completed."""
        return self._state == ConnectionState.READY

    @property
    def transport(self) -> BaseTransport | None:
        return self._transport

    @property
    def client(self) -> UDSClient | None:
        """UDS client of the current connection."""
        return self._client

    @property
    def config(self) -> ProtocolConfig:
        return self._config

    def add_state_callback(self, callback: StateChangeCallback) -> None:
        """Add a callback for state changes."""
        self._state_callbacks.append(callback)

    def remove_state_callback(self, callback: StateChangeCallback) -> None:
        """Remove a state change callback."""
        if callback in self._state_callbacks:
            self._state_callbacks.remove(callback)

    def connect(self, transport: BaseTransport) -> None:
        """
        Open the transport and run the handshake.

        Args:
            transport: Transport to a display, not yet opened

        Raises:
            TransportError: If the transport cannot be opened
            HandshakeTimeout: If the display does not answer
            HandshakeRejected: If the display answers unexpectedly
        """
        if self._state != ConnectionState.DISCONNECTED:
            logger.warning("Already connected, disconnecting first")
            self.disconnect()

        transport.open()
        self._transport = transport

        self._set_state(ConnectionState.HANDSHAKE_IN_FLIGHT)

        try:
            perform_handshake(
                transport,
                timeout_ms=self._config.handshake_timeout_ms,
                poll_interval_ms=self._config.poll_interval_ms,
            )
        except (HandshakeError, TransportError) as e:
            logger.error(f"Connection failed: {e}")
            self._release_transport()
            self._set_state(ConnectionState.DISCONNECTED)
            raise

        self._client = UDSClient(
            transport,
            safety_manager=self._safety,
            timeout_ms=self._config.read_timeout_ms,
            poll_interval_ms=self._config.poll_interval_ms,
            data_offset=self._config.response_data_offset,
        )
        self._set_state(ConnectionState.READY)

        log_audit_event(
            "connection_established",
            "Handshake completed",
            {"transport": transport.get_info()},
        )

    def disconnect(self) -> None:
        """Close the transport and return to DISCONNECTED."""
        if self._transport is None and self._state == ConnectionState.DISCONNECTED:
            return

        self._release_transport()
        self._set_state(ConnectionState.DISCONNECTED)

        log_audit_event("connection_closed", "Disconnected from display")
        logger.info("Disconnected")

    def read_field(
        self, field: FieldSpec | int, timeout_ms: int | None = None
    ) -> FieldValue:
        """
        Read and decode one field.

        Args:
            field: Field table entry, or a bare identifier (decoded as
                hex unless it is a known display field)
            timeout_ms: Response timeout (default: per field table)

        Returns:
            Decoded value, or an UNAVAILABLE marker if the display did
            not answer in time

        Raises:
            SessionNotReady: If called before a successful handshake
            NegativeResponse, EmptyResponse, MalformedFrame: Protocol failure
            TransportError: Device failure
        """
        spec = self._resolve_field(field)
        client = self._require_ready()

        if timeout_ms is None:
            timeout_ms = (
                self._config.auxiliary_timeout_ms
                if spec.auxiliary
                else self._config.read_timeout_ms
            )

        try:
            response = client.read_data_by_id(spec.identifier, timeout_ms=timeout_ms)
        except TransactionTimeout as e:
            log_diagnostic_action(
                "read_field", spec.identifier, success=False, error=e.message,
                details={"field": spec.name},
            )
            return FieldValue(
                name=spec.name,
                status=FieldStatus.UNAVAILABLE,
                error=e.message,
                error_code=e.code,
            )
        except TransportError as e:
            self._handle_transport_error(e)
            raise

        payload = extract_payload(
            response.frame, spec.length, self._config.response_data_offset
        )
        value = spec.decoder(payload)

        log_diagnostic_action(
            "read_field", spec.identifier,
            details={"field": spec.name, "value": value},
        )
        return FieldValue(name=spec.name, status=FieldStatus.OK, value=value)

    def write_field(self, identifier: int, payload: bytes) -> bool:
        """
        Write one identifier.

        Returns:
            True iff the display acknowledged with a positive write
            response (0x6E)

        Raises:
            SessionNotReady: If called before a successful handshake
            BlockedOperation: If the identifier is protected
            UDSError: Timeout or protocol failure
            TransportError: Device failure
        """
        client = self._require_ready()

        try:
            response = client.write_data_by_id(identifier, bytes(payload))
        except TransportError as e:
            self._handle_transport_error(e)
            raise
        except UDSError as e:
            log_diagnostic_action("write_field", identifier, success=False, error=str(e))
            raise

        success = response.response_code == ResponseCode.POSITIVE_WRITE

        log_audit_event(
            "identifier_written",
            f"DID 0x{identifier:04X} {'acknowledged' if success else 'not acknowledged'}",
            {"payload": bytes(payload).hex(), "response_code": response.response_code},
        )
        return success

    def set_date_time(self, when: datetime | None = None) -> bool:
        """
        Set the display clock.

        Args:
            when: Date and time to set (default: now)

        Raises:
            ValueError: If the year cannot be represented (2000-2255)
        """
        when = when or datetime.now()
        year_offset = when.year - 2000
        if not 0 <= year_offset <= 0xFF:
            raise ValueError(f"Year out of range for the display: {when.year}")

        payload = bytes([year_offset, when.month, when.day, when.hour, when.minute])
        logger.info(f"Setting display clock to {when:%d.%m.%Y %H:%M}")
        return self.write_field(CURRENT_DATE, payload)

    def read_all(self, scope: ReadScope = ReadScope.PRIMARY) -> DiagnosticRecord:
        """
        Read every field of the given scope.

        Never raises: each field that could not be read carries a
        marker instead of a value.
        """
        logger.info(f"Reading all fields ({scope.value})")

        fields = {spec.name: self._read_field_marked(spec) for spec in PRIMARY_FIELDS}

        if scope == ReadScope.EXTENDED:
            drive_unit = self._read_subsystem(DRIVE_UNIT)
            battery = self._read_subsystem(BATTERY_MANAGEMENT)
        else:
            drive_unit = SubsystemRecord.not_queried()
            battery = SubsystemRecord.not_queried()

        record = DiagnosticRecord(
            fields=fields,
            drive_unit=drive_unit,
            battery_management=battery,
            last_update=datetime.now(),
        )
        logger.info(f"Read complete: {record.get_summary()}")
        return record

    def _read_field_marked(self, spec: FieldSpec) -> FieldValue:
        """Read one field, converting failures to an ERROR marker."""
        try:
            return self.read_field(spec)
        except UDSError as e:
            log_diagnostic_action(
                "read_field", spec.identifier, success=False, error=str(e),
                details={"field": spec.name},
            )
            return FieldValue(
                name=spec.name,
                status=FieldStatus.ERROR,
                error=e.message,
                error_code=e.code,
            )
        except TransportError as e:
            return FieldValue(name=spec.name, status=FieldStatus.ERROR, error=e.message)

    def _read_subsystem(self, subsystem: _Subsystem) -> SubsystemRecord:
        """Read a subsystem's fields and derive its availability."""
        values = {spec.name: self._read_field_marked(spec) for spec in subsystem.fields}
        statuses = {value.status for value in values.values()}

        if FieldStatus.UNAVAILABLE in statuses:
            status = SubsystemStatus.NOT_CONNECTED
            message = f"{subsystem.label} is not connected to the display or not available"
        elif FieldStatus.ERROR in statuses:
            status = SubsystemStatus.ERROR
            message = f"{subsystem.label} returned errors"
        else:
            status = SubsystemStatus.AVAILABLE
            message = None

        logger.info(f"{subsystem.label}: {status.value}")
        return SubsystemRecord(status=status, message=message, fields=values)

    def _resolve_field(self, field: FieldSpec | int) -> FieldSpec:
        if isinstance(field, FieldSpec):
            return field
        known = FIELDS_BY_IDENTIFIER.get(field)
        if known is not None:
            return known
        return FieldSpec(name=f"0x{field:04X}", identifier=field, decoder=decode_hex)

    def _require_ready(self) -> UDSClient:
        if self._state != ConnectionState.READY or self._client is None:
            raise SessionNotReady(
                message=f"Session not ready (state: {self._state.name})",
                code=CODE_NOT_READY,
            )
        return self._client

    def _handle_transport_error(self, error: TransportError) -> None:
        """Drop the connection when the device is gone for good."""
        if not error.recoverable:
            logger.error(f"Transport lost: {error}")
            self._release_transport()
            self._set_state(ConnectionState.DISCONNECTED)

    def _release_transport(self) -> None:
        if self._transport is not None and self._transport.is_open():
            try:
                self._transport.close()
            except TransportError as e:
                logger.warning(f"Error closing transport: {e}")
        self._transport = None
        self._client = None

    def _set_state(self, new_state: ConnectionState) -> None:
        """Update state and notify callbacks."""
        old_state = self._state
        self._state = new_state

        if old_state != new_state:
            logger.debug(f"Connection state: {old_state.name} -> {new_state.name}")
            for callback in self._state_callbacks:
                try:
                    callback(old_state, new_state)
                except Exception as e:
                    logger.error(f"State callback error: {e}")
