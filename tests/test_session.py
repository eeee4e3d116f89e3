"""
Tests for the diagnostic session.
"""

import pytest
from datetime import datetime

from ebike_hmi.core.config import ProtocolConfig
from ebike_hmi.core.fields import (
    DRIVE_UNIT_FIELDS,
    FIELDS_BY_NAME,
    PRIMARY_FIELDS,
    ReadScope,
)
from ebike_hmi.core.record import FieldStatus, SubsystemStatus
from ebike_hmi.core.safety import SafetyManager
from ebike_hmi.core.session import ConnectionState, DiagnosticSession
from ebike_hmi.protocols.constants import DataIdentifier
from ebike_hmi.protocols.errors import (
    BlockedOperation,
    HandshakeRejected,
    HandshakeTimeout,
    MalformedFrame,
    NegativeResponse,
    SessionNotReady,
)
from ebike_hmi.protocols.frames import pad_frame
from ebike_hmi.sim.mock_display import MockDisplay, SimulationConfig
from ebike_hmi.transport.base import TransportError
from ebike_hmi.transport.mock_transport import MockTransport


class SilentAfterHandshake:
    """Display that completes the handshake and then never answers."""

    def process_frame(self, frame: bytes) -> bytes | None:
        if frame[:4] == bytes([0x00, 0x00, 0x01, 0x01]):
            return pad_frame(bytes([0x00, 0x01, 0x01, 0x00]))
        return None


class TestConnection:
    """Tests for the connection state machine."""

    def test_initial_state(self, session: DiagnosticSession):
        """Test a new session is disconnected."""
        assert session.state == ConnectionState.DISCONNECTED
        assert not session.is_ready

    def test_connect(self, session: DiagnosticSession, mock_transport: MockTransport,
                     mock_display: MockDisplay):
        """Test handshake moves the session to READY."""
        transitions = []
        session.add_state_callback(lambda old, new: transitions.append((old, new)))
        mock_transport.connect_mock_display(mock_display)

        session.connect(mock_transport)

        assert session.state == ConnectionState.READY
        assert transitions == [
            (ConnectionState.DISCONNECTED, ConnectionState.HANDSHAKE_IN_FLIGHT),
            (ConnectionState.HANDSHAKE_IN_FLIGHT, ConnectionState.READY),
        ]

    def test_handshake_timeout(self, session: DiagnosticSession, mock_transport: MockTransport):
        """Test silent display leaves the session disconnected."""
        with pytest.raises(HandshakeTimeout):
            session.connect(mock_transport)

        assert session.state == ConnectionState.DISCONNECTED
        assert not mock_transport.is_open()

    def test_handshake_rejected(self, session: DiagnosticSession, mock_transport: MockTransport):
        """Test wrong answer leaves the session disconnected."""
        mock_transport.connect_mock_display(MockDisplay(SimulationConfig(reject_handshake=True)))

        with pytest.raises(HandshakeRejected):
            session.connect(mock_transport)

        assert session.state == ConnectionState.DISCONNECTED

    def test_open_failure(self, session: DiagnosticSession, mock_transport: MockTransport):
        """Test open failure propagates and nothing is written."""
        mock_transport.simulate_failure(on_open=True)

        with pytest.raises(TransportError):
            session.connect(mock_transport)

        assert session.state == ConnectionState.DISCONNECTED
        assert mock_transport.get_sent_count() == 0

    def test_disconnect(self, ready_session: DiagnosticSession):
        """Test disconnect closes the transport."""
        transport = ready_session.transport

        ready_session.disconnect()

        assert ready_session.state == ConnectionState.DISCONNECTED
        assert not transport.is_open()
        assert ready_session.client is None

    def test_reconnect(self, ready_session: DiagnosticSession, mock_display: MockDisplay):
        """Test connecting again replaces the previous connection."""
        transport = MockTransport()
        transport.connect_mock_display(mock_display)

        ready_session.connect(transport)

        assert ready_session.is_ready
        assert ready_session.transport is transport

    def test_invalid_config_rejected(self):
        """Test unsupported data offset is rejected at construction."""
        with pytest.raises(ValueError):
            DiagnosticSession(ProtocolConfig(response_data_offset=7))


class TestReadField:
    """Tests for single field reads."""

    def test_read_before_connect(self, session: DiagnosticSession, mock_transport: MockTransport):
        """Test reading outside READY fails without touching the transport."""
        with pytest.raises(SessionNotReady):
            session.read_field(DataIdentifier.SERIAL_NUMBER)

        assert mock_transport.get_sent_count() == 0

    def test_serial_number(self, ready_session: DiagnosticSession):
        """Test serial number decoding from offset 8."""
        value = ready_session.read_field(DataIdentifier.SERIAL_NUMBER)

        assert value.ok
        assert value.name == "serialNumber"
        assert value.value == "0x37FFD705564E313046442000"

    def test_field_spec(self, ready_session: DiagnosticSession):
        """Test reading through a field table entry."""
        value = ready_session.read_field(FIELDS_BY_NAME["hardwareVersion"])

        assert value.value == "0.0.2.2"

    def test_unknown_identifier_negative(self, ready_session: DiagnosticSession):
        """Test protocol failures raise."""
        with pytest.raises(NegativeResponse):
            ready_session.read_field(0x1234)

    def test_timeout_is_unavailable(self, ready_session: DiagnosticSession):
        """Test an absent subsystem yields UNAVAILABLE instead of raising."""
        value = ready_session.read_field(DRIVE_UNIT_FIELDS[0])

        assert value.status == FieldStatus.UNAVAILABLE
        assert str(value) == "Not connected (timeout)"

    def test_device_gone(self, ready_session: DiagnosticSession):
        """Test unrecoverable transport errors drop the connection."""
        ready_session.transport.simulate_failure(on_io=True)

        with pytest.raises(TransportError):
            ready_session.read_field(DataIdentifier.SERIAL_NUMBER)

        assert ready_session.state == ConnectionState.DISCONNECTED

    def test_read_answered_with_write_code(self, ready_session: DiagnosticSession):
        """Test a read acknowledged with 0x6E is not reported as OK."""
        transport = ready_session.transport
        transport.connect_mock_display(None)
        transport.queue_response(
            pad_frame(bytes([0x01, 0x00, 0x3D, 0x0E, 0x22, 0x6E, 0x02, 0x42]))
        )

        with pytest.raises(MalformedFrame):
            ready_session.read_field(DataIdentifier.SERIAL_NUMBER)


class TestThreeByteHeader:
    """Tests for a display answering with the 3-byte response header."""

    @pytest.fixture
    def short_session(
        self, safety_manager: SafetyManager, mock_transport: MockTransport
    ) -> DiagnosticSession:
        config = ProtocolConfig(
            handshake_timeout_ms=50,
            read_timeout_ms=30,
            auxiliary_timeout_ms=20,
            poll_interval_ms=1,
            response_data_offset=5,
        )
        session = DiagnosticSession(config, safety_manager)
        mock_transport.connect_mock_display(
            MockDisplay(SimulationConfig(short_header=True))
        )
        session.connect(mock_transport)
        return session

    def test_read_all(self, short_session: DiagnosticSession):
        """Test fields decode from index 7 with the 3-byte header."""
        record = short_session.read_all()

        assert record.value_of("serialNumber") == "0x37FFD705564E313046442000"
        assert record.value_of("hardwareVersion") == "0.0.2.2"
        assert record.value_of("productCode") == "BUI255"

    def test_unknown_identifier_negative(self, short_session: DiagnosticSession):
        """Test a rejection is raised, not decoded as a value."""
        with pytest.raises(NegativeResponse) as exc_info:
            short_session.read_field(0x1234)

        assert exc_info.value.error_code == 0x31

    def test_set_date_time(self, short_session: DiagnosticSession):
        """Test the write acknowledgement is recognised."""
        assert short_session.set_date_time(datetime(2025, 3, 1, 8, 15))


class TestWriteField:
    """Tests for writes and the clock."""

    def test_set_date_time(self, ready_session: DiagnosticSession, mock_display: MockDisplay):
        """Test clock write payload and acknowledgement."""
        assert ready_session.set_date_time(datetime(2025, 3, 1, 8, 15))

        sent = ready_session.transport.get_last_sent()
        assert sent[5:13] == bytes([0x2E, 0x02, 0x3A, 25, 3, 1, 8, 15])
        assert mock_display.clock == datetime(2025, 3, 1, 8, 15)

    def test_clock_read_back(self, ready_session: DiagnosticSession):
        """Test the written clock is read back."""
        ready_session.set_date_time(datetime(2025, 3, 1, 8, 15))

        assert ready_session.read_field(DataIdentifier.PRESENT_DATE_TIME).value == "01.03.2025"
        assert ready_session.read_field(DataIdentifier.CURRENT_TIME).value == "08:15"

    def test_year_out_of_range(self, ready_session: DiagnosticSession):
        """Test years before 2000 are rejected locally."""
        with pytest.raises(ValueError):
            ready_session.set_date_time(datetime(1999, 12, 31, 23, 59))

    def test_write_without_positive_ack(self, ready_session: DiagnosticSession):
        """Test success requires the 0x6E response code."""
        transport = ready_session.transport
        transport.connect_mock_display(None)
        transport.queue_response(
            pad_frame(bytes([0x01, 0x00, 0x3D, 0x02, 0x2E, 0x62, 0x02, 0x3A]))
        )

        assert not ready_session.write_field(DataIdentifier.PRESENT_DATE_TIME, bytes(5))

    def test_protected_write(self, ready_session: DiagnosticSession,
                             safety_manager: SafetyManager):
        """Test identity identifiers cannot be written."""
        with pytest.raises(BlockedOperation):
            ready_session.write_field(DataIdentifier.SOFTWARE_VERSION, bytes(4))

        assert len(safety_manager.get_violations()) == 1

    def test_write_before_connect(self, session: DiagnosticSession):
        """Test writes also require READY."""
        with pytest.raises(SessionNotReady):
            session.write_field(DataIdentifier.PRESENT_DATE_TIME, bytes(5))


class TestReadAll:
    """Tests for full reads."""

    def test_primary(self, ready_session: DiagnosticSession):
        """Test all display fields are decoded."""
        record = ready_session.read_all()

        assert record.value_of("serialNumber") == "0x37FFD705564E313046442000"
        assert record.value_of("hardwareVersion") == "0.0.2.2"
        assert record.value_of("softwareVersion") == "5.9.2.0"
        assert record.value_of("productCode") == "BUI255"
        assert record.value_of("articleNumber") == "1270020909"
        assert record.value_of("componentType") == "Intuvia"
        assert record.value_of("currentTime") == "14:30"
        assert record.value_of("currentDate") == "15.06.2024"
        assert record.drive_unit.status == SubsystemStatus.NOT_QUERIED
        assert record.battery_management.status == SubsystemStatus.NOT_QUERIED

    def test_extended_without_subsystems(self, ready_session: DiagnosticSession):
        """Test absent drive unit and battery are reported as not connected."""
        record = ready_session.read_all(ReadScope.EXTENDED)

        assert record.get_summary()["ok"] == len(PRIMARY_FIELDS)
        for subsystem in (record.drive_unit, record.battery_management):
            assert subsystem.status == SubsystemStatus.NOT_CONNECTED
            assert subsystem.message
            assert all(
                v.status == FieldStatus.UNAVAILABLE for v in subsystem.fields.values()
            )

    def test_extended_with_subsystems(
        self, session: DiagnosticSession, mock_transport: MockTransport
    ):
        """Test connected subsystems are decoded."""
        mock_transport.connect_mock_display(
            MockDisplay(SimulationConfig(subsystems_connected=True))
        )
        session.connect(mock_transport)

        record = session.read_all(ReadScope.EXTENDED)

        assert record.drive_unit.status == SubsystemStatus.AVAILABLE
        assert record.drive_unit.fields["partNumber"].value == "0275007034"
        assert record.battery_management.fields["softwareVersion"].value == "4.2.0.1"

    def test_always_timeout(self, session: DiagnosticSession, mock_transport: MockTransport):
        """Test a display that never answers still yields a complete record."""
        mock_transport.connect_mock_display(SilentAfterHandshake())
        session.connect(mock_transport)

        record = session.read_all(ReadScope.EXTENDED)

        assert set(record.fields) == {spec.name for spec in PRIMARY_FIELDS}
        assert all(v.status == FieldStatus.UNAVAILABLE for v in record.fields.values())
        assert record.last_update is not None

    def test_not_connected(self, session: DiagnosticSession):
        """Test read_all outside READY marks every field instead of raising."""
        record = session.read_all()

        assert all(v.status == FieldStatus.ERROR for v in record.fields.values())

    def test_record_is_immutable(self, ready_session: DiagnosticSession):
        """Test returned records cannot be modified."""
        record = ready_session.read_all()

        with pytest.raises(TypeError):
            record.fields["serialNumber"] = None

    def test_subsystem_records_are_immutable(self, ready_session: DiagnosticSession):
        """Test drive unit and battery fields cannot be modified either."""
        record = ready_session.read_all(ReadScope.EXTENDED)

        with pytest.raises(TypeError):
            record.drive_unit.fields["partNumber"] = None
        with pytest.raises(TypeError):
            del record.battery_management.fields["softwareVersion"]

    def test_unexpected_code_marked(self, ready_session: DiagnosticSession):
        """Test a read answered with a foreign code yields an ERROR marker."""
        transport = ready_session.transport
        transport.connect_mock_display(None)
        transport.queue_response(
            pad_frame(bytes([0x01, 0x00, 0x3D, 0x0E, 0x22, 0x00, 0x00, 0x00]))
        )

        record = ready_session.read_all()

        assert record["serialNumber"].status == FieldStatus.ERROR
        assert record.get_summary()["ok"] == 0

    def test_partial_failure(self, session: DiagnosticSession, mock_transport: MockTransport):
        """Test one failing field does not abort the scan."""
        config = SimulationConfig()
        del config.display_values[DataIdentifier.PRODUCT_CODE]
        mock_transport.connect_mock_display(MockDisplay(config))
        session.connect(mock_transport)

        record = session.read_all()

        product = record["productCode"]
        assert product.status == FieldStatus.ERROR
        assert product.error_code == 0x31
        assert record.value_of("serialNumber") == "0x37FFD705564E313046442000"
