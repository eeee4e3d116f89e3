"""
UDS Client

One request, one response, bounded wait. Wraps the transport with
frame encoding, safety checks, response validation and a protocol trace.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from ebike_hmi.core.app_logging import get_logger, log_protocol_frame
from ebike_hmi.core.safety import SafetyManager
from ebike_hmi.protocols.constants import (
    DATA_OFFSET_4_BYTE_HEADER,
    ResponseCode,
    UDSServiceID,
    negative_response_name,
)
from ebike_hmi.protocols.errors import (
    CODE_BLOCKED,
    CODE_EMPTY,
    CODE_MALFORMED,
    CODE_TIMEOUT,
    BlockedOperation,
    EmptyResponse,
    MalformedFrame,
    NegativeResponse,
    TransactionTimeout,
)
from ebike_hmi.protocols.frames import (
    UdsResponse,
    decode_uds_response,
    encode_uds_request,
)
from ebike_hmi.transport.base import BaseTransport

logger = get_logger(__name__)

DEFAULT_READ_TIMEOUT_MS = 3000
DEFAULT_POLL_INTERVAL_MS = 10


@dataclass
class TraceEntry:
    """Protocol trace entry."""

    timestamp: datetime
    direction: str  # "TX" or "RX"
    service_id: int
    identifier: int
    frame: bytes
    description: str


class UDSClient:
    """
    UDS transaction layer over a frame transport.

    The wire format has no request/response correlation, so at most
    one transaction is in flight per client; a lock enforces it.
    """

    def __init__(
        self,
        transport: BaseTransport,
        safety_manager: SafetyManager | None = None,
        timeout_ms: int = DEFAULT_READ_TIMEOUT_MS,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        data_offset: int = DATA_OFFSET_4_BYTE_HEADER,
    ) -> None:
        """
        Initialize UDS client.

        Args:
            transport: Open transport for frame I/O
            safety_manager: Safety manager for operation validation
            timeout_ms: Default response timeout
            poll_interval_ms: Delay between transport polls
            data_offset: Data start index in response frames
        """
        self._transport = transport
        self._safety = safety_manager or SafetyManager()
        self._timeout_ms = timeout_ms
        self._poll_interval_ms = poll_interval_ms
        self._data_offset = data_offset
        self._lock = threading.Lock()
        self._trace: list[TraceEntry] = []
        self._trace_callbacks: list[Callable[[TraceEntry], None]] = []

    @property
    def trace(self) -> list[TraceEntry]:
        """Get protocol trace."""
        return self._trace.copy()

    @property
    def transport(self) -> BaseTransport:
        return self._transport

    def add_trace_callback(self, callback: Callable[[TraceEntry], None]) -> None:
        """Add callback for trace entries."""
        self._trace_callbacks.append(callback)

    def clear_trace(self) -> None:
        """Clear protocol trace."""
        self._trace.clear()

    def send_request(
        self,
        service_id: int,
        identifier: int,
        extra: bytes = b"",
        timeout_ms: int | None = None,
    ) -> UdsResponse:
        """
        Send a UDS request and wait for exactly one response.

        Args:
            service_id: UDS service ID
            identifier: 16-bit data identifier
            extra: Additional request bytes
            timeout_ms: Response timeout (default: client timeout)

        Returns:
            Validated response (never a negative one)

        Raises:
            BlockedOperation: Service refused by the safety manager
            TransactionTimeout: No frame within the timeout
            MalformedFrame: Frame too short, foreign header, or a read
                answered with anything but 0x62
            NegativeResponse: Display answered 0x7F
            EmptyResponse: Positive read acknowledgement without data
            TransportError: Write/read failure
        """
        if not self._safety.check_service(service_id):
            raise BlockedOperation(
                message=self._safety.get_blocked_message(f"Service 0x{service_id:02X}"),
                code=CODE_BLOCKED,
                service_id=service_id,
            )

        timeout = self._timeout_ms if timeout_ms is None else timeout_ms
        request = encode_uds_request(service_id, identifier, extra)

        with self._lock:
            self._add_trace(
                "TX", service_id, identifier, request,
                f"Request 0x{service_id:02X} DID 0x{identifier:04X}",
            )
            self._transport.write(request)

            frame = self._transport.receive_within(timeout, self._poll_interval_ms)

        if frame is None:
            raise TransactionTimeout(
                message=f"No response within {timeout} ms",
                code=CODE_TIMEOUT,
                service_id=service_id,
            )

        return self._parse_response(service_id, identifier, frame)

    def _parse_response(
        self, service_id: int, identifier: int, frame: bytes
    ) -> UdsResponse:
        """Decode and validate one response frame."""
        try:
            response = decode_uds_response(frame, self._data_offset)
        except MalformedFrame as e:
            e.service_id = service_id
            self._add_trace("RX", service_id, identifier, frame, f"Malformed: {e.message}")
            raise

        if response.response_code == ResponseCode.NEGATIVE:
            rejected = response.data[0] if len(response.data) > 0 else service_id
            error_code = response.data[1] if len(response.data) > 1 else 0
            error_name = negative_response_name(error_code)
            self._add_trace(
                "RX", service_id, identifier, frame,
                f"Negative: {error_name} (0x{error_code:02X})",
            )
            raise NegativeResponse(
                message=error_name,
                code=error_code,
                service_id=service_id,
                raw_response=bytes(frame),
                rejected_service=rejected,
            )

        if (
            service_id == UDSServiceID.READ_DATA_BY_ID
            and response.response_code != ResponseCode.POSITIVE_READ
        ):
            self._add_trace(
                "RX", service_id, identifier, frame,
                f"Unexpected response code 0x{response.response_code:02X}",
            )
            raise MalformedFrame(
                message=(
                    f"Unexpected response code 0x{response.response_code:02X} "
                    "to a read request"
                ),
                code=CODE_MALFORMED,
                service_id=service_id,
                raw_response=bytes(frame),
            )

        if response.response_code == ResponseCode.POSITIVE_READ and response.data_length == 0:
            self._add_trace("RX", service_id, identifier, frame, "Empty positive response")
            raise EmptyResponse(
                message="Positive response without data",
                code=CODE_EMPTY,
                service_id=service_id,
                raw_response=bytes(frame),
            )

        if response.response_code == ResponseCode.POSITIVE_READ:
            response = self._check_identifier_echo(response, identifier)

        self._add_trace(
            "RX", service_id, identifier, frame,
            f"Response code 0x{response.response_code:02X}",
        )
        return response

    def _check_identifier_echo(self, response: UdsResponse, identifier: int) -> UdsResponse:
        """
        Flag responses whose identifier echo is not where the layout puts it.

        A mismatch usually means the firmware uses the other header
        layout; it is reported, not corrected.
        """
        echo = response.identifier_echo
        if echo == identifier:
            return response

        echo_text = f"0x{echo:04X}" if echo is not None else "none"
        logger.warning(
            f"Unexpected data offset {response.data_offset}: "
            f"identifier echo {echo_text}, expected 0x{identifier:04X}",
            extra={"identifier": f"0x{identifier:04X}"},
        )
        return UdsResponse(
            service_id=response.service_id,
            response_code=response.response_code,
            data_length=response.data_length,
            data=response.data,
            frame=response.frame,
            data_offset=response.data_offset,
            identifier_echo_ok=False,
        )

    def _add_trace(
        self,
        direction: str,
        service_id: int,
        identifier: int,
        frame: bytes,
        description: str,
    ) -> None:
        """Add entry to protocol trace."""
        entry = TraceEntry(
            timestamp=datetime.now(),
            direction=direction,
            service_id=service_id,
            identifier=identifier,
            frame=bytes(frame),
            description=description,
        )
        self._trace.append(entry)
        log_protocol_frame(direction, entry.frame)

        for callback in self._trace_callbacks:
            try:
                callback(entry)
            except Exception as e:
                logger.warning(f"Trace callback error: {e}")

    # High-level service methods

    def read_data_by_id(
        self, identifier: int, timeout_ms: int | None = None
    ) -> UdsResponse:
        """
        Read data by identifier (0x22).

        Args:
            identifier: 16-bit data identifier
            timeout_ms: Response timeout

        Returns:
            Validated response
        """
        return self.send_request(
            UDSServiceID.READ_DATA_BY_ID, identifier, timeout_ms=timeout_ms
        )

    def write_data_by_id(
        self, identifier: int, data: bytes, timeout_ms: int | None = None
    ) -> UdsResponse:
        """
        Write data by identifier (0x2E).

        Protected identifiers are blocked by the safety manager.
        """
        if not self._safety.check_write_did(identifier):
            raise BlockedOperation(
                message=f"DID 0x{identifier:04X} is protected",
                code=CODE_BLOCKED,
                service_id=UDSServiceID.WRITE_DATA_BY_ID,
            )

        return self.send_request(
            UDSServiceID.WRITE_DATA_BY_ID, identifier, bytes(data), timeout_ms=timeout_ms
        )
