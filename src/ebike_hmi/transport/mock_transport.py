"""
Mock Transport Implementation

Provides a simulated transport for testing and demonstration.
Returns deterministic responses for predictable behavior in tests and CI.
"""

from collections import deque
from typing import Any

from ebike_hmi.core.app_logging import get_logger
from ebike_hmi.transport.base import BaseTransport, TransportError

logger = get_logger(__name__)


class MockTransport(BaseTransport):
    """
    Mock transport for simulation mode.

    Provides a queue-based transport that can be loaded with
    expected frames, or wired to a simulated display that answers
    every written frame.
    """

    def __init__(self) -> None:
        self._is_open: bool = False
        self._tx_buffer: deque[bytes] = deque()
        self._rx_buffer: deque[bytes] = deque()
        self._connected_display: Any = None
        self._fail_open: bool = False
        self._fail_io: bool = False

    def open(self) -> None:
        """Simulate opening the HID device."""
        if self._fail_open:
            raise TransportError(message="Simulated open failure", code="OPEN_FAILED")
        logger.info("[MOCK] Opening HID device")
        self._is_open = True

    def close(self) -> None:
        """Simulate closing the device."""
        logger.info("[MOCK] Closing HID device")
        self._is_open = False
        self._rx_buffer.clear()

    def is_open(self) -> bool:
        """Check if mock device is open."""
        return self._is_open

    def write(self, data: bytes) -> int:
        """
        Simulate writing a frame.

        If a simulated display is connected, it processes the frame
        and its answer is queued for the next read.
        """
        self._check_io()

        frame = bytes(data)
        logger.debug(f"[MOCK] TX ({len(frame)}): {frame[:8].hex()}")
        self._tx_buffer.append(frame)

        if self._connected_display is not None:
            response = self._connected_display.process_frame(frame)
            if response:
                self._rx_buffer.append(response)

        return len(frame)

    def read(self, timeout_ms: int = 0) -> bytes | None:
        """Pop the next queued frame, None if nothing is pending."""
        self._check_io()

        if self._rx_buffer:
            data = self._rx_buffer.popleft()
            logger.debug(f"[MOCK] RX ({len(data)}): {data[:8].hex()}")
            return data

        return None

    def connect_mock_display(self, display: Any) -> None:
        """Connect a simulated display for response generation."""
        self._connected_display = display
        logger.info(f"[MOCK] Connected simulated display: {display}")

    def queue_response(self, response: bytes) -> None:
        """Queue a frame for the next read call."""
        self._rx_buffer.append(bytes(response))

    def simulate_failure(self, on_open: bool = False, on_io: bool = False) -> None:
        """Make open and/or read/write raise TransportError (device unplugged)."""
        self._fail_open = on_open
        self._fail_io = on_io

    def get_last_sent(self) -> bytes | None:
        """Get the last written frame (for testing)."""
        return self._tx_buffer[-1] if self._tx_buffer else None

    def get_sent_frames(self) -> list[bytes]:
        """Get all written frames (for testing)."""
        return list(self._tx_buffer)

    def get_sent_count(self) -> int:
        """Get count of written frames."""
        return len(self._tx_buffer)

    def get_info(self) -> dict[str, Any]:
        """Get transport information."""
        return {
            "type": "mock",
            "is_open": self._is_open,
            "tx_count": len(self._tx_buffer),
            "rx_pending": len(self._rx_buffer),
        }

    def _check_io(self) -> None:
        if not self._is_open:
            raise TransportError(message="Mock device not open", code="NOT_OPEN")
        if self._fail_io:
            raise TransportError(
                message="Simulated device disconnect",
                code="DEVICE_GONE",
                recoverable=False,
            )
