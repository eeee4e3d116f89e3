"""
Base Transport Interface

Defines the abstract interface for all transport implementations.
A transport moves one 64-byte HID report payload per call; the
report-ID byte is the adapter's concern, never the protocol's.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class TransportError(Exception):
    """Transport-level error (open/write/read failure, device unplugged)."""

    message: str
    code: str
    recoverable: bool = True

    def __str__(self) -> str:
        return f"TransportError[{self.code}]: {self.message}"


class BaseTransport(ABC):
    """
    Abstract base class for transport implementations.

    All transports must implement these methods for consistent
    behavior across the HID and mock implementations.
    """

    @abstractmethod
    def open(self) -> None:
        """
        Open the transport connection.

        Raises:
            TransportError: If the device cannot be opened
        """

    @abstractmethod
    def close(self) -> None:
        """Close the transport connection."""

    @abstractmethod
    def is_open(self) -> bool:
        """Check if the transport is open."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """
        Write one report payload.

        Args:
            data: Frame bytes (without report ID)

        Returns:
            Number of bytes handed to the device

        Raises:
            TransportError: On write failure
        """

    @abstractmethod
    def read(self, timeout_ms: int = 0) -> bytes | None:
        """
        Read one report payload.

        Args:
            timeout_ms: Maximum wait in milliseconds (0 = non-blocking)

        Returns:
            Frame bytes (without report ID) or None on timeout

        Raises:
            TransportError: On read failure
        """

    def receive_within(
        self, timeout_ms: int, poll_interval_ms: int = 10
    ) -> bytes | None:
        """
        Poll for one inbound frame until it arrives or the deadline passes.

        Args:
            timeout_ms: Hard wall-clock timeout in milliseconds
            poll_interval_ms: Delay between non-blocking reads

        Returns:
            Frame bytes or None if nothing arrived in time
        """
        deadline = time.monotonic() + timeout_ms / 1000.0
        interval = poll_interval_ms / 1000.0

        while True:
            data = self.read(0)
            if data:
                return data

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            time.sleep(min(interval, remaining))

    def get_info(self) -> dict[str, Any]:
        """Get transport information (optional implementation)."""
        return {"type": self.__class__.__name__}

    def __enter__(self) -> "BaseTransport":
        self.open()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
