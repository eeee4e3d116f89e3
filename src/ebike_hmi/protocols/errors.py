"""
Protocol Errors

Typed failures of the handshake and of single UDS transactions.
"""

from dataclasses import dataclass

from ebike_hmi.protocols.constants import negative_response_name

# Local error codes for failures that carry no negative response code
CODE_BLOCKED = 0xFF
CODE_SEND_FAILED = 0xFE
CODE_TIMEOUT = 0xFD
CODE_EMPTY = 0xFC
CODE_MALFORMED = 0xFB
CODE_NOT_READY = 0xFA


@dataclass
class UDSError(Exception):
    """UDS-level error."""

    message: str
    code: int = 0
    service_id: int = 0
    raw_response: bytes | None = None

    def __str__(self) -> str:
        return f"{type(self).__name__}[0x{self.code:02X}]: {self.message}"


class MalformedFrame(UDSError):
    """Response too short or with a foreign header."""


class TransactionTimeout(UDSError):
    """No frame arrived before the transaction timeout."""


class EmptyResponse(UDSError):
    """Positive acknowledgement without any data."""


class BlockedOperation(UDSError):
    """Refused by the safety manager before anything was sent."""


class SessionNotReady(UDSError):
    """A transaction was attempted before the handshake completed."""


@dataclass
class NegativeResponse(UDSError):
    """Display explicitly rejected the request."""

    rejected_service: int = 0

    @property
    def error_code(self) -> int:
        return self.code

    @property
    def error_name(self) -> str:
        return negative_response_name(self.code)


@dataclass
class HandshakeError(Exception):
    """Handshake failure; fatal to the whole session."""

    message: str
    code: str
    raw_response: bytes | None = None

    def __str__(self) -> str:
        return f"HandshakeError[{self.code}]: {self.message}"


class HandshakeTimeout(HandshakeError):
    """No handshake answer within the handshake timeout."""


class HandshakeRejected(HandshakeError):
    """A frame arrived but is not the expected handshake answer."""
