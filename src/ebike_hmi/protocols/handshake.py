"""
Handshake

One fixed request/response exchange the display requires before it
accepts any diagnostic traffic. Never retried here; the caller decides
whether to reconnect.
"""

from ebike_hmi.core.app_logging import get_logger, log_protocol_frame
from ebike_hmi.protocols.frames import (
    decode_handshake_response,
    encode_handshake_request,
)
from ebike_hmi.protocols.errors import HandshakeRejected, HandshakeTimeout
from ebike_hmi.transport.base import BaseTransport

logger = get_logger(__name__)

DEFAULT_HANDSHAKE_TIMEOUT_MS = 1000


def perform_handshake(
    transport: BaseTransport,
    timeout_ms: int = DEFAULT_HANDSHAKE_TIMEOUT_MS,
    poll_interval_ms: int = 10,
) -> None:
    """
    Run the handshake on an open transport.

    Raises:
        HandshakeTimeout: No frame within timeout_ms
        HandshakeRejected: Frame did not match the expected answer
        TransportError: Write/read failure
    """
    request = encode_handshake_request()
    log_protocol_frame("TX", request)
    transport.write(request)

    response = transport.receive_within(timeout_ms, poll_interval_ms)

    if response is None:
        raise HandshakeTimeout(
            message=f"No handshake response within {timeout_ms} ms",
            code="HANDSHAKE_TIMEOUT",
        )

    log_protocol_frame("RX", response)

    if not decode_handshake_response(response):
        raise HandshakeRejected(
            message=f"Unexpected handshake response: {bytes(response[:4]).hex(' ')}",
            code="HANDSHAKE_REJECTED",
            raw_response=bytes(response),
        )

    logger.info("Handshake successful")
