"""
eBike HMI Protocols Layer

HID frame codec, handshake and field decoders for the display's UDS
dialect. The transaction client lives in ebike_hmi.protocols.uds_client.
"""

from ebike_hmi.protocols.constants import DataIdentifier, ResponseCode, UDSServiceID
from ebike_hmi.protocols.errors import (
    HandshakeError,
    NegativeResponse,
    TransactionTimeout,
    UDSError,
)
from ebike_hmi.protocols.frames import (
    UdsResponse,
    decode_handshake_response,
    decode_uds_response,
    encode_handshake_request,
    encode_uds_request,
)
from ebike_hmi.protocols.handshake import perform_handshake

__all__ = [
    "DataIdentifier",
    "ResponseCode",
    "UDSServiceID",
    "HandshakeError",
    "NegativeResponse",
    "TransactionTimeout",
    "UDSError",
    "UdsResponse",
    "decode_handshake_response",
    "decode_uds_response",
    "encode_handshake_request",
    "encode_uds_request",
    "perform_handshake",
]
