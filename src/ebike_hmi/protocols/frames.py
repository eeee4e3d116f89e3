"""
HID Frame Codec

Stateless translation between protocol values and the fixed 64-byte
HID report payload.

Request frame:
    01 00 3A 08 | 03 | SID | DID_HI DID_LO | extra... | 00 padding

Response frame (4-byte header, data at 6):
    01 00 xx | LEN | SID | CODE | DID_HI DID_LO | payload... | 00 padding

Response frame (3-byte header, data at 5):
    01 00 | LEN | SID | CODE | DID_HI DID_LO | payload... | 00 padding

The byte at index 2 of a response differs between firmware revisions
(00, 3D, 61) and is not interpreted. Revisions without it shift the
whole header one byte left, so the data start is a parameter and the
header indexes are derived from it.
"""

import re
from dataclasses import dataclass

from ebike_hmi.protocols.constants import (
    DATA_OFFSET_3_BYTE_HEADER,
    DATA_OFFSET_4_BYTE_HEADER,
    FALLBACK_PAYLOAD_OFFSET,
    FRAME_SIZE,
    HANDSHAKE_REQUEST_HEADER,
    HANDSHAKE_RESPONSE_HEADER,
    UDS_REQUEST_HEADER,
    UDS_REQUEST_LENGTH,
    UDS_RESPONSE_MIN_LENGTH,
    UDS_RESPONSE_PREFIX,
    ResponseCode,
)
from ebike_hmi.protocols.errors import CODE_MALFORMED, MalformedFrame

IDENTIFIER_ECHO_LENGTH = 2


@dataclass(frozen=True)
class UdsResponse:
    """
    Parsed response frame.

    ``data`` is a view into ``frame``, valid as long as the frame is.
    """

    service_id: int
    response_code: int
    data_length: int
    data: memoryview
    frame: bytes
    data_offset: int = DATA_OFFSET_4_BYTE_HEADER
    identifier_echo_ok: bool = True

    @property
    def positive(self) -> bool:
        return self.response_code in (
            ResponseCode.POSITIVE_READ,
            ResponseCode.POSITIVE_WRITE,
        )

    @property
    def negative(self) -> bool:
        return self.response_code == ResponseCode.NEGATIVE

    @property
    def identifier_echo(self) -> int | None:
        """Identifier echoed in front of the payload, if present."""
        if len(self.data) < IDENTIFIER_ECHO_LENGTH:
            return None
        return int.from_bytes(self.data[:IDENTIFIER_ECHO_LENGTH], "big")


def pad_frame(content: bytes) -> bytes:
    """Zero-pad to exactly FRAME_SIZE bytes, truncating longer content."""
    return bytes(content[:FRAME_SIZE]).ljust(FRAME_SIZE, b"\x00")


def encode_handshake_request() -> bytes:
    """Build the handshake request frame."""
    return pad_frame(HANDSHAKE_REQUEST_HEADER)


def encode_uds_request(service_id: int, identifier: int, extra: bytes = b"") -> bytes:
    """
    Build a UDS request frame.

    Content beyond 64 bytes is dropped without error; the display
    behaves the same way.

    Args:
        service_id: UDS service id (1 byte)
        identifier: Data identifier (2 bytes, big endian on the wire)
        extra: Additional request bytes (e.g. write payload)
    """
    if not 0 <= service_id <= 0xFF:
        raise ValueError(f"Service id out of range: {service_id}")
    if not 0 <= identifier <= 0xFFFF:
        raise ValueError(f"Data identifier out of range: {identifier}")

    content = (
        UDS_REQUEST_HEADER
        + bytes([UDS_REQUEST_LENGTH, service_id])
        + identifier.to_bytes(2, "big")
        + bytes(extra)
    )
    return pad_frame(content)


def decode_handshake_response(frame: bytes) -> bool:
    """True iff the frame starts with the handshake answer header."""
    return bytes(frame[: len(HANDSHAKE_RESPONSE_HEADER)]) == HANDSHAKE_RESPONSE_HEADER


def decode_uds_response(
    frame: bytes, data_offset: int = DATA_OFFSET_4_BYTE_HEADER
) -> UdsResponse:
    """
    Parse a response frame.

    Args:
        frame: Raw frame bytes (report ID already stripped)
        data_offset: Index where the data section starts (6 for the
            4-byte header, 5 for the 3-byte header)

    Raises:
        MalformedFrame: If the frame is too short or the prefix is wrong
        ValueError: If data_offset is not one of the two layouts
    """
    raw = bytes(frame)

    if len(raw) < UDS_RESPONSE_MIN_LENGTH:
        raise MalformedFrame(
            message=f"Response too short ({len(raw)} bytes)",
            code=CODE_MALFORMED,
            raw_response=raw,
        )

    if raw[:2] != UDS_RESPONSE_PREFIX:
        raise MalformedFrame(
            message=f"Invalid response header: {raw[:3].hex(' ')}",
            code=CODE_MALFORMED,
            raw_response=raw,
        )

    if data_offset not in (DATA_OFFSET_3_BYTE_HEADER, DATA_OFFSET_4_BYTE_HEADER):
        raise ValueError(f"Unsupported response data offset: {data_offset}")

    # LEN, SID and CODE sit directly in front of the data section
    code_index = data_offset - 1

    return UdsResponse(
        service_id=raw[code_index - 1],
        response_code=raw[code_index],
        data_length=raw[code_index - 2],
        data=memoryview(raw)[data_offset:],
        frame=raw,
        data_offset=data_offset,
    )


def payload_offset(
    frame: bytes, data_offset: int = DATA_OFFSET_4_BYTE_HEADER
) -> int:
    """
    Start index of a field payload inside a response frame.

    The payload follows the 2-byte identifier echo (index 8 for the
    common layout). Frames too short to hold the echo fall back to
    index 5, which is where captures of short answers put the value.
    """
    offset = data_offset + IDENTIFIER_ECHO_LENGTH
    if len(frame) > offset:
        return offset
    return FALLBACK_PAYLOAD_OFFSET


def identify_request(frame: bytes) -> tuple[int, int] | None:
    """
    Recover (service id, identifier) from an encoded request frame.

    Returns:
        Tuple or None if the frame is not a UDS request
    """
    raw = bytes(frame)
    if len(raw) < 8:
        return None
    if raw[:4] != UDS_REQUEST_HEADER or raw[4] != UDS_REQUEST_LENGTH:
        return None
    return raw[5], int.from_bytes(raw[6:8], "big")


_HEX_SEPARATORS = re.compile(r"[\s:,-]")


def frame_from_hex(text: str) -> bytes:
    """
    Parse a capture dump ("01:00:3a:08:..." or "01 00 3a 08 ...").

    Raises:
        ValueError: If the text is not valid hex
    """
    return bytes.fromhex(_HEX_SEPARATORS.sub("", text))
