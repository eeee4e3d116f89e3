"""
Field Decoders

Pure functions turning identifier payloads into display strings.
Every decoder accepts any bytes-like input and never raises; empty
input yields UNREADABLE.

Several formats are inferred from captured traffic only. Those
heuristics are kept as explicit, named branches so they can be
replaced when better information shows up.
"""

import re
from typing import Callable

from ebike_hmi.protocols.constants import COMPONENT_TYPES, DATA_OFFSET_4_BYTE_HEADER
from ebike_hmi.protocols.frames import payload_offset

UNREADABLE = "Unreadable"

SERIAL_MAX_BYTES = 20

# Two-byte version answers seen on real displays and what the vendor
# tool shows for them
KNOWN_SHORT_VERSIONS: dict[bytes, str] = {
    bytes([0x02, 0x72]): "0.0.2.2",  # hardware version
    bytes([0x02, 0x20]): "5.9.2.0",  # software version
}

_LEADING_NOISE = re.compile(r"^[^A-Za-z0-9]+")
_LEADING_MARKER = re.compile(r"^\D")
_TRAILING_NON_DIGITS = re.compile(r"\D+$")

Decoder = Callable[[bytes], str]


def decode_ascii(data: bytes) -> str:
    """
    Decode printable ASCII.

    NUL and non-printable bytes are dropped, then leading noise
    (anything not a letter or digit) is stripped.
    """
    if not data:
        return UNREADABLE

    text = "".join(chr(b) for b in bytes(data) if 0x20 <= b <= 0x7E)
    return _LEADING_NOISE.sub("", text)


def decode_version(data: bytes) -> str:
    """
    Decode a version identifier.

    Four or more bytes map to ``a.b.c.d``. Two or three bytes are
    matched against KNOWN_SHORT_VERSIONS first, otherwise padded as
    ``a.b.0.0``. A single byte is shown as hex.
    """
    raw = bytes(data)
    if not raw:
        return UNREADABLE

    if len(raw) >= 4:
        return ".".join(str(b) for b in raw[:4])

    if len(raw) >= 2:
        known = KNOWN_SHORT_VERSIONS.get(raw[:2])
        if known is not None:
            return known
        return f"{raw[0]}.{raw[1]}.0.0"

    return ".".join(f"{b:02x}" for b in raw)


def decode_serial_number(data: bytes) -> str:
    """Serial number as ``0x`` followed by uppercase hex, at most 20 bytes."""
    raw = bytes(data)
    if not raw:
        return UNREADABLE
    return "0x" + raw[:SERIAL_MAX_BYTES].hex().upper()


def decode_article_number(data: bytes) -> str:
    """
    Decode an article (part) number.

    The ASCII answer carries one marker character in front of the digits
    and sometimes non-digit garbage after them; both are removed.
    """
    raw = bytes(b for b in bytes(data) if b != 0x00)
    if not raw:
        return UNREADABLE

    text = raw.decode("ascii", errors="ignore")
    text = _LEADING_MARKER.sub("", text, count=1)
    text = _TRAILING_NON_DIGITS.sub("", text)
    return text or UNREADABLE


def _valid_time(hours: int, minutes: int) -> bool:
    return hours < 24 and minutes < 60


def decode_time(data: bytes) -> str:
    """
    Decode a two-byte time of day.

    Firmware revisions disagree on the byte order. (hours, minutes) is
    tried first, then (minutes, hours); if neither is a valid time of
    day the raw bytes are shown.
    """
    raw = bytes(data)
    if len(raw) < 2:
        return UNREADABLE

    first, second = raw[0], raw[1]
    if _valid_time(first, second):
        return f"{first:02d}:{second:02d}"
    if _valid_time(second, first):
        return f"{second:02d}:{first:02d}"
    return f"{first}:{second}"


def decode_date(data: bytes) -> str:
    """Decode (year - 2000, month, day) as ``DD.MM.YYYY``."""
    raw = bytes(data)
    if len(raw) < 3:
        return UNREADABLE

    year = 2000 + raw[0]
    month = raw[1]
    day = raw[2]
    return f"{day:02d}.{month:02d}.{year}"


def decode_component_type(data: bytes) -> str:
    """Map the component type code to a display family name."""
    raw = bytes(data)
    if not raw:
        return UNREADABLE
    return COMPONENT_TYPES.get(raw[0], f"Unknown(0x{raw[0]:02X})")


def decode_hex(data: bytes) -> str:
    """Space separated hex dump for identifiers without a known format."""
    raw = bytes(data)
    if not raw:
        return UNREADABLE
    return raw.hex(" ").upper()


def extract_payload(
    frame: bytes,
    length: int | None = None,
    data_offset: int = DATA_OFFSET_4_BYTE_HEADER,
) -> bytes:
    """
    Cut a field payload out of a response frame.

    Args:
        frame: Raw response frame
        length: Payload length (None: everything up to the frame end)
        data_offset: Data start index of the response layout

    Returns:
        Payload bytes, possibly shorter than length
    """
    start = payload_offset(frame, data_offset)
    if length is None:
        return bytes(frame[start:])
    return bytes(frame[start:start + length])
