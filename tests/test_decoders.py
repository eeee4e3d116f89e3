"""
Tests for field decoders.
"""

import pytest

from ebike_hmi.protocols.decoders import (
    UNREADABLE,
    decode_article_number,
    decode_ascii,
    decode_component_type,
    decode_date,
    decode_hex,
    decode_serial_number,
    decode_time,
    decode_version,
    extract_payload,
)
from ebike_hmi.protocols.frames import pad_frame

ALL_DECODERS = [
    decode_ascii,
    decode_version,
    decode_serial_number,
    decode_article_number,
    decode_time,
    decode_date,
    decode_component_type,
    decode_hex,
]


class TestVersion:
    """Tests for version decoding."""

    def test_four_bytes(self):
        """Test dotted decimal rendering."""
        assert decode_version(bytes([1, 2, 3, 4])) == "1.2.3.4"

    def test_extra_bytes_ignored(self):
        """Test only the first four bytes are used."""
        assert decode_version(bytes([5, 9, 2, 0, 7])) == "5.9.2.0"

    def test_known_hardware_pattern(self):
        """Test two-byte hardware version answer."""
        assert decode_version(bytes([0x02, 0x72])) == "0.0.2.2"

    def test_known_software_pattern(self):
        """Test two-byte software version answer."""
        assert decode_version(bytes([0x02, 0x20])) == "5.9.2.0"

    def test_other_two_bytes(self):
        """Test generic two-byte fallback."""
        assert decode_version(bytes([3, 7])) == "3.7.0.0"

    def test_single_byte(self):
        """Test hex fallback."""
        assert decode_version(bytes([0x0A])) == "0a"

    def test_empty(self):
        """Test empty input does not raise."""
        assert decode_version(b"") == UNREADABLE


class TestTime:
    """Tests for time decoding."""

    def test_hours_minutes(self):
        """Test (hours, minutes) order."""
        assert decode_time(bytes([14, 30])) == "14:30"

    def test_minutes_hours(self):
        """Test swapped order resolves to the same time."""
        assert decode_time(bytes([30, 14])) == "14:30"

    def test_zero_padded(self):
        """Test single digit values are padded."""
        assert decode_time(bytes([7, 5])) == "07:05"

    def test_no_valid_order(self):
        """Test raw fallback when neither order is a time of day."""
        assert decode_time(bytes([70, 80])) == "70:80"

    def test_too_short(self):
        """Test short input does not raise."""
        assert decode_time(bytes([14])) == UNREADABLE


class TestDate:
    """Tests for date decoding."""

    def test_date(self):
        """Test (year offset, month, day) order."""
        assert decode_date(bytes([24, 6, 15])) == "15.06.2024"

    def test_too_short(self):
        """Test short input does not raise."""
        assert decode_date(bytes([24, 6])) == UNREADABLE


class TestStrings:
    """Tests for ASCII, serial and article number decoding."""

    def test_ascii_product_code(self):
        """Test plain product code."""
        assert decode_ascii(b"BUI255") == "BUI255"

    def test_ascii_strips_noise(self):
        """Test NUL, non-printable and leading noise removal."""
        assert decode_ascii(b"\x00\x01-#BUI\x00255\xff") == "BUI255"

    def test_serial_number(self):
        """Test uppercase hex with prefix."""
        data = bytes.fromhex("37FFD705564E313046442000")
        assert decode_serial_number(data) == "0x37FFD705564E313046442000"

    def test_serial_number_limit(self):
        """Test at most 20 bytes are rendered."""
        assert decode_serial_number(bytes(range(30))) == "0x" + bytes(range(20)).hex().upper()

    def test_article_number(self):
        """Test plain digits."""
        assert decode_article_number(b"1270020909") == "1270020909"

    def test_article_number_marker_and_trailer(self):
        """Test leading marker and trailing garbage removal."""
        assert decode_article_number(b"\x00A1270020909\x00xy") == "1270020909"

    def test_article_number_only_one_marker_removed(self):
        """Test a second leading non-digit is kept."""
        assert decode_article_number(b"AB123") == "B123"


class TestComponentType:
    """Tests for component type lookup."""

    @pytest.mark.parametrize(
        "code,name",
        [(0x02, "Intuvia"), (0x0B, "Intuvia"), (0x0C, "Purion"), (0x0D, "Nyon"), (0x0E, "Kiox")],
    )
    def test_known(self, code: int, name: str):
        """Test known display families."""
        assert decode_component_type(bytes([code])) == name

    def test_unknown(self):
        """Test unknown codes are named, not dropped."""
        assert decode_component_type(bytes([0x42])) == "Unknown(0x42)"


class TestTotality:
    """Decoders must never raise."""

    @pytest.mark.parametrize("decoder", ALL_DECODERS)
    @pytest.mark.parametrize(
        "data",
        [b"", b"\x00", b"\xff" * 3, bytes(range(256)), memoryview(b"\x01\x02\x03\x04")],
    )
    def test_no_exception(self, decoder, data):
        """Test arbitrary input yields a string."""
        assert isinstance(decoder(data), str)

    @pytest.mark.parametrize("decoder", ALL_DECODERS)
    def test_empty_is_unreadable(self, decoder):
        """Test empty input yields the unreadable marker."""
        assert decoder(b"") == UNREADABLE


class TestExtractPayload:
    """Tests for payload extraction from frames."""

    def test_after_identifier_echo(self):
        """Test payload starts at index 8."""
        frame = pad_frame(bytes([0x01, 0x00, 0x3D, 0x06, 0x22, 0x62, 0x02, 0x72, 0, 0, 2, 2]))
        assert extract_payload(frame, 4) == bytes([0, 0, 2, 2])

    def test_three_byte_header_layout(self):
        """Test payload start follows the data offset."""
        frame = pad_frame(bytes([0x01, 0x00, 0x05, 0x22, 0x62, 0x02, 0x72, 1, 2, 3, 4]))
        assert extract_payload(frame, 4, data_offset=5) == bytes([1, 2, 3, 4])

    def test_short_frame_fallback(self):
        """Test fallback offset for frames without room for the echo."""
        frame = bytes([0x01, 0x00, 0x3D, 0x03, 0x22, 24, 6, 15])
        assert extract_payload(frame, 3) == bytes([24, 6, 15])

    def test_rest_of_frame(self):
        """Test no length returns everything after the echo."""
        frame = pad_frame(bytes([0x01, 0x00, 0x3D, 0x03, 0x22, 0x62, 0x02, 0x60, 0x0B]))
        assert extract_payload(frame) == bytes([0x0B]) + bytes(55)
