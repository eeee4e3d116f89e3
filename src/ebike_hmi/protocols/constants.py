"""
Protocol Constants

Service ids, data identifiers, frame headers and lookup tables for the
display's HID-framed UDS dialect. Values come from captured USB traffic.
"""

from enum import IntEnum

FRAME_SIZE = 64

HANDSHAKE_REQUEST_HEADER = bytes([0x00, 0x00, 0x01, 0x01])
HANDSHAKE_RESPONSE_HEADER = bytes([0x00, 0x01, 0x01, 0x00])

UDS_REQUEST_HEADER = bytes([0x01, 0x00, 0x3A, 0x08])
UDS_REQUEST_LENGTH = 0x03  # fixed on the wire regardless of extra bytes
UDS_RESPONSE_PREFIX = bytes([0x01, 0x00])
UDS_RESPONSE_MIN_LENGTH = 6

# Data start inside a response frame, per firmware layout
DATA_OFFSET_4_BYTE_HEADER = 6
DATA_OFFSET_3_BYTE_HEADER = 5

# Field payload start when the frame is shorter than expected
FALLBACK_PAYLOAD_OFFSET = 5


class UDSServiceID(IntEnum):
    """Service identifiers seen on the display link."""

    READ_DATA_BY_ID = 0x22
    WRITE_DATA_BY_ID = 0x2E

    # Present in captures, never issued by this client
    DIAGNOSTIC_SESSION_CONTROL = 0x10
    ECU_RESET = 0x11
    SECURITY_ACCESS = 0x27
    ROUTINE_CONTROL = 0x31
    REQUEST_DOWNLOAD = 0x34
    REQUEST_UPLOAD = 0x35
    TRANSFER_DATA = 0x36
    REQUEST_TRANSFER_EXIT = 0x37
    REQUEST_FILE_TRANSFER = 0x38
    TESTER_PRESENT = 0x3E


class ResponseCode(IntEnum):
    """Response code byte of a response frame."""

    POSITIVE_READ = 0x62
    POSITIVE_WRITE = 0x6E
    NEGATIVE = 0x7F


class UDSNegativeResponse(IntEnum):
    """UDS Negative Response Codes (ISO 14229-1)."""

    GENERAL_REJECT = 0x10
    SERVICE_NOT_SUPPORTED = 0x11
    SUB_FUNCTION_NOT_SUPPORTED = 0x12
    INCORRECT_MESSAGE_LENGTH = 0x13
    RESPONSE_TOO_LONG = 0x14
    BUSY_REPEAT_REQUEST = 0x21
    CONDITIONS_NOT_CORRECT = 0x22
    REQUEST_SEQUENCE_ERROR = 0x24
    NO_RESPONSE_FROM_SUBNET = 0x25
    FAILURE_PREVENTS_EXEC = 0x26
    REQUEST_OUT_OF_RANGE = 0x31
    SECURITY_ACCESS_DENIED = 0x33
    INVALID_KEY = 0x35
    EXCEEDED_ATTEMPTS = 0x36
    REQUIRED_TIME_DELAY = 0x37
    UPLOAD_DOWNLOAD_NOT_ACCEPTED = 0x70
    TRANSFER_DATA_SUSPENDED = 0x71
    GENERAL_PROGRAMMING_FAILURE = 0x72
    WRONG_BLOCK_SEQUENCE = 0x73
    RESPONSE_PENDING = 0x78
    SUB_FUNCTION_NOT_SUPPORTED_IN_SESSION = 0x7E
    SERVICE_NOT_SUPPORTED_IN_SESSION = 0x7F


class DataIdentifier(IntEnum):
    """
    Data identifiers.

    The same code is reused by the drive unit and the battery system;
    which subsystem answers depends on the field table issuing it.
    """

    # Display
    SERIAL_NUMBER = 0x0242
    HARDWARE_VERSION = 0x0272
    SOFTWARE_VERSION = 0x0220
    COMPONENT_TYPE = 0x0260
    HMI_PART_NUMBER = 0x0232
    PRESENT_DATE_TIME = 0x023A
    CURRENT_TIME = 0x0240
    PRODUCT_CODE = 0x5B7C

    # Drive unit / battery management system
    PART_NUMBER = 0xF130
    SUBSYSTEM_SERIAL_NUMBER = 0xF1AC
    SUBSYSTEM_HW_VERSION = 0xF150
    SUBSYSTEM_SW_VERSION = 0xF151
    DU_LIFE_TIME_INFO = 0xF120
    DU_CURRENT_MOTOR_SPEED = 0xF126
    BMS_LIFE_TIME_INFO = 0xF133


# Date and time share one identifier on the display
CURRENT_DATE = DataIdentifier.PRESENT_DATE_TIME

COMPONENT_TYPES: dict[int, str] = {
    0x02: "Intuvia",  # older firmware reports 0x02
    0x0B: "Intuvia",
    0x0C: "Purion",
    0x0D: "Nyon",
    0x0E: "Kiox",
}


def negative_response_name(code: int) -> str:
    """Get a human-readable name for a negative response code."""
    try:
        return UDSNegativeResponse(code).name.replace("_", " ").title()
    except ValueError:
        return f"Unknown Error (0x{code:02X})"
