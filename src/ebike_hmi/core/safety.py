"""
Safety Manager

Keeps the client inside the identifier read/write subset it models.
Blocks services that could brick the display or its subsystems
(firmware download, security access, resets, routines) and writes to
identity identifiers (serial numbers, versions, part numbers).

All safety violations are logged and recorded.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Callable

from ebike_hmi.core.app_logging import get_logger
from ebike_hmi.protocols.constants import DataIdentifier, UDSServiceID

logger = get_logger(__name__)


class SafetyCategory(Enum):
    """Categories of blocked operations."""

    SECURITY_BYPASS = auto()  # Security access exploitation
    FIRMWARE_FLASH = auto()  # Download/upload/transfer that can brick units
    IDENTITY_TAMPERING = auto()  # Serial/version/part number rewrite
    STATE_CHANGE = auto()  # Resets, routines, session changes


@dataclass
class SafetyViolation:
    """Record of a blocked operation attempt."""

    timestamp: datetime
    category: SafetyCategory
    operation: str
    details: str
    blocked: bool = True


@dataclass
class SafetyManager:
    """
    Central safety enforcement for all diagnostic operations.

    These blocks cannot be disabled at runtime.
    """

    _violations: list[SafetyViolation] = field(default_factory=list)
    _hooks: list[Callable[[SafetyViolation], None]] = field(default_factory=list)

    BLOCKED_SERVICES: frozenset[int] = frozenset(
        {
            UDSServiceID.DIAGNOSTIC_SESSION_CONTROL,
            UDSServiceID.ECU_RESET,
            UDSServiceID.SECURITY_ACCESS,
            UDSServiceID.ROUTINE_CONTROL,
            UDSServiceID.REQUEST_DOWNLOAD,
            UDSServiceID.REQUEST_UPLOAD,
            UDSServiceID.TRANSFER_DATA,
            UDSServiceID.REQUEST_TRANSFER_EXIT,
            UDSServiceID.REQUEST_FILE_TRANSFER,
        }
    )

    BLOCKED_WRITE_DIDS: frozenset[int] = frozenset(
        {
            DataIdentifier.SERIAL_NUMBER,
            DataIdentifier.HARDWARE_VERSION,
            DataIdentifier.SOFTWARE_VERSION,
            DataIdentifier.COMPONENT_TYPE,
            DataIdentifier.HMI_PART_NUMBER,
            DataIdentifier.PRODUCT_CODE,
            DataIdentifier.PART_NUMBER,
            DataIdentifier.SUBSYSTEM_SERIAL_NUMBER,
            DataIdentifier.SUBSYSTEM_HW_VERSION,
            DataIdentifier.SUBSYSTEM_SW_VERSION,
        }
    )

    def check_service(self, service_id: int) -> bool:
        """
        Check if a UDS service is allowed.

        Args:
            service_id: UDS service identifier

        Returns:
            True if service is allowed, False if blocked
        """
        if service_id in self.BLOCKED_SERVICES:
            self._record_violation(
                self._categorize_service(service_id),
                f"UDS Service 0x{service_id:02X}",
                f"Service 0x{service_id:02X} is outside the supported read/write subset",
            )
            return False

        return True

    def check_write_did(self, did: int) -> bool:
        """
        Check if writing to a data identifier is allowed.

        Args:
            did: Data identifier to write

        Returns:
            True if write is allowed, False if blocked
        """
        if did in self.BLOCKED_WRITE_DIDS:
            self._record_violation(
                SafetyCategory.IDENTITY_TAMPERING,
                f"Write DID 0x{did:04X}",
                f"Writing to DID 0x{did:04X} is permanently blocked",
            )
            return False

        return True

    def get_violations(self) -> list[SafetyViolation]:
        """Get all recorded safety violations."""
        return self._violations.copy()

    def add_violation_hook(self, hook: Callable[[SafetyViolation], None]) -> None:
        """Add a callback for safety violations."""
        self._hooks.append(hook)

    def get_blocked_message(self, operation: str) -> str:
        """
        Get a user-friendly message explaining why an operation is blocked.

        Args:
            operation: The blocked operation

        Returns:
            Explanation message for the UI
        """
        return (
            f"Operation '{operation}' is blocked for safety reasons.\n\n"
            "This tool only reads identifiers and sets the display clock. It refuses:\n"
            "- Firmware download/upload\n"
            "- Security access\n"
            "- Resets and routine control\n"
            "- Rewriting serial numbers, versions or part numbers"
        )

    def _record_violation(
        self, category: SafetyCategory, operation: str, details: str
    ) -> None:
        """Record a safety violation."""
        violation = SafetyViolation(
            timestamp=datetime.now(),
            category=category,
            operation=operation,
            details=details,
        )
        self._violations.append(violation)

        logger.warning(
            f"SAFETY BLOCK: {category.name} - {operation}",
            extra={
                "category": category.name,
                "operation": operation,
                "details": details,
            },
        )

        for hook in self._hooks:
            try:
                hook(violation)
            except Exception as e:
                logger.error(f"Safety hook error: {e}")

    def _categorize_service(self, service_id: int) -> SafetyCategory:
        """Determine the safety category for a blocked service."""
        if service_id == UDSServiceID.SECURITY_ACCESS:
            return SafetyCategory.SECURITY_BYPASS
        if UDSServiceID.REQUEST_DOWNLOAD <= service_id <= UDSServiceID.REQUEST_FILE_TRANSFER:
            return SafetyCategory.FIRMWARE_FLASH
        return SafetyCategory.STATE_CHANGE
