"""
Display Discovery

Finds e-bike displays among the HID devices the OS exposes and ranks
them so the most likely candidate comes first.
"""

from dataclasses import dataclass
from typing import Any, Callable

from ebike_hmi.core.app_logging import get_logger
from ebike_hmi.core.config import DEFAULT_VENDOR_ID

logger = get_logger(__name__)

Enumerator = Callable[[int, int], list[dict[str, Any]]]


@dataclass
class DisplayInfo:
    """Information about a detected HID device."""

    path: bytes  # HID device path from hid.enumerate
    vendor_id: int
    product_id: int
    name: str  # Human-readable model name
    product: str | None  # USB product string
    manufacturer: str | None  # USB manufacturer string
    serial_number: str | None  # USB serial number
    interface_number: int | None
    known: bool  # VID/PID in the known display table
    score: int  # Ranking score (higher = more preferred)

    @property
    def path_str(self) -> str:
        return self.path.decode(errors="replace")

    def to_dict(self) -> dict[str, Any]:
        """Describe the device for display in the UI."""
        return {
            "name": self.name,
            "vendorId": f"0x{self.vendor_id:04X}",
            "productId": f"0x{self.product_id:04X}",
            "product": self.product,
            "manufacturer": self.manufacturer,
            "serialNumber": self.serial_number,
            "path": self.path_str,
        }

    def __str__(self) -> str:
        return (
            f"{self.name} [{self.vendor_id:04X}:{self.product_id:04X}] "
            f"{self.path_str} - Score: {self.score}"
        )


KNOWN_DISPLAYS: dict[tuple[int, int], str] = {
    (DEFAULT_VENDOR_ID, 0x0155): "BUI25x",
}


def is_known_display(vendor_id: int, product_id: int) -> bool:
    """True for a VID/PID pair from the known display table."""
    return (vendor_id, product_id) in KNOWN_DISPLAYS


def _hid_enumerate(vendor_id: int, product_id: int) -> list[dict[str, Any]]:
    import hid

    return hid.enumerate(vendor_id, product_id)


class DisplayDiscovery:
    """
    Discovers and ranks display HID devices.

    Prioritizes:
    1. Known VID/PID pairs
    2. The configured product ids
    3. The last device that completed a handshake
    """

    def __init__(
        self,
        vendor_id: int = DEFAULT_VENDOR_ID,
        product_ids: list[int] | None = None,
        last_known_device: str | None = None,
        enumerator: Enumerator | None = None,
    ):
        """
        Initialize display discovery.

        Args:
            vendor_id: USB vendor id to filter on
            product_ids: Preferred product ids
            last_known_device: Previously successful device path for bonus scoring
            enumerator: Replacement for hid.enumerate
        """
        self.vendor_id = vendor_id
        self.product_ids = list(product_ids or [])
        self.last_known_device = last_known_device
        self._enumerate = enumerator or _hid_enumerate
        self._cached: list[DisplayInfo] | None = None

    def discover(self, force_rescan: bool = False) -> list[DisplayInfo]:
        """
        Enumerate HID devices of the configured vendor.

        Args:
            force_rescan: Force re-enumeration

        Returns:
            List of DisplayInfo sorted by preference (best first)
        """
        if self._cached is not None and not force_rescan:
            return self._cached

        try:
            entries = self._enumerate(self.vendor_id, 0)
        except ImportError:
            logger.error("hid package or libhidapi not available")
            return []

        displays: list[DisplayInfo] = []
        seen: set[bytes] = set()

        for entry in entries:
            info = self._create_display_info(entry)
            if info is None or info.path in seen:
                continue
            seen.add(info.path)
            displays.append(info)

        displays.sort(key=lambda d: d.score, reverse=True)

        self._cached = displays
        logger.info(f"Discovered {len(displays)} display candidate(s)")

        for display in displays:
            logger.debug(f"  {display}")

        return displays

    def _create_display_info(self, entry: dict[str, Any]) -> DisplayInfo | None:
        """Create DisplayInfo from a hid.enumerate entry."""
        vendor_id = entry.get("vendor_id")
        product_id = entry.get("product_id")
        path = entry.get("path")

        if vendor_id != self.vendor_id or product_id is None or not path:
            return None

        if isinstance(path, str):
            path = path.encode()

        known = is_known_display(vendor_id, product_id)
        name = KNOWN_DISPLAYS.get((vendor_id, product_id)) or entry.get("product_string") or "Unknown"

        score = 10
        if known:
            score += 100
        if product_id in self.product_ids:
            score += 40
        if self.last_known_device and path.decode(errors="replace") == self.last_known_device:
            score += 50

        return DisplayInfo(
            path=path,
            vendor_id=vendor_id,
            product_id=product_id,
            name=name,
            product=entry.get("product_string") or None,
            manufacturer=entry.get("manufacturer_string") or None,
            serial_number=entry.get("serial_number") or None,
            interface_number=entry.get("interface_number"),
            known=known,
            score=score,
        )

    def get_best_display(self) -> DisplayInfo | None:
        """Get the highest-ranked display."""
        displays = self.discover()
        return displays[0] if displays else None

    def get_display_by_path(self, path: str) -> DisplayInfo | None:
        """Find a specific display by its HID path."""
        for display in self.discover():
            if display.path_str == path:
                return display
        return None

    def refresh(self) -> list[DisplayInfo]:
        """Force refresh of the device list."""
        return self.discover(force_rescan=True)
