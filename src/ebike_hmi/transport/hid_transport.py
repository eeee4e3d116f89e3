"""
HID Transport Implementation

Talks to the display through the OS HID driver using the ``hid``
package (ctypes bindings to libhidapi, ``hid.Device`` API).
Reports are 65 bytes on the wire: a 0x00 report-ID byte followed by
the 64-byte payload. The report ID is added on write and stripped on
read here, so the protocol layer only ever sees 64-byte frames.

Requires: ``pip install hid`` plus the libhidapi shared library
(libhidapi-hidraw0 on Debian/Ubuntu, hidapi on Fedora)
"""

from typing import Any, Callable

from ebike_hmi.core.app_logging import get_logger
from ebike_hmi.transport.base import BaseTransport, TransportError

logger = get_logger(__name__)

REPORT_ID = 0x00
REPORT_SIZE = 64

DeviceOpener = Callable[..., Any]


def _open_hid_device(
    vid: int | None = None,
    pid: int | None = None,
    path: bytes | None = None,
) -> Any:
    """Open a ``hid.Device`` by path, or by VID/PID when no path is given."""
    try:
        import hid
    except ImportError as e:
        raise TransportError(
            message=f"hid package or libhidapi not available: {e}",
            code="NO_HIDAPI",
            recoverable=False,
        ) from e

    if path is not None:
        return hid.Device(path=path)
    return hid.Device(vid=vid, pid=pid)


class HidTransport(BaseTransport):
    """
    HID transport for the display, backed by ``hid.Device``.

    The device is identified either by its HID path (as returned from
    discovery) or by vendor/product id.
    """

    def __init__(
        self,
        vendor_id: int | None = None,
        product_id: int | None = None,
        path: str | bytes | None = None,
        opener: DeviceOpener | None = None,
    ) -> None:
        """
        Initialize HID transport.

        Args:
            vendor_id: USB vendor id
            product_id: USB product id
            path: HID device path (takes precedence over VID/PID)
            opener: Device factory, defaults to hid.Device
        """
        if path is None and (vendor_id is None or product_id is None):
            raise ValueError("Either a path or a vendor/product id pair is required")

        self._vendor_id = vendor_id
        self._product_id = product_id
        self._path = path.encode() if isinstance(path, str) else path
        self._opener = opener or _open_hid_device
        self._device: Any = None

    def open(self) -> None:
        """Open the HID device."""
        if self._device is not None:
            return

        target = self._describe_target()
        logger.info(f"Opening HID device: {target}")

        try:
            self._device = self._opener(
                vid=self._vendor_id, pid=self._product_id, path=self._path
            )
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(
                message=f"Failed to open {target}: {e}",
                code="OPEN_FAILED",
            ) from e

    def close(self) -> None:
        """Close the HID device."""
        if self._device is None:
            return

        logger.info("Closing HID device")
        try:
            self._device.close()
        except Exception as e:
            logger.warning(f"Error closing HID device: {e}")
        finally:
            self._device = None

    def is_open(self) -> bool:
        """Check if the device handle is open."""
        return self._device is not None

    def write(self, data: bytes) -> int:
        """Write one frame, prefixed with the report ID."""
        device = self._require_open()

        payload = bytes(data[:REPORT_SIZE]).ljust(REPORT_SIZE, b"\x00")
        report = bytes([REPORT_ID]) + payload

        try:
            written = device.write(report)
        except Exception as e:
            raise TransportError(
                message=f"Write failed: {e}",
                code="WRITE_FAILED",
            ) from e

        if written is not None and 0 <= written < len(report):
            raise TransportError(
                message=f"Short write: {written} of {len(report)} bytes",
                code="SHORT_WRITE",
            )

        logger.debug(f"TX ({len(payload)}): {payload[:8].hex(' ')}...")
        return len(payload)

    def read(self, timeout_ms: int = 0) -> bytes | None:
        """Read one report, stripping a leading report ID if present."""
        device = self._require_open()

        try:
            data = device.read(REPORT_SIZE + 1, timeout_ms)
        except Exception as e:
            raise TransportError(
                message=f"Read failed: {e}",
                code="READ_FAILED",
            ) from e

        if not data:
            return None

        report = bytes(data)
        # Some platforms deliver the report ID, others do not
        if len(report) > REPORT_SIZE and report[0] == REPORT_ID:
            report = report[1:]

        logger.debug(f"RX ({len(report)}): {report[:8].hex(' ')}...")
        return report

    def get_info(self) -> dict[str, Any]:
        """Get transport information."""
        return {
            "type": "hid",
            "vendor_id": self._vendor_id,
            "product_id": self._product_id,
            "path": self._path.decode(errors="replace") if self._path else None,
            "is_open": self.is_open(),
        }

    def _require_open(self) -> Any:
        if self._device is None:
            raise TransportError(
                message="HID device not open",
                code="NOT_OPEN",
            )
        return self._device

    def _describe_target(self) -> str:
        if self._path is not None:
            return self._path.decode(errors="replace")
        return f"{self._vendor_id:04X}:{self._product_id:04X}"
