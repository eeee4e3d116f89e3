"""
eBike HMI - Diagnostic client for e-bike displays

Reads identification data from an e-bike display (and the drive unit
and battery system behind it) over USB HID, and sets the display clock.

SAFETY NOTICE:
This tool only reads data identifiers and writes the display clock. It
refuses:
- Firmware download/upload
- Security access
- Resets, routine control and session changes
- Rewriting serial numbers, versions or part numbers
"""

__version__ = "0.1.0"
__author__ = "eBike HMI Contributors"

from ebike_hmi.core.safety import SafetyManager

# Initialize global safety manager on import
_safety_manager = SafetyManager()


def get_safety_manager() -> SafetyManager:
    """Get the global safety manager instance."""
    return _safety_manager
