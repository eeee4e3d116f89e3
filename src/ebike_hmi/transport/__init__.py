"""
eBike HMI Transport Layer

Provides abstracted transport implementations for display communication.
Uses the hid package for real USB HID access and an in-memory mock for simulation.
"""

from ebike_hmi.transport.base import BaseTransport, TransportError
from ebike_hmi.transport.hid_transport import HidTransport
from ebike_hmi.transport.mock_transport import MockTransport

__all__ = [
    "BaseTransport",
    "TransportError",
    "HidTransport",
    "MockTransport",
]
