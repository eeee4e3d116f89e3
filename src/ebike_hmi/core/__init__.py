"""
eBike HMI Core Package

Contains core functionality for discovery, the diagnostic session,
safety enforcement, diagnostic records, configuration and logging.
"""

from ebike_hmi.core.app_logging import get_logger, setup_logging
from ebike_hmi.core.config import AppConfig, ProtocolConfig, load_config
from ebike_hmi.core.safety import SafetyManager, SafetyViolation
from ebike_hmi.core.fields import FieldSpec, ReadScope
from ebike_hmi.core.record import DiagnosticRecord, FieldStatus, FieldValue
from ebike_hmi.core.discovery import DisplayDiscovery, DisplayInfo
from ebike_hmi.core.session import ConnectionState, DiagnosticSession

__all__ = [
    "get_logger",
    "setup_logging",
    "AppConfig",
    "ProtocolConfig",
    "load_config",
    "SafetyManager",
    "SafetyViolation",
    "FieldSpec",
    "ReadScope",
    "DiagnosticRecord",
    "FieldStatus",
    "FieldValue",
    "DisplayDiscovery",
    "DisplayInfo",
    "ConnectionState",
    "DiagnosticSession",
]
