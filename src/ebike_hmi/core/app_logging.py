"""
Structured Logging System

Provides JSONL structured logging for audit trails and protocol debugging.
Every connection, field read and write against the display is logged
with timestamps and context.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

# Module-level logger cache
_loggers: dict[str, logging.Logger] = {}
_log_dir: Path | None = None
_session_id: str = datetime.now().strftime("%Y%m%d_%H%M%S")
_raw_protocol: bool = False

ROOT_LOGGER_NAME = "ebike_hmi"

# Extra record attributes copied into the JSONL output
STRUCTURED_KEYS = (
    "category",
    "operation",
    "details",
    "identifier",
    "field",
    "direction",
    "frame",
    "audit_event",
    "audit_details",
)


class JSONLFormatter(logging.Formatter):
    """Formatter that outputs logs as JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "session": _session_id,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key in STRUCTURED_KEYS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for human-readable output."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        return (
            f"{color}[{timestamp}] {record.levelname:8}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )


def setup_logging(
    log_dir: Path | None = None,
    debug: bool = False,
    raw_protocol: bool = False,
    max_log_files: int | None = None,
) -> None:
    """
    Initialize the logging system.

    Args:
        log_dir: Directory for log files (default: ./logs)
        debug: Enable debug-level logging
        raw_protocol: Log every TX/RX frame as hex
        max_log_files: Keep at most this many session files (None: keep all)
    """
    global _log_dir, _session_id, _raw_protocol

    _log_dir = log_dir or Path("./logs")
    _log_dir.mkdir(parents=True, exist_ok=True)
    _raw_protocol = raw_protocol

    if max_log_files is not None:
        _prune_session_logs(_log_dir, max(max_log_files - 1, 0))

    _session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ConsoleFormatter())
    root_logger.addHandler(console_handler)

    log_file = _log_dir / f"session_{_session_id}.jsonl"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(JSONLFormatter())
    root_logger.addHandler(file_handler)

    root_logger.info(
        f"Logging initialized: session={_session_id}, log_file={log_file}"
    )


def _prune_session_logs(log_dir: Path, keep: int) -> None:
    """Delete the oldest session files so that at most `keep` remain."""
    session_files = sorted(log_dir.glob("session_*.jsonl"))
    for old_file in session_files[: max(len(session_files) - keep, 0)]:
        try:
            old_file.unlink()
        except OSError:
            continue


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger placed under the ebike_hmi namespace
    """
    if name not in _loggers:
        full_name = name
        if not name.startswith(ROOT_LOGGER_NAME):
            full_name = f"{ROOT_LOGGER_NAME}.{name}"

        _loggers[name] = logging.getLogger(full_name)

    return _loggers[name]


def get_session_id() -> str:
    """Get the current session ID."""
    return _session_id


def get_log_dir() -> Path:
    """Get the log directory."""
    return _log_dir or Path("./logs")


def log_audit_event(
    event_type: str,
    description: str,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Log an audit event (connection lifecycle, identifier writes).

    Args:
        event_type: Type of event (e.g., "connection_established")
        description: Human-readable description
        details: Additional details
    """
    logger = get_logger("audit")
    logger.info(
        f"AUDIT: {event_type} - {description}",
        extra={
            "audit_event": event_type,
            "audit_details": details or {},
        },
    )


def log_diagnostic_action(
    action: str,
    identifier: int | None = None,
    success: bool = True,
    error: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Log a diagnostic action with structured data.

    Args:
        action: Action performed (e.g., "read_field", "write_field")
        identifier: Data identifier involved
        success: Whether the action succeeded
        error: Error message if failed
        details: Additional details
    """
    logger = get_logger("diagnostic")
    extra = {
        "operation": action,
        "identifier": f"0x{identifier:04X}" if identifier is not None else None,
        "details": {"success": success, "error": error, **(details or {})},
    }

    if success:
        logger.info(f"Diagnostic action: {action}", extra=extra)
    else:
        logger.warning(f"Diagnostic action failed: {action} - {error}", extra=extra)


def log_protocol_frame(direction: str, frame: bytes) -> None:
    """
    Log a raw protocol frame when raw protocol logging is enabled.

    Args:
        direction: "TX" or "RX"
        frame: Frame bytes
    """
    if not _raw_protocol:
        return

    # Trailing zero padding carries no information
    payload = bytes(frame).rstrip(b"\x00")
    get_logger("protocol").debug(
        f"{direction} {payload.hex(' ')}",
        extra={"direction": direction, "frame": bytes(frame).hex()},
    )


def set_raw_protocol_logging(enabled: bool) -> None:
    """Enable or disable raw frame logging at runtime."""
    global _raw_protocol
    _raw_protocol = enabled
