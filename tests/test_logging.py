"""
Tests for logging and audit functionality.
"""

import pytest
import json
from pathlib import Path

from ebike_hmi.core.app_logging import (
    setup_logging,
    get_logger,
    get_session_id,
    get_log_dir,
    log_audit_event,
    log_diagnostic_action,
    log_protocol_frame,
    set_raw_protocol_logging,
)


def _read_entries(log_dir: Path) -> list[dict]:
    entries = []
    for log_file in log_dir.glob("*.jsonl"):
        with open(log_file, "r") as f:
            entries.extend(json.loads(line) for line in f if line.strip())
    return entries


class TestLogging:
    """Tests for logging system."""

    def test_setup_logging(self, temp_dir: Path):
        """Test logging setup."""
        log_dir = temp_dir / "logs"
        setup_logging(log_dir=log_dir, debug=True)

        assert log_dir.exists()

    def test_get_logger(self, temp_dir: Path):
        """Test getting a logger."""
        setup_logging(log_dir=temp_dir, debug=False)

        logger = get_logger("test")
        assert logger is not None
        assert logger.name == "ebike_hmi.test"

    def test_get_logger_keeps_namespace(self):
        """Test package module names are not prefixed twice."""
        assert get_logger("ebike_hmi.core.session").name == "ebike_hmi.core.session"

    def test_get_session_id(self, temp_dir: Path):
        """Test session ID generation."""
        setup_logging(log_dir=temp_dir, debug=False)

        session_id = get_session_id()
        assert session_id is not None
        assert len(session_id) > 0
        # Should be in YYYYMMDD_HHMMSS format
        assert "_" in session_id

    def test_log_audit_event(self, temp_dir: Path):
        """Test audit event logging."""
        setup_logging(log_dir=temp_dir, debug=True)

        log_audit_event(
            "test_event",
            "Test description",
            {"key": "value"},
        )

        entries = _read_entries(temp_dir)
        audit = [e for e in entries if e.get("audit_event") == "test_event"]
        assert len(audit) == 1
        assert audit[0]["audit_details"] == {"key": "value"}

    def test_log_diagnostic_action(self, temp_dir: Path):
        """Test diagnostic action logging."""
        setup_logging(log_dir=temp_dir, debug=True)

        log_diagnostic_action(
            "read_field",
            identifier=0x0242,
            success=True,
            details={"field": "serialNumber"},
        )

        entries = _read_entries(temp_dir)
        actions = [e for e in entries if e.get("operation") == "read_field"]
        assert actions[0]["identifier"] == "0x0242"

    def test_log_format_jsonl(self, temp_dir: Path):
        """Test log entries are valid JSONL."""
        setup_logging(log_dir=temp_dir, debug=True)

        logger = get_logger("test_jsonl")
        logger.info("Test message")

        for data in _read_entries(temp_dir):
            assert "timestamp" in data
            assert "level" in data
            assert "message" in data

    def test_failed_action_logged(self, temp_dir: Path):
        """Test failed diagnostic actions are logged as warnings."""
        setup_logging(log_dir=temp_dir, debug=True)

        log_diagnostic_action(
            "failed_action",
            identifier=0x5B7C,
            success=False,
            error="Test error message",
        )

        entries = _read_entries(temp_dir)
        failed = [e for e in entries if e.get("operation") == "failed_action"]
        assert failed[0]["level"] == "WARNING"
        assert "Test error message" in failed[0]["message"]


class TestProtocolFrameLogging:
    """Tests for raw frame logging."""

    def test_disabled_by_default(self, temp_dir: Path):
        """Test frames are not logged unless enabled."""
        setup_logging(log_dir=temp_dir, debug=True)

        log_protocol_frame("TX", bytes([0x01, 0x00, 0x3A, 0x08]))

        assert not [e for e in _read_entries(temp_dir) if e.get("direction")]

    def test_enabled(self, temp_dir: Path):
        """Test frames are logged as hex when enabled."""
        setup_logging(log_dir=temp_dir, debug=True, raw_protocol=True)

        log_protocol_frame("RX", bytes([0x01, 0x00, 0x3D, 0x02]) + bytes(60))

        frames = [e for e in _read_entries(temp_dir) if e.get("direction") == "RX"]
        assert len(frames) == 1
        assert frames[0]["message"] == "RX 01 00 3d 02"

        set_raw_protocol_logging(False)


class TestLogDir:
    """Tests for log directory management."""

    def test_get_log_dir_default(self):
        """Test default log directory."""
        log_dir = get_log_dir()
        # Should return Path object
        assert isinstance(log_dir, Path)

    def test_get_log_dir_after_setup(self, temp_dir: Path):
        """Test log directory after setup."""
        log_dir = temp_dir / "custom_logs"
        setup_logging(log_dir=log_dir, debug=False)

        result = get_log_dir()
        assert result == log_dir

    def test_old_session_files_pruned(self, temp_dir: Path):
        """Test only the newest session files are kept."""
        for stamp in ("20240101_000000", "20240102_000000", "20240103_000000"):
            (temp_dir / f"session_{stamp}.jsonl").write_text("")

        setup_logging(log_dir=temp_dir, max_log_files=2)

        remaining = sorted(p.name for p in temp_dir.glob("session_*.jsonl"))
        assert "session_20240101_000000.jsonl" not in remaining
        assert "session_20240102_000000.jsonl" not in remaining
        assert "session_20240103_000000.jsonl" in remaining
        assert len(remaining) == 2
