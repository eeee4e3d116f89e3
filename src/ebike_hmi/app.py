"""
eBike HMI - Display Diagnostic Tool
Single-file application for simplicity
"""
import sys
from datetime import datetime
from pathlib import Path

from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QLabel, QPushButton, QTextEdit, QMessageBox, QProgressBar,
    QTableWidget, QTableWidgetItem, QHeaderView, QTabWidget,
    QComboBox, QFileDialog
)
from PyQt6.QtCore import QTimer, QThread, pyqtSignal
from PyQt6.QtGui import QFont, QColor

from ebike_hmi import get_safety_manager
from ebike_hmi.core.app_logging import get_logger, setup_logging
from ebike_hmi.core.config import AppConfig, load_config, save_config
from ebike_hmi.core.discovery import DisplayDiscovery, DisplayInfo
from ebike_hmi.core.fields import (
    BATTERY_FIELDS, DRIVE_UNIT_FIELDS, PRIMARY_FIELDS, ReadScope
)
from ebike_hmi.core.record import DiagnosticRecord, FieldStatus, save_record
from ebike_hmi.core.session import DiagnosticSession
from ebike_hmi.protocols.errors import HandshakeError, UDSError
from ebike_hmi.sim.mock_display import MockDisplay, SimulationConfig
from ebike_hmi.transport.base import BaseTransport, TransportError
from ebike_hmi.transport.hid_transport import HidTransport
from ebike_hmi.transport.mock_transport import MockTransport

logger = get_logger(__name__)

STATUS_COLORS = {
    FieldStatus.OK: "#00cc00",
    FieldStatus.UNAVAILABLE: "#cc6600",
    FieldStatus.ERROR: "#cc0000",
    FieldStatus.NOT_QUERIED: "#888888",
}


def create_simulated_transport() -> MockTransport:
    """Mock transport wired to a simulated display with all subsystems."""
    transport = MockTransport()
    transport.connect_mock_display(MockDisplay(SimulationConfig(subsystems_connected=True)))
    return transport


class SessionWorker(QThread):
    """Worker thread for session operations."""
    finished = pyqtSignal(dict)
    progress = pyqtSignal(str)

    def __init__(self, operation, session, transport=None, scope=ReadScope.PRIMARY):
        super().__init__()
        self.operation = operation
        self.session = session
        self.transport = transport
        self.scope = scope

    def run(self):
        try:
            if self.operation == "connect":
                self.progress.emit("Handshake...")
                self.session.connect(self.transport)
                results = {"connected": True}
            elif self.operation == "read":
                self.progress.emit(f"Reading {self.scope.value} information...")
                results = {"record": self.session.read_all(self.scope)}
            elif self.operation == "set_clock":
                now = datetime.now()
                self.progress.emit(f"Setting clock to {now:%d.%m.%Y %H:%M}...")
                results = {"success": self.session.set_date_time(now)}
            else:
                results = {"error": "Unknown operation"}

            self.finished.emit(results)

        except (TransportError, HandshakeError, UDSError, ValueError) as e:
            self.finished.emit({"error": str(e)})


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, config: AppConfig):
        super().__init__()
        self.setWindowTitle("eBike HMI - Display Diagnostics")
        self.setMinimumSize(900, 650)

        self.config = config
        self.session = DiagnosticSession(config.protocol, get_safety_manager())
        self.discovery = DisplayDiscovery(
            vendor_id=config.device.vendor_id,
            product_ids=config.device.product_ids,
            last_known_device=config.last_known_device,
        )
        self.displays: list[DisplayInfo] = []
        self.record: DiagnosticRecord | None = None
        self.worker = None
        self.busy = False

        geometry = config.ui.window_geometry
        self.setGeometry(
            geometry.get("x", 100), geometry.get("y", 100),
            geometry.get("width", 900), geometry.get("height", 650),
        )

        self._setup_ui()
        self._apply_style()

        # Auto-detect on startup
        QTimer.singleShot(500, self.detect_displays)

    def _apply_style(self):
        self.setStyleSheet("""
            QMainWindow, QWidget {
                background-color: #1e1e1e;
                color: #ffffff;
                font-family: sans-serif;
            }
            QPushButton {
                background-color: #2e7d32;
                color: white;
                border: none;
                padding: 12px 24px;
                font-size: 14px;
                border-radius: 4px;
                min-height: 20px;
            }
            QPushButton:hover { background-color: #388e3c; }
            QPushButton:disabled { background-color: #444; color: #888; }
            QPushButton#danger { background-color: #cc3333; }
            QPushButton#danger:hover { background-color: #ee4444; }
            QComboBox {
                background-color: #2d2d2d;
                border: 1px solid #444;
                padding: 8px;
                min-width: 320px;
            }
            QTextEdit {
                background-color: #2d2d2d;
                border: 1px solid #444;
                border-radius: 4px;
                padding: 8px;
                font-family: monospace;
            }
            QTableWidget {
                background-color: #2d2d2d;
                border: 1px solid #444;
                gridline-color: #444;
            }
            QHeaderView::section {
                background-color: #383838;
                padding: 8px;
                border: none;
            }
            QTabWidget::pane { border: 1px solid #444; }
            QTabBar::tab {
                background-color: #2d2d2d;
                padding: 10px 20px;
                border: 1px solid #444;
            }
            QTabBar::tab:selected { background-color: #2e7d32; }
            QProgressBar {
                background-color: #2d2d2d;
                border: none;
                border-radius: 4px;
                text-align: center;
            }
            QProgressBar::chunk { background-color: #2e7d32; }
        """)

    def _setup_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)
        layout.setContentsMargins(20, 20, 20, 20)
        layout.setSpacing(15)

        # Header
        header = QLabel("eBike HMI")
        header.setFont(QFont("sans-serif", 28, QFont.Weight.Bold))
        header.setStyleSheet("color: #66bb6a;")
        layout.addWidget(header)

        subtitle = QLabel("E-Bike Display Diagnostic Tool")
        subtitle.setStyleSheet("color: #888;")
        layout.addWidget(subtitle)

        # Device bar
        device_layout = QHBoxLayout()

        self.device_combo = QComboBox()
        device_layout.addWidget(self.device_combo)

        self.detect_btn = QPushButton("Detect")
        self.detect_btn.clicked.connect(self.detect_displays)
        device_layout.addWidget(self.detect_btn)

        self.connect_btn = QPushButton("Connect")
        self.connect_btn.clicked.connect(self.connect_display)
        self.connect_btn.setEnabled(False)
        device_layout.addWidget(self.connect_btn)

        self.disconnect_btn = QPushButton("Disconnect")
        self.disconnect_btn.setObjectName("danger")
        self.disconnect_btn.clicked.connect(self.disconnect_display)
        self.disconnect_btn.setEnabled(False)
        device_layout.addWidget(self.disconnect_btn)

        device_layout.addStretch()
        layout.addLayout(device_layout)

        self.status_label = QLabel("Detecting displays...")
        self.status_label.setStyleSheet("color: #ffaa00;")
        layout.addWidget(self.status_label)

        # Tabs
        tabs = QTabWidget()

        # Tab 1: Information
        info_tab = QWidget()
        info_layout = QVBoxLayout(info_tab)

        info_btn_layout = QHBoxLayout()
        self.read_display_btn = QPushButton("Read Display")
        self.read_display_btn.clicked.connect(lambda: self.read_information(ReadScope.PRIMARY))
        info_btn_layout.addWidget(self.read_display_btn)

        self.read_full_btn = QPushButton("Read Full System")
        self.read_full_btn.clicked.connect(lambda: self.read_information(ReadScope.EXTENDED))
        info_btn_layout.addWidget(self.read_full_btn)

        self.clock_btn = QPushButton("Set Clock")
        self.clock_btn.clicked.connect(self.set_clock)
        info_btn_layout.addWidget(self.clock_btn)

        self.export_btn = QPushButton("Export...")
        self.export_btn.clicked.connect(self.export_record)
        info_btn_layout.addWidget(self.export_btn)

        info_btn_layout.addStretch()
        info_layout.addLayout(info_btn_layout)

        self.progress = QProgressBar()
        self.progress.setMinimumHeight(25)
        self.progress.setRange(0, 0)
        self.progress.hide()
        info_layout.addWidget(self.progress)

        self.info_table = QTableWidget()
        self.info_table.setColumnCount(3)
        self.info_table.setHorizontalHeaderLabels(["Component", "Field", "Value"])
        self.info_table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeMode.Stretch)
        info_layout.addWidget(self.info_table)

        tabs.addTab(info_tab, "Information")

        # Tab 2: Log
        log_tab = QWidget()
        log_layout = QVBoxLayout(log_tab)

        self.log_output = QTextEdit()
        self.log_output.setReadOnly(True)
        log_layout.addWidget(self.log_output)

        clear_log_btn = QPushButton("Clear Log")
        clear_log_btn.clicked.connect(lambda: self.log_output.clear())
        log_layout.addWidget(clear_log_btn)

        tabs.addTab(log_tab, "Log")

        layout.addWidget(tabs)
        self._update_buttons()

    def log(self, msg):
        self.log_output.append(msg)

    def _update_buttons(self):
        busy = self.busy
        ready = self.session.is_ready and not busy

        self.detect_btn.setEnabled(not busy and not self.session.is_ready)
        self.connect_btn.setEnabled(
            not busy and not self.session.is_ready
            and (self.config.simulation_mode or self.device_combo.count() > 0)
        )
        self.disconnect_btn.setEnabled(ready)
        self.read_display_btn.setEnabled(ready)
        self.read_full_btn.setEnabled(ready)
        self.clock_btn.setEnabled(ready)
        self.export_btn.setEnabled(self.record is not None and not busy)

    def _set_status(self, text, color):
        self.status_label.setText(text)
        self.status_label.setStyleSheet(f"color: {color};")

    def detect_displays(self):
        """Enumerate HID displays."""
        self.device_combo.clear()

        if self.config.simulation_mode:
            self.device_combo.addItem("Simulated display")
            self._set_status("Simulation mode", "#00cc00")
            self.log("Simulation mode: using simulated display")
            self._update_buttons()
            return

        self.log("Detecting displays...")
        self.displays = self.discovery.refresh()

        for display in self.displays:
            self.device_combo.addItem(str(display))
            self.log(f"  Found: {display}")

        preferred = self.config.device.preferred_path
        for index, display in enumerate(self.displays):
            if preferred and display.path_str == preferred:
                self.device_combo.setCurrentIndex(index)
                break

        if self.displays:
            self._set_status(f"Found {len(self.displays)} display(s)", "#00cc00")
        else:
            self._set_status("No display found - plug in the display via USB", "#cc6600")
            self.log("No display detected. Check the USB cable and permissions.")

        self._update_buttons()

    def _create_transport(self) -> BaseTransport | None:
        if self.config.simulation_mode:
            return create_simulated_transport()

        index = self.device_combo.currentIndex()
        if index < 0 or index >= len(self.displays):
            return None
        return HidTransport(path=self.displays[index].path)

    def connect_display(self):
        """Open the selected display and run the handshake."""
        transport = self._create_transport()
        if transport is None:
            QMessageBox.warning(self, "Error", "No display selected")
            return

        self.log("Connecting...")
        self._start_worker(SessionWorker("connect", self.session, transport=transport))

    def disconnect_display(self):
        self.session.disconnect()
        self._set_status("Disconnected", "#ffaa00")
        self.log("Disconnected.")
        self._update_buttons()

    def read_information(self, scope):
        self.info_table.setRowCount(0)
        self._start_worker(SessionWorker("read", self.session, scope=scope))

    def set_clock(self):
        reply = QMessageBox.question(
            self, "Confirm",
            "Set the display clock to the current computer time?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No
        )

        if reply != QMessageBox.StandardButton.Yes:
            return

        self._start_worker(SessionWorker("set_clock", self.session))

    def export_record(self):
        if self.record is None:
            return

        default_name = f"ebike_hmi_{self.record.last_update:%Y%m%d_%H%M%S}.json"
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Record", default_name, "JSON (*.json);;YAML (*.yaml *.yml)"
        )
        if not path:
            return

        try:
            save_record(self.record, Path(path))
            self.log(f"Record exported to {path}")
        except OSError as e:
            QMessageBox.warning(self, "Export Error", str(e))

    def _start_worker(self, worker):
        self.worker = worker
        self.worker.progress.connect(self.log)
        self.worker.finished.connect(lambda results: self._on_finished(worker.operation, results))
        self.busy = True
        self.progress.show()
        self.worker.start()
        self._update_buttons()

    def _on_finished(self, operation, results):
        self.progress.hide()
        self.busy = False

        if "error" in results:
            self.log(f"{operation} failed: {results['error']}")
            if not self.session.is_ready:
                self._set_status("Not connected", "#cc0000")
            QMessageBox.warning(self, "Error", results["error"])
        elif operation == "connect":
            self._on_connected()
        elif operation == "read":
            self._show_record(results["record"])
        elif operation == "set_clock":
            if results["success"]:
                self.log("Display clock set.")
            else:
                self.log("Display did not acknowledge the clock write.")

        self._update_buttons()

    def _on_connected(self):
        self._set_status("Connected", "#00cc00")
        self.log("Handshake successful.")

        if not self.config.simulation_mode:
            index = self.device_combo.currentIndex()
            if 0 <= index < len(self.displays):
                self.config.last_known_device = self.displays[index].path_str
                save_config(self.config)

    def _add_row(self, component, label, value):
        row = self.info_table.rowCount()
        self.info_table.insertRow(row)
        self.info_table.setItem(row, 0, QTableWidgetItem(component))
        self.info_table.setItem(row, 1, QTableWidgetItem(label))

        item = QTableWidgetItem(str(value))
        item.setForeground(QColor(STATUS_COLORS.get(value.status, "#ffffff")))
        self.info_table.setItem(row, 2, item)

    def _show_record(self, record):
        self.record = record
        self.info_table.setRowCount(0)

        for spec in PRIMARY_FIELDS:
            self._add_row("Display", spec.label, record[spec.name])

        subsystems = (
            ("Drive unit", record.drive_unit, DRIVE_UNIT_FIELDS),
            ("Battery", record.battery_management, BATTERY_FIELDS),
        )
        for component, subsystem, specs in subsystems:
            if not subsystem.fields:
                continue
            if subsystem.message:
                self.log(f"{component}: {subsystem.message}")
            for spec in specs:
                self._add_row(component, spec.label, subsystem.fields[spec.name])

        summary = record.get_summary()
        self.log(
            f"Read complete: {summary['ok']} ok, {summary['unavailable']} unavailable, "
            f"{summary['error']} errors."
        )


def main():
    """Main entry point."""
    config = load_config()
    if "--simulate" in sys.argv:
        config.simulation_mode = True

    setup_logging(
        log_dir=Path(config.logging.log_dir),
        debug="--debug" in sys.argv or config.logging.log_level == "DEBUG",
        raw_protocol=config.logging.log_raw_protocol,
        max_log_files=config.logging.max_log_files,
    )

    app = QApplication(sys.argv)
    app.setApplicationName("eBike HMI")

    window = MainWindow(config)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
