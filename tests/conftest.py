"""
Pytest configuration and fixtures for eBike HMI tests.
"""

import pytest
from pathlib import Path

from ebike_hmi.core.config import AppConfig, ProtocolConfig
from ebike_hmi.core.safety import SafetyManager
from ebike_hmi.core.session import DiagnosticSession
from ebike_hmi.transport.mock_transport import MockTransport
from ebike_hmi.protocols.uds_client import UDSClient
from ebike_hmi.sim.mock_display import MockDisplay, SimulationConfig


@pytest.fixture
def app_config() -> AppConfig:
    """Create test application configuration."""
    config = AppConfig()
    config.simulation_mode = True
    return config


@pytest.fixture
def protocol_config() -> ProtocolConfig:
    """Protocol timing shortened so timeouts resolve quickly."""
    return ProtocolConfig(
        handshake_timeout_ms=50,
        read_timeout_ms=30,
        auxiliary_timeout_ms=20,
        poll_interval_ms=1,
    )


@pytest.fixture
def safety_manager() -> SafetyManager:
    """Create test safety manager."""
    return SafetyManager()


@pytest.fixture
def mock_transport() -> MockTransport:
    """Create mock transport."""
    return MockTransport()


@pytest.fixture
def simulation_config() -> SimulationConfig:
    """Create simulation configuration."""
    return SimulationConfig()


@pytest.fixture
def mock_display(simulation_config: SimulationConfig) -> MockDisplay:
    """Create simulated display."""
    return MockDisplay(simulation_config)


@pytest.fixture
def connected_mock_transport(
    mock_transport: MockTransport, mock_display: MockDisplay
) -> MockTransport:
    """Create open mock transport wired to the simulated display."""
    mock_transport.open()
    mock_transport.connect_mock_display(mock_display)
    return mock_transport


@pytest.fixture
def uds_client(
    connected_mock_transport: MockTransport, safety_manager: SafetyManager
) -> UDSClient:
    """Create UDS client with mock transport."""
    return UDSClient(
        connected_mock_transport, safety_manager, timeout_ms=30, poll_interval_ms=1
    )


@pytest.fixture
def session(
    protocol_config: ProtocolConfig, safety_manager: SafetyManager
) -> DiagnosticSession:
    """Create a disconnected diagnostic session."""
    return DiagnosticSession(protocol_config, safety_manager)


@pytest.fixture
def ready_session(
    session: DiagnosticSession,
    mock_transport: MockTransport,
    mock_display: MockDisplay,
) -> DiagnosticSession:
    """Create a session that completed the handshake with the simulated display."""
    mock_transport.connect_mock_display(mock_display)
    session.connect(mock_transport)
    return session


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Create temporary directory for test files."""
    return tmp_path
