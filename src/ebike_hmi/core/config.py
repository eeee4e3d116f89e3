"""
Application Configuration

Manages configuration loading, validation, and persistence.
Supports YAML/JSON configuration files and runtime overrides.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_dir

from ebike_hmi.core.app_logging import get_logger

logger = get_logger(__name__)

APP_NAME = "ebike_hmi"

DEFAULT_VENDOR_ID = 0x108C
DEFAULT_PRODUCT_IDS = (0x0155,)


@dataclass
class DeviceConfig:
    """USB HID device selection."""

    vendor_id: int = DEFAULT_VENDOR_ID
    product_ids: list[int] = field(default_factory=lambda: list(DEFAULT_PRODUCT_IDS))
    preferred_path: str | None = None


@dataclass
class ProtocolConfig:
    """Timing and layout parameters of the display protocol."""

    handshake_timeout_ms: int = 1000
    read_timeout_ms: int = 3000
    auxiliary_timeout_ms: int = 2000  # drive unit / battery may be absent
    poll_interval_ms: int = 10
    response_data_offset: int = 6  # 5 on firmware with the 3-byte header

    def validate(self) -> None:
        """Raise ValueError on values the protocol engine cannot use."""
        if self.response_data_offset not in (5, 6):
            raise ValueError(
                f"Unsupported response data offset: {self.response_data_offset}"
            )
        for name in (
            "handshake_timeout_ms",
            "read_timeout_ms",
            "auxiliary_timeout_ms",
            "poll_interval_ms",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


@dataclass
class UIConfig:
    """UI-related configuration."""

    window_geometry: dict[str, int] = field(
        default_factory=lambda: {"x": 100, "y": 100, "width": 900, "height": 650}
    )


@dataclass
class LoggingConfig:
    """Logging-related configuration."""

    log_level: str = "INFO"
    log_dir: str = "./logs"
    max_log_files: int = 50
    log_raw_protocol: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""

    device: DeviceConfig = field(default_factory=DeviceConfig)
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Last display path that completed a handshake
    last_known_device: str | None = None
    simulation_mode: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "last_known_device": self.last_known_device,
            "simulation_mode": self.simulation_mode,
            "device": {
                "vendor_id": self.device.vendor_id,
                "product_ids": list(self.device.product_ids),
                "preferred_path": self.device.preferred_path,
            },
            "protocol": {
                "handshake_timeout_ms": self.protocol.handshake_timeout_ms,
                "read_timeout_ms": self.protocol.read_timeout_ms,
                "auxiliary_timeout_ms": self.protocol.auxiliary_timeout_ms,
                "poll_interval_ms": self.protocol.poll_interval_ms,
                "response_data_offset": self.protocol.response_data_offset,
            },
            "ui": {
                "window_geometry": self.ui.window_geometry,
            },
            "logging": {
                "log_level": self.logging.log_level,
                "log_dir": self.logging.log_dir,
                "max_log_files": self.logging.max_log_files,
                "log_raw_protocol": self.logging.log_raw_protocol,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        """Create configuration from dictionary."""
        config = cls()

        config.last_known_device = data.get("last_known_device")
        config.simulation_mode = bool(data.get("simulation_mode", False))

        if "device" in data:
            dev = data["device"]
            config.device = DeviceConfig(
                vendor_id=dev.get("vendor_id", DEFAULT_VENDOR_ID),
                product_ids=list(dev.get("product_ids", DEFAULT_PRODUCT_IDS)),
                preferred_path=dev.get("preferred_path"),
            )

        if "protocol" in data:
            proto = data["protocol"]
            config.protocol = ProtocolConfig(
                handshake_timeout_ms=proto.get("handshake_timeout_ms", 1000),
                read_timeout_ms=proto.get("read_timeout_ms", 3000),
                auxiliary_timeout_ms=proto.get("auxiliary_timeout_ms", 2000),
                poll_interval_ms=proto.get("poll_interval_ms", 10),
                response_data_offset=proto.get("response_data_offset", 6),
            )
            config.protocol.validate()

        if "ui" in data:
            ui = data["ui"]
            config.ui = UIConfig(
                window_geometry=ui.get(
                    "window_geometry",
                    {"x": 100, "y": 100, "width": 900, "height": 650},
                ),
            )

        if "logging" in data:
            log = data["logging"]
            config.logging = LoggingConfig(
                log_level=log.get("log_level", "INFO"),
                log_dir=log.get("log_dir", "./logs"),
                max_log_files=log.get("max_log_files", 50),
                log_raw_protocol=log.get("log_raw_protocol", False),
            )

        return config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    config_dir = Path(user_config_dir(APP_NAME))
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "config.yaml"


def load_config(path: Path | None = None) -> AppConfig:
    """
    Load configuration from file.

    Args:
        path: Path to configuration file (default: user config dir)

    Returns:
        Loaded configuration, defaults if the file is missing or invalid
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.info(f"No configuration file found at {config_path}, using defaults")
        return AppConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            if config_path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)

        config = AppConfig.from_dict(data or {})
        logger.info(f"Configuration loaded from {config_path}")
        return config

    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.error(f"Failed to load configuration: {e}")
        return AppConfig()


def save_config(config: AppConfig, path: Path | None = None) -> bool:
    """
    Save configuration to file.

    Args:
        config: Configuration to save
        path: Path to save to (default: user config dir)

    Returns:
        True if saved successfully
    """
    config_path = path or get_config_path()

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            if config_path.suffix == ".json":
                json.dump(config.to_dict(), f, indent=2)
            else:
                yaml.dump(config.to_dict(), f, default_flow_style=False)

        logger.info(f"Configuration saved to {config_path}")
        return True

    except OSError as e:
        logger.error(f"Failed to save configuration: {e}")
        return False
