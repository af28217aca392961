"""
connmgrd Configuration Management

Handles loading and validation of configuration from TOML file.
"""

from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

import toml


# Default configuration path
DEFAULT_CONFIG_PATH = Path("/etc/connmgr/config.toml")

# Default run directory
DEFAULT_RUN_DIR = Path("/run/connmgr")

# Accepted log levels
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Registry backends shipped with the daemon
REGISTRY_BACKENDS = ("memory",)


class ConfigError(ValueError):
    """Configuration file could not be parsed."""
    pass


@dataclass
class RPCConfig:
    """RPC socket configuration."""
    socket_path: Path = field(default_factory=lambda: DEFAULT_RUN_DIR / "connectionmanager.sock")
    wan_socket_path: Path = field(default_factory=lambda: DEFAULT_RUN_DIR / "wan.sock")
    request_timeout: float = 10.0  # seconds


@dataclass
class NotifierConfig:
    """Status notification configuration."""
    cellular_poll_interval: float = 0.5  # seconds


@dataclass
class RegistryConfig:
    """Service registry configuration."""
    backend: str = "memory"
    snapshot: Optional[Path] = None


@dataclass
class Config:
    """
    Complete connmgrd configuration.
    """
    # Sub-configurations
    rpc: RPCConfig = field(default_factory=RPCConfig)
    notifier: NotifierConfig = field(default_factory=NotifierConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)

    # Paths
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG_PATH)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """
        Load configuration from file.

        Args:
            config_path: Path to config file (default: /etc/connmgr/config.toml)

        Returns:
            Loaded configuration (defaults if the file does not exist)

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        path = Path(config_path or DEFAULT_CONFIG_PATH)
        config = cls()
        config.config_path = path

        if not path.exists():
            return config

        try:
            data = toml.load(path)
            config._apply_dict(data)
        except (OSError, toml.TomlDecodeError, TypeError, ValueError) as e:
            raise ConfigError(f"Failed to load {path}: {e}") from e

        return config

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary data to config."""
        # Top-level settings
        if "log_level" in data:
            self.log_level = str(data["log_level"]).upper()
        if "log_file" in data:
            self.log_file = Path(data["log_file"])

        # RPC config
        if "rpc" in data:
            r = data["rpc"]
            if "socket_path" in r:
                self.rpc.socket_path = Path(r["socket_path"])
            if "wan_socket_path" in r:
                self.rpc.wan_socket_path = Path(r["wan_socket_path"])
            if "request_timeout" in r:
                self.rpc.request_timeout = float(r["request_timeout"])

        # Notifier config
        if "notifier" in data:
            n = data["notifier"]
            if "cellular_poll_interval" in n:
                self.notifier.cellular_poll_interval = float(n["cellular_poll_interval"])

        # Registry config
        if "registry" in data:
            g = data["registry"]
            if "backend" in g:
                self.registry.backend = str(g["backend"])
            if "snapshot" in g:
                self.registry.snapshot = Path(g["snapshot"])

    def validate(self) -> None:
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.log_level}")

        if self.rpc.request_timeout <= 0:
            raise ValueError(f"Invalid request timeout: {self.rpc.request_timeout}")

        if self.rpc.socket_path == self.rpc.wan_socket_path:
            raise ValueError("Service and WAN sockets must differ")

        # Poll interval in (0, 60]
        interval = self.notifier.cellular_poll_interval
        if interval <= 0 or interval > 60:
            raise ValueError(f"Invalid cellular poll interval: {interval}")

        if self.registry.backend not in REGISTRY_BACKENDS:
            raise ValueError(f"Unknown registry backend: {self.registry.backend}")
