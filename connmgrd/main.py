"""
connmgrd Daemon Main Entry Point

The connmgrd daemon manages:
- The service registry connection
- Status aggregation and subscriber notification
- Mutation commands (IPv4, DNS, power, offline mode)
- RPC interfaces for the connection manager and WAN services
"""

import sys
import signal
import logging
import argparse
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__, CONNECTION_MANAGER_SERVICE, WAN_SERVICE
from .commands import CommandHandler
from .config import Config, DEFAULT_CONFIG_PATH
from .mainloop import MainLoop
from .notifier import Notifier
from .registry import MemoryRegistry, RegistryError, ServiceRegistry
from .rpc.server import RPCServer
from .service import ConnectionManagerService, WanService
from .status.aggregator import Aggregator


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("connmgrd")


def build_registry(config: Config) -> ServiceRegistry:
    """
    Create the configured registry backend.

    Raises:
        RegistryError: If the snapshot cannot be loaded
        ValueError: If the backend is unknown
    """
    backend = config.registry.backend
    if backend != "memory":
        raise ValueError(f"Unknown registry backend: {backend}")

    if config.registry.snapshot is not None:
        return MemoryRegistry.load(config.registry.snapshot)

    logger.warning("No registry snapshot configured, starting empty")
    return MemoryRegistry()


class ConnectionManagerDaemon:
    """
    Main connmgrd daemon class.

    Coordinates all subsystems:
    - Main loop
    - Service registry
    - Aggregator, notifier and command handler
    - RPC servers
    """

    def __init__(
        self,
        config: Config,
        registry: Optional[ServiceRegistry] = None,
        loop: Optional[MainLoop] = None,
    ):
        """
        Initialize daemon with configuration.

        Args:
            config: Loaded configuration
            registry: Registry to use instead of the configured backend
            loop: Main loop to use (default: a new one)
        """
        self.config = config
        self.loop = loop or MainLoop()
        self.registry = registry
        self._running = False

        # Core components (initialized in start())
        self.aggregator: Optional[Aggregator] = None
        self.notifier: Optional[Notifier] = None
        self.commands: Optional[CommandHandler] = None
        self._cm_server: Optional[RPCServer] = None
        self._wan_server: Optional[RPCServer] = None

    def start(self) -> None:
        """Build all components and start the RPC servers."""
        logger.info(f"Starting connmgrd v{__version__}")

        if self.registry is None:
            self.registry = build_registry(self.config)
        logger.info(f"Using registry {self.registry!r}")

        self.aggregator = Aggregator(self.registry)
        self.commands = CommandHandler(self.registry)

        executor = self._run_on_loop
        self._cm_server = RPCServer(
            socket_path=self.config.rpc.socket_path,
            executor=executor,
            name=CONNECTION_MANAGER_SERVICE,
        )
        self._wan_server = RPCServer(
            socket_path=self.config.rpc.wan_socket_path,
            executor=executor,
            name=WAN_SERVICE,
        )

        ConnectionManagerService(
            self.registry, self.aggregator, self.commands, stats=self.get_stats,
        ).register(self._cm_server)
        WanService(self.registry, self.aggregator).register(self._wan_server)

        self.notifier = Notifier(
            self.registry,
            self.aggregator,
            self.loop,
            publish_status=self._cm_server.post,
            publish_wan=self._wan_server.post,
            cellular_poll_interval=self.config.notifier.cellular_poll_interval,
        )
        self.registry.set_event_sink(self._on_registry_event)
        self.notifier.start()

        logger.info("Starting RPC servers...")
        self._cm_server.start()
        self._wan_server.start()

        self._running = True
        logger.info("connmgrd started")

    def _run_on_loop(self, callback, *args: Any) -> Any:
        return self.loop.run_sync(callback, *args, timeout=self.config.rpc.request_timeout)

    def _on_registry_event(self, event) -> None:
        # Registry events may come from any thread
        self.loop.call_soon(self.notifier.dispatch, event)

    def run(self) -> None:
        """Run the main loop until stop() is called, then shut down."""
        try:
            self.loop.run()
        finally:
            self.shutdown()

    def stop(self) -> None:
        """Ask the daemon to stop. Safe to call from a signal handler."""
        self.loop.stop()

    def shutdown(self) -> None:
        """Release all resources."""
        logger.info("Stopping connmgrd...")
        self._running = False

        if self.notifier:
            self.notifier.stop()
        if self.registry:
            self.registry.set_event_sink(None)

        # Stop RPC servers
        if self._cm_server:
            self._cm_server.stop()
            self._cm_server = None
        if self._wan_server:
            self._wan_server.stop()
            self._wan_server = None

        logger.info("connmgrd stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        """Collect statistics from all components."""
        return {
            "registry_stats": self.registry.get_statistics(),
            "notifier_stats": self.notifier.get_stats(),
            "subscribers": {
                CONNECTION_MANAGER_SERVICE: self._cm_server.subscriber_count("getstatus"),
                WAN_SERVICE: self._wan_server.subscriber_count("getstatus"),
            },
        }


def setup_logging(config: Config, verbose: bool = False) -> None:
    """Configure the root logger from configuration."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    if config.log_file is not None:
        handler = logging.FileHandler(config.log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(handler)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Connection manager status daemon")
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help="Configuration file path",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"connmgrd {__version__}",
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = Config.load(args.config)
        config.validate()
    except ValueError as e:
        logging.basicConfig(format=LOG_FORMAT)
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(config, verbose=args.verbose)

    # Create and start daemon
    daemon = ConnectionManagerDaemon(config)

    # Signal handlers
    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}")
        daemon.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        daemon.start()
    except (RegistryError, ValueError, OSError) as e:
        logger.error(f"Fatal error: {e}")
        daemon.shutdown()
        sys.exit(1)

    daemon.run()


if __name__ == "__main__":
    main()
