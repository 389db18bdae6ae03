"""Main application entry point for the MongoDB Prometheus exporter."""

import argparse
import logging
import os
import signal
import sys
import threading
from typing import Optional

from prometheus_client import CollectorRegistry
from pymongo.errors import PyMongoError

from .collectors.base import CollectorConfig
from .collectors.manager import CollectorManager
from .config.loader import ConfigLoader
from .config.models import ExporterConfig
from .database.connection import ConnectionManager
from .exposition import PrometheusBridge
from .server import ExporterServer, ExporterWSGIApp
from .utils.logger import setup_logger


__version__ = "1.0.0"


class ExporterApp:
    """
    Main exporter application.

    Wires configuration, the MongoDB connection, the collector manager and
    the HTTP server, and handles graceful shutdown.
    """

    def __init__(self, config_path: Optional[str] = None, log_level: Optional[str] = None):
        """
        Initialize exporter application.

        Args:
            config_path: Path to configuration file, None for defaults
            log_level: Overrides the configured log level
        """
        self.config_path = config_path
        self.logger = setup_logger("mongodb_exporter", log_level or "INFO")
        self.config = self._load_config()

        logging_config = self.config.logging
        self.logger = setup_logger(
            "mongodb_exporter",
            level=log_level or logging_config.level,
            fmt=logging_config.format,
            output_path=logging_config.output_path,
        )

        self.connection: Optional[ConnectionManager] = None
        self.manager: Optional[CollectorManager] = None
        self.server: Optional[ExporterServer] = None
        self._stop = threading.Event()

    def _load_config(self) -> ExporterConfig:
        """
        Load and validate configuration.

        Returns:
            ExporterConfig: Loaded configuration

        Raises:
            SystemExit: If configuration is invalid
        """
        try:
            source = self.config_path or "defaults and environment"
            self.logger.info(f"Loading configuration from {source}")
            config = ConfigLoader.load(self.config_path)
            self.logger.info("Configuration loaded successfully")
            return config

        except FileNotFoundError:
            self.logger.error(f"Configuration file not found: {self.config_path}")
            sys.exit(1)

        except Exception as e:
            self.logger.error(f"Failed to load configuration: {e}", exc_info=True)
            sys.exit(1)

    def _signal_handler(self, signum, frame):
        """
        Handle shutdown signals.

        Args:
            signum: Signal number
            frame: Current stack frame
        """
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received {signal_name}, initiating graceful shutdown...")
        self._stop.set()

    def start(self) -> None:
        """Connect, register collectors and start serving."""
        self.logger.info("=" * 60)
        self.logger.info(f"MongoDB Exporter {__version__}")
        self.logger.info("=" * 60)

        self.connection = ConnectionManager(self.config.mongodb, self.logger)
        client = self.connection.connect()

        self.manager = CollectorManager(
            client, CollectorConfig.from_exporter_config(self.config), self.logger
        )
        collector = self.manager.initialize_collectors()

        registry = CollectorRegistry()
        registry.register(PrometheusBridge(collector, self.logger))

        app = ExporterWSGIApp(registry, self.connection.health_check, self.logger)
        server_config = self.config.server
        self.server = ExporterServer(
            app, server_config.host, server_config.port, server_config.read_timeout, self.logger
        )
        self.server.start()

        self.logger.info(
            f"Exporter ready; expected scrape interval {self.config.metrics.collection_interval:g}s"
        )

    def run(self) -> None:
        """Start the exporter and block until SIGINT/SIGTERM."""
        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.start()
            self._stop.wait()
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        """Stop the server, the collector manager and the connection."""
        self.logger.info("Shutting down...")
        if self.server is not None:
            self.server.stop()
        if self.manager is not None:
            self.manager.shutdown()
        if self.connection is not None:
            self.connection.disconnect()
        self.logger.info("Server exited")


def main():
    """
    CLI entry point.

    Parses command-line arguments and starts the exporter.
    """
    parser = argparse.ArgumentParser(
        description='Prometheus exporter for MongoDB diagnostic metrics',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with defaults (mongodb://localhost:27017, port 8080)
  mongodb-exporter

  # Use a configuration file
  mongodb-exporter --config config/config.yaml

  # Override the connection string from the environment
  MONGO_URI=mongodb://db:27017 mongodb-exporter
        """
    )

    parser.add_argument(
        '--config',
        default=None,
        help='Path to configuration file (default: built-in defaults)'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'mongodb-exporter {__version__}'
    )

    parser.add_argument(
        '--log-level',
        default=os.getenv('LOG_LEVEL'),
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config or LOG_LEVEL env var)'
    )

    args = parser.parse_args()

    try:
        app = ExporterApp(config_path=args.config, log_level=args.log_level)
        app.run()
    except PyMongoError as e:
        logging.error(f"Failed to connect to MongoDB: {e}")
        sys.exit(1)
    except Exception as e:
        logging.error(f"Application startup failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
