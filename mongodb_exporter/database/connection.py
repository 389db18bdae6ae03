"""MongoDB connection lifecycle."""

import logging
from typing import Any, Dict, Optional

import pymongo
from pymongo import MongoClient
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.models import MongoDBConfig
from .client import DiagnosticClient


class ConnectionManager:
    """Own the pymongo client used by every collector."""

    def __init__(self, config: MongoDBConfig, logger: logging.Logger):
        """
        Initialize connection manager.

        Args:
            config: MongoDB connection configuration
            logger: Logger instance
        """
        self.config = config
        self.logger = logger.getChild(self.__class__.__name__)
        self._client: Optional[MongoClient] = None

    def client_options(self) -> Dict[str, Any]:
        """
        Translate configuration into MongoClient keyword arguments.

        Returns:
            Dict[str, Any]: Options passed to ``pymongo.MongoClient``
        """
        cfg = self.config
        options: Dict[str, Any] = {
            "connectTimeoutMS": int(cfg.connection_timeout * 1000),
            "serverSelectionTimeoutMS": int(cfg.server_selection_timeout * 1000),
            "maxPoolSize": cfg.max_pool_size,
            "minPoolSize": cfg.min_pool_size,
            "maxIdleTimeMS": int(cfg.max_idle_time * 1000),
            "appname": "mongodb-exporter",
        }

        if cfg.username:
            options["username"] = cfg.username
            options["password"] = cfg.password or ""
            options["authSource"] = cfg.auth_source
            if cfg.auth_mechanism:
                options["authMechanism"] = cfg.auth_mechanism

        if cfg.tls_enabled:
            options["tls"] = True
            if cfg.tls_insecure_skip_verify:
                options["tlsInsecure"] = True
            if cfg.tls_ca_file:
                options["tlsCAFile"] = cfg.tls_ca_file
            if cfg.tls_cert_file:
                # pymongo expects the certificate and key concatenated in one PEM
                options["tlsCertificateKeyFile"] = cfg.tls_cert_file
            if cfg.tls_key_file and cfg.tls_key_file != cfg.tls_cert_file:
                self.logger.warning(
                    "tls_key_file is ignored; provide a combined PEM in tls_cert_file",
                    extra={"tls_key_file": cfg.tls_key_file},
                )

        return options

    def connect(self) -> DiagnosticClient:
        """
        Create the client and verify the server answers a ping.

        Returns:
            DiagnosticClient: Query surface for collectors

        Raises:
            ConnectionFailure: If the server cannot be reached
        """
        self.logger.info("Connecting to MongoDB", extra={"database": self.config.database})
        self._client = MongoClient(self.config.uri, **self.client_options())

        try:
            with pymongo.timeout(self.config.connection_timeout):
                self._client.admin.command("ping")
        except PyMongoError as e:
            self._client.close()
            self._client = None
            raise ConnectionFailure(f"Failed to ping MongoDB: {e}") from e

        self.logger.info("Successfully connected to MongoDB")
        return DiagnosticClient(self._client, self.logger)

    def get_client(self) -> DiagnosticClient:
        """Return a diagnostic client over the live connection."""
        if self._client is None:
            raise ConnectionFailure("Not connected")
        return DiagnosticClient(self._client, self.logger)

    def health_check(self, timeout: float = 5.0) -> bool:
        """
        Ping the server.

        Args:
            timeout: Seconds to wait for the ping

        Returns:
            bool: True when the server answered
        """
        if self._client is None:
            return False
        try:
            with pymongo.timeout(timeout):
                self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            self.logger.warning(f"Health check failed: {e}")
            return False

    def disconnect(self) -> None:
        """Close the client if connected."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self.logger.info("Disconnected from MongoDB")
