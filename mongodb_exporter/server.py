"""HTTP server exposing /metrics, /health and a landing page."""

import logging
import threading
from typing import Callable, Iterable, Optional
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client import CollectorRegistry, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer


LANDING_PAGE = b"""<html>
<head><title>MongoDB Exporter</title></head>
<body>
<h1>MongoDB Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
<p><a href="/health">Health</a></p>
</body>
</html>
"""


class ExporterWSGIApp:
    """
    WSGI application routing between metrics, health and landing page.

    Args:
        registry: prometheus_client registry holding the exporter bridge
        health_check: Callable returning True when MongoDB is reachable
        logger: Logger instance
    """

    def __init__(
        self,
        registry: CollectorRegistry,
        health_check: Callable[[], bool],
        logger: logging.Logger,
    ):
        self.metrics_app = make_wsgi_app(registry)
        self.health_check = health_check
        self.logger = logger.getChild(self.__class__.__name__)

    def __call__(self, environ, start_response) -> Iterable[bytes]:
        path = environ.get("PATH_INFO", "/")
        self.logger.debug(
            "HTTP request",
            extra={"method": environ.get("REQUEST_METHOD"), "path": path},
        )

        if path == "/metrics":
            return self.metrics_app(environ, start_response)
        if path == "/health":
            return self._health(start_response)
        if path == "/":
            start_response("200 OK", [("Content-Type", "text/html; charset=utf-8")])
            return [LANDING_PAGE]

        start_response("404 Not Found", [("Content-Type", "text/plain")])
        return [b"Not Found"]

    def _health(self, start_response) -> Iterable[bytes]:
        if self.health_check():
            start_response("200 OK", [("Content-Type", "text/plain")])
            return [b"OK"]
        start_response("503 Service Unavailable", [("Content-Type", "text/plain")])
        return [b"MongoDB connection failed"]


class _QuietHandler(WSGIRequestHandler):
    """Request handler that leaves access logging to the application."""

    def log_message(self, format, *args):
        pass


class ExporterServer:
    """Serve an ExporterWSGIApp from a background thread."""

    def __init__(self, app: ExporterWSGIApp, host: str, port: int, read_timeout: float, logger: logging.Logger):
        """
        Initialize server.

        Args:
            app: WSGI application
            host: Listen address
            port: Listen port
            read_timeout: Socket timeout for client connections in seconds
            logger: Logger instance
        """
        self.app = app
        self.host = host
        self.port = port
        self.logger = logger.getChild(self.__class__.__name__)
        self.handler_class = type("ExporterRequestHandler", (_QuietHandler,), {"timeout": read_timeout})
        self._httpd = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Bind the socket and start serving in a daemon thread."""
        self._httpd = make_server(
            self.host, self.port, self.app,
            server_class=ThreadingWSGIServer, handler_class=self.handler_class,
        )
        self.port = self._httpd.server_port
        self._thread = threading.Thread(target=self._httpd.serve_forever, name="exporter-http", daemon=True)
        self._thread.start()
        self.logger.info(f"Starting HTTP server on {self.host}:{self.port}")

    def stop(self) -> None:
        """Stop serving and close the socket."""
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._httpd = None
        self.logger.info("HTTP server stopped")
