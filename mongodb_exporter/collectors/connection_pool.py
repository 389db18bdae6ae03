"""Connection pool collector."""

from collections import Counter
from typing import Any, Dict, Mapping

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_list, get_number, get_string
from .base import BaseCollector, safe_collect


DEFAULT_POOL = "default"

# metrics.connectionPool.<pool> field -> descriptor key
POOL_FIELDS = {
    "currentCheckedOut": "checked_out",
    "currentAvailable": "checked_in",
    "currentCreated": "current_created",
    "maxPoolSize": "max_size",
    "minPoolSize": "min_size",
    "totalCreated": "total_created",
    "totalDestroyed": "total_destroyed",
    "waitQueueSize": "wait_queue_size",
    "waitQueueTimeouts": "wait_queue_timeouts",
    "avgWaitTimeMs": "wait_time",
    "avgCheckoutTimeMs": "checkout_time",
}

# connPoolStats.hosts.<host> field -> descriptor key
HOST_FIELDS = {
    "inUse": "checked_out",
    "available": "checked_in",
    "created": "current_created",
}

NETWORK_ERRORS = {
    "errors": "network_error",
    "timeouts": "network_timeout",
    "compressionErrors": "compression_error",
}


def client_host(client: str) -> str:
    """Strip the ephemeral port from a ``host:port`` client address."""
    host, separator, port = client.rpartition(":")
    if separator and port.isdigit():
        return host
    return client


class ConnectionPoolCollector(BaseCollector):
    """
    Pool usage from whichever document locations the server provides.

    ``serverStatus.connections`` is always read as pool "default";
    ``serverStatus.metrics.connectionPool`` adds named pools when present,
    and ``connPoolStats`` adds one pool per remote host.
    """

    name = "connection_pool"
    timeout = 15.0

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "checked_out": self._gauge(
                "mongodb_connection_pool_current_checked_out",
                "Connections currently checked out of the pool",
                "pool_name",
            ),
            "checked_in": self._gauge(
                "mongodb_connection_pool_current_checked_in",
                "Connections currently idle in the pool",
                "pool_name",
            ),
            "current_created": self._gauge(
                "mongodb_connection_pool_current_created",
                "Connections currently owned by the pool",
                "pool_name",
            ),
            "max_size": self._gauge(
                "mongodb_connection_pool_max_size",
                "Configured maximum pool size",
                "pool_name",
            ),
            "min_size": self._gauge(
                "mongodb_connection_pool_min_size",
                "Configured minimum pool size",
                "pool_name",
            ),
            "total_created": self._counter(
                "mongodb_connection_pool_connections_created_total",
                "Connections created by the pool",
                "pool_name",
            ),
            "total_destroyed": self._counter(
                "mongodb_connection_pool_connections_destroyed_total",
                "Connections destroyed by the pool",
                "pool_name",
            ),
            "requests": self._counter(
                "mongodb_connection_pool_requests_total",
                "Connection checkout requests by result",
                "pool_name", "result",
            ),
            "wait_queue_size": self._gauge(
                "mongodb_connection_pool_wait_queue_size",
                "Requests waiting for a connection",
                "pool_name",
            ),
            "wait_queue_timeouts": self._counter(
                "mongodb_connection_pool_wait_queue_timeout_total",
                "Requests that timed out waiting for a connection",
                "pool_name",
            ),
            "wait_time": self._gauge(
                "mongodb_connection_pool_wait_time_milliseconds",
                "Average wait time for a connection in milliseconds",
                "pool_name",
            ),
            "checkout_time": self._gauge(
                "mongodb_connection_pool_checkout_time_milliseconds",
                "Average time a connection stays checked out in milliseconds",
                "pool_name",
            ),
            "errors": self._counter(
                "mongodb_connection_errors_total",
                "Connection-level errors by type",
                "error_type", "host",
            ),
            "client_operations": self._gauge(
                "mongodb_connection_client_operations",
                "In-progress operations per client host",
                "host",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        instance = self.get_instance_info(status)

        connections = get_document(status, "connections")
        if connections is not None:
            self._collect_basic(sink, instance, connections)

        for pool_name, pool in (get_document(status, "metrics", "connectionPool") or {}).items():
            if isinstance(pool, Mapping):
                self._collect_pool(sink, instance, pool_name, pool)

        self._collect_errors(sink, instance, status)

        if self.settings.get("collect_per_host_metrics", True):
            await self._collect_host_pools(sink, instance)
        if self.settings.get("analyze_current_operations", True):
            await self._collect_client_operations(sink, instance)

    def _collect_basic(self, sink: MetricSink, instance: Mapping[str, str], connections: Mapping[str, Any]) -> None:
        current = get_number(connections, "current")
        available = get_number(connections, "available")

        self._emit(sink, "checked_out", current, instance, DEFAULT_POOL)
        self._emit(sink, "checked_in", available, instance, DEFAULT_POOL)
        if current is not None and available is not None:
            self._emit(sink, "current_created", current + available, instance, DEFAULT_POOL)
        self._emit(sink, "total_created", get_number(connections, "totalCreated"), instance, DEFAULT_POOL)

    def _collect_pool(self, sink: MetricSink, instance: Mapping[str, str], pool_name: str, pool: Mapping[str, Any]) -> None:
        for field, key in POOL_FIELDS.items():
            self._emit(sink, key, get_number(pool, field), instance, pool_name)
        self._emit(sink, "requests", get_number(pool, "requestsSuccessful"), instance, pool_name, "success")
        self._emit(sink, "requests", get_number(pool, "requestsFailed"), instance, pool_name, "failed")

    def _collect_errors(self, sink: MetricSink, instance: Mapping[str, str], status: Mapping[str, Any]) -> None:
        host = instance.get("instance", "unknown")
        self._emit(
            sink, "errors", get_number(status, "metrics", "cursor", "timedOut"), instance, "timeout", host,
        )
        network = get_document(status, "metrics", "network") or {}
        for field, error_type in NETWORK_ERRORS.items():
            self._emit(sink, "errors", get_number(network, field), instance, error_type, host)

    async def _collect_host_pools(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        """Outgoing pools from ``connPoolStats`` (mongos and replica set members)."""
        try:
            pool_stats = await self._run_command("admin", {"connPoolStats": 1})
        except PyMongoError as e:
            self.logger.debug(f"connPoolStats failed: {e}")
            return

        for host, stats in (get_document(pool_stats, "hosts") or {}).items():
            for field, key in HOST_FIELDS.items():
                self._emit(sink, key, get_number(stats, field), instance, host)

    async def _collect_client_operations(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        try:
            current_op = await self._run_command("admin", {"currentOp": 1, "$all": True})
        except PyMongoError as e:
            self.logger.warning(f"Failed to get current operations: {e}")
            return

        per_host: Counter = Counter()
        for op in get_list(current_op, "inprog") or []:
            client = get_string(op, "client")
            if client:
                per_host[client_host(client)] += 1

        for host, count in per_host.items():
            self._emit(sink, "client_operations", float(count), instance, host)
