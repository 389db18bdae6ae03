"""Server status collector: uptime, connections, memory, network and opcounters."""

from typing import Dict

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


BYTES_PER_MEGABYTE = 1024 * 1024

CONNECTION_STATES = {
    "current": "current",
    "available": "available",
    "active": "active",
    "totalCreated": "total_created",
}

CONNECTION_METRICS = {
    "awaitingTopology": "awaiting_topology",
    "pending": "pending",
    "rejected": "rejected",
    "timedOut": "timed_out",
}

MEMORY_FIELDS = {
    "resident": "resident",
    "virtual": "virtual",
    "mapped": "mapped",
    "mappedWithJournal": "mapped_with_journal",
}

EXTRA_INFO_FIELDS = {
    "heap_usage_bytes": "heap_usage",
    "page_faults": "page_faults",
    "freeMonitoringStatus": "free_monitoring_status",
}

NETWORK_FIELDS = {
    "bytesIn": "in",
    "bytesOut": "out",
}

DOCUMENT_FIELDS = ("deleted", "inserted", "returned", "updated")


class ServerStatusCollector(BaseCollector):
    """Translate the ``serverStatus`` reply into instance-level metrics."""

    name = "server_status"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "uptime": self._gauge(
                "mongodb_instance_uptime_seconds",
                "The uptime of the MongoDB instance in seconds",
            ),
            "connections": self._gauge(
                "mongodb_connections",
                "The number of connections to the MongoDB instance",
                "state",
            ),
            "connections_metrics": self._counter(
                "mongodb_connections_metrics_total",
                "Connection state counters reported by the server",
                "type",
            ),
            "memory": self._gauge(
                "mongodb_memory_bytes",
                "Memory usage of the MongoDB instance in bytes",
                "type",
            ),
            "page_faults": self._counter(
                "mongodb_page_faults_total",
                "Total number of page faults",
            ),
            "extra_info": self._gauge(
                "mongodb_extra_info",
                "Additional platform information from serverStatus.extra_info",
                "type",
            ),
            "network_bytes": self._counter(
                "mongodb_network_bytes_total",
                "Network traffic in bytes",
                "direction",
            ),
            "op_counters": self._counter(
                "mongodb_op_counters_total",
                "Database operations by type since the server started",
                "type",
            ),
            "document_metrics": self._counter(
                "mongodb_metrics_document_total",
                "Document operations by type",
                "type",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        instance = self.get_instance_info(status)

        self._emit(sink, "uptime", get_number(status, "uptime"), instance)

        connections = get_document(status, "connections") or {}
        for field, state in CONNECTION_STATES.items():
            self._emit(sink, "connections", get_number(connections, field), instance, state)

        for field, label in CONNECTION_METRICS.items():
            self._emit(
                sink, "connections_metrics",
                get_number(connections, "metrics", field), instance, label,
            )

        mem = get_document(status, "mem") or {}
        for field, label in MEMORY_FIELDS.items():
            megabytes = get_number(mem, field)
            if megabytes is not None:
                self._emit(sink, "memory", megabytes * BYTES_PER_MEGABYTE, instance, label)

        extra_info = get_document(status, "extra_info") or {}
        self._emit(sink, "page_faults", get_number(extra_info, "page_faults"), instance)
        for field, label in EXTRA_INFO_FIELDS.items():
            self._emit(sink, "extra_info", get_number(extra_info, field), instance, label)

        network = get_document(status, "network") or {}
        for field, direction in NETWORK_FIELDS.items():
            self._emit(sink, "network_bytes", get_number(network, field), instance, direction)

        for op_type, count in (get_document(status, "opcounters") or {}).items():
            self._emit(sink, "op_counters", get_number(count), instance, op_type)

        documents = get_document(status, "metrics", "document") or {}
        for field in DOCUMENT_FIELDS:
            self._emit(sink, "document_metrics", get_number(documents, field), instance, field)
