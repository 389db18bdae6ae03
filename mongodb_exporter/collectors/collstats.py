"""Detailed per-collection statistics for an allow-list of collections."""

from fnmatch import fnmatchcase
from typing import Any, Dict, Iterable, List, Mapping

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_bool, get_document, get_number
from .base import BaseCollector, safe_collect


ALIASES = ("collstats", "collection_stats")

MONITOR_ALL = "*"

SIZE_FIELDS = {
    "size": "size",
    "storageSize": "storage_size",
    "avgObjSize": "avg_obj_size",
    "count": "count",
    "nindexes": "indexes_count",
    "totalIndexSize": "total_index_size",
}

LATENCY_OPERATIONS = ("reads", "writes", "commands")

READ_CONCERN_LEVELS = ("local", "available", "majority", "linearizable", "snapshot")


def normalize_monitored_collections(value: Any) -> List[str]:
    """
    Decode the ``monitored_collections`` setting.

    Accepts a list of strings, a free-form list (non-string entries are
    ignored) or a comma-separated string.

    Args:
        value: Raw setting value

    Returns:
        List[str]: Collection names or glob patterns
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, Iterable):
        return [item for item in value if isinstance(item, str) and item]
    return []


class CollStatsCollector(BaseCollector):
    """
    Full ``collStats`` breakdown for selected collections.

    ``monitored_collections`` holds "db.collection" names or glob patterns
    such as "app.*"; an empty list or "*" monitors everything.
    """

    name = "collstats"
    timeout = 15.0

    def __init__(self, client, config, logger):
        super().__init__(client, config, logger)
        self.monitored_collections: List[str] = normalize_monitored_collections(
            self.settings.get("monitored_collections")
        )

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        labels = ("database", "collection")
        return {
            "size": self._gauge(
                "mongodb_collstats_size_bytes",
                "Uncompressed collection data size in bytes",
                *labels,
            ),
            "storage_size": self._gauge(
                "mongodb_collstats_storage_size_bytes",
                "Storage allocated to the collection in bytes",
                *labels,
            ),
            "avg_obj_size": self._gauge(
                "mongodb_collstats_avg_obj_size_bytes",
                "Average document size in bytes",
                *labels,
            ),
            "count": self._gauge(
                "mongodb_collstats_count",
                "Number of documents in the collection",
                *labels,
            ),
            "indexes_count": self._gauge(
                "mongodb_collstats_indexes_count",
                "Number of indexes on the collection",
                *labels,
            ),
            "total_index_size": self._gauge(
                "mongodb_collstats_total_index_size_bytes",
                "Total size of all indexes in bytes",
                *labels,
            ),
            "capped": self._gauge(
                "mongodb_collstats_capped",
                "Whether the collection is capped (1) or not (0)",
                *labels,
            ),
            "max_documents": self._gauge(
                "mongodb_collstats_max_documents",
                "Maximum documents of a capped collection",
                *labels,
            ),
            "max_size": self._gauge(
                "mongodb_collstats_max_size_bytes",
                "Maximum size of a capped collection in bytes",
                *labels,
            ),
            "index_size": self._gauge(
                "mongodb_collstats_index_size_bytes",
                "Size of each index in bytes",
                *labels, "index",
            ),
            "wt_cache": self._gauge(
                "mongodb_collstats_wiredtiger_cache_bytes",
                "Collection bytes currently in the WiredTiger cache",
                *labels,
            ),
            "wt_checkpoint": self._gauge(
                "mongodb_collstats_wiredtiger_block_checkpoint_bytes",
                "WiredTiger checkpoint size of the collection in bytes",
                *labels,
            ),
            "wt_compression": self._gauge(
                "mongodb_collstats_wiredtiger_compression_ratio",
                "WiredTiger compression ratio of the collection",
                *labels,
            ),
            "ops": self._counter(
                "mongodb_collstats_ops_total",
                "Operations against the collection by type",
                *labels, "operation",
            ),
            "latency": self._gauge(
                "mongodb_collstats_latency_microseconds",
                "Cumulative operation latency in microseconds by type",
                *labels, "operation",
            ),
            "read_concern": self._counter(
                "mongodb_collstats_read_concern_total",
                "Reads by read concern level",
                *labels, "read_concern",
            ),
        }

    def is_enabled(self) -> bool:
        return any(self.is_metric_enabled(alias) for alias in ALIASES)

    def set_monitored_collections(self, collections: Iterable[str]) -> None:
        """Replace the allow-list (takes effect on the next cycle)."""
        self.monitored_collections = normalize_monitored_collections(list(collections))

    def should_monitor_collection(self, database: str, collection: str) -> bool:
        """
        Check a collection against the allow-list.

        Args:
            database: Database name
            collection: Collection name

        Returns:
            bool: True if the collection should be reported
        """
        if not self.monitored_collections:
            return True
        full_name = f"{database}.{collection}"
        return any(
            pattern == MONITOR_ALL or fnmatchcase(full_name, pattern)
            for pattern in self.monitored_collections
        )

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        instance = self.get_instance_info()

        for database in await self._list_databases():
            try:
                collections = await self._list_collections(database)
            except PyMongoError as e:
                self.logger.error(f"Failed to list collections: {e}", extra={"database": database})
                continue

            for collection in collections:
                if not self.should_monitor_collection(database, collection):
                    continue
                try:
                    stats = await self._run_command(database, {"collStats": collection})
                except PyMongoError as e:
                    self.logger.error(
                        f"Failed to get collection stats: {e}",
                        extra={"database": database, "collection": collection},
                    )
                    continue
                self._collect_stats(sink, instance, database, collection, stats)

    def _collect_stats(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        database: str,
        collection: str,
        stats: Mapping[str, Any],
    ) -> None:
        labels = (database, collection)

        for field, key in SIZE_FIELDS.items():
            self._emit(sink, key, get_number(stats, field), instance, *labels)

        capped = get_bool(stats, "capped")
        if capped is not None:
            self._emit(sink, "capped", 1.0 if capped else 0.0, instance, *labels)
            if capped:
                self._emit(sink, "max_documents", get_number(stats, "max"), instance, *labels)
                self._emit(sink, "max_size", get_number(stats, "maxSize"), instance, *labels)

        for index, size in (get_document(stats, "indexSizes") or {}).items():
            self._emit(sink, "index_size", get_number(size), instance, *labels, index)

        wired_tiger = get_document(stats, "wiredTiger")
        if wired_tiger is not None:
            self._emit(
                sink, "wt_cache",
                get_number(wired_tiger, "cache", "bytes currently in the cache"), instance, *labels,
            )
            self._emit(
                sink, "wt_checkpoint",
                get_number(wired_tiger, "block-manager", "checkpoint size"), instance, *labels,
            )
            self._emit(
                sink, "wt_compression",
                get_number(wired_tiger, "compression", "compression ratio"), instance, *labels,
            )

        latency_stats = get_document(stats, "latencyStats") or {}
        for operation in LATENCY_OPERATIONS:
            ops = get_number(latency_stats, operation, "ops")
            if ops is not None and ops > 0:
                self._emit(sink, "ops", ops, instance, *labels, operation)
            self._emit(
                sink, "latency", get_number(latency_stats, operation, "latency"),
                instance, *labels, operation,
            )

        read_concern = get_document(stats, "readConcern") or {}
        for level in READ_CONCERN_LEVELS:
            self._emit(sink, "read_concern", get_number(read_concern, level), instance, *labels, level)
