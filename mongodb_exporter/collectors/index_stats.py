"""Index size and usage collector."""

import time
from typing import Any, Dict, Mapping, Optional

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_list, get_number, get_string
from .base import BaseCollector, safe_collect


# Reported for indexes with no recorded accesses; the server does not expose
# a true last-access time, so "unused" means "no accesses counted yet".
UNUSED_INDEX_DURATION_HOURS = 8760.0

INDEX_OPERATIONS = {
    "builds": "build",
    "drops": "drop",
    "reindexes": "reindex",
}


class IndexStatsCollector(BaseCollector):
    """
    Per-index size and usage for every non-system collection.

    Access counts come from ``collStats.indexAccesses`` when present and
    from the ``$indexStats`` aggregation stage otherwise (when
    ``collect_usage_stats`` is on). An index whose count is zero in the
    current snapshot is reported as unused with a one-year sentinel
    duration; this conflates "unused since the counters reset" with
    "never used".
    """

    name = "index_stats"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        labels = ("database", "collection", "index")
        return {
            "size": self._gauge(
                "mongodb_index_size_bytes",
                "Size of each index in bytes",
                *labels,
            ),
            "accesses": self._counter(
                "mongodb_index_accesses_total",
                "Number of operations that used each index",
                *labels,
            ),
            "miss_ratio": self._gauge(
                "mongodb_index_miss_ratio",
                "Index miss ratio reported by the server",
                *labels,
            ),
            "usage_status": self._gauge(
                "mongodb_index_usage_status",
                "Whether the index has recorded accesses (1) or not (0)",
                *labels,
            ),
            "unused_duration": self._gauge(
                "mongodb_index_unused_duration_hours",
                "Approximate hours an index has been unused (sentinel for never accessed)",
                *labels,
            ),
            "last_access": self._gauge(
                "mongodb_index_last_access_time",
                "Unix time at which the index was last seen with accesses",
                *labels,
            ),
            "access_frequency": self._gauge(
                "mongodb_index_access_frequency",
                "Access count of the index in the current snapshot",
                *labels,
            ),
            "operations": self._counter(
                "mongodb_index_ops_total",
                "Index maintenance operations by type",
                *labels, "type",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        instance = self.get_instance_info()

        for database in await self._list_databases():
            try:
                collections = await self._list_collections(database)
            except PyMongoError as e:
                self.logger.error(
                    f"Failed to list collections: {e}", extra={"database": database}
                )
                continue

            for collection in collections:
                await self._collect_collection(sink, instance, database, collection)

    async def _collect_collection(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        database: str,
        collection: str,
    ) -> None:
        try:
            stats = await self._run_command(database, {"collStats": collection})
        except PyMongoError as e:
            self.logger.debug(
                f"Failed to get collection stats: {e}",
                extra={"database": database, "collection": collection},
            )
            return

        accesses = self._accesses_from_stats(stats)
        if not accesses and self.settings.get("collect_usage_stats", True):
            accesses = await self._accesses_from_aggregation(database, collection)

        index_sizes = get_document(stats, "indexSizes") or {}
        limit = self.settings.get("max_indexes_per_collection") or 0
        index_names = sorted(index_sizes)
        if limit:
            index_names = index_names[:limit]

        now = time.time()
        for index in index_names:
            labels = (database, collection, index)
            self._emit(sink, "size", get_number(index_sizes, index), instance, *labels)
            self._emit_usage(sink, instance, labels, accesses.get(index), now)
            self._emit(
                sink, "miss_ratio",
                get_number(stats, "indexAccesses", index, "missRatio"), instance, *labels,
            )

        for entry in get_list(stats, "indexStats") or []:
            index = get_string(entry, "name")
            if index is None:
                self.logger.warning(
                    "Invalid index name",
                    extra={"database": database, "collection": collection},
                )
                continue
            for field, op_type in INDEX_OPERATIONS.items():
                self._emit(
                    sink, "operations", get_number(entry, field),
                    instance, database, collection, index, op_type,
                )

    def _emit_usage(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        labels: tuple,
        ops: Optional[float],
        now: float,
    ) -> None:
        if ops is None:
            return

        self._emit(sink, "accesses", ops, instance, *labels)
        if ops > 0:
            self._emit(sink, "usage_status", 1.0, instance, *labels)
            self._emit(sink, "last_access", now, instance, *labels)
            self._emit(sink, "access_frequency", ops, instance, *labels)
        else:
            self._emit(sink, "usage_status", 0.0, instance, *labels)
            self._emit(sink, "unused_duration", UNUSED_INDEX_DURATION_HOURS, instance, *labels)
            self._emit(sink, "last_access", 0.0, instance, *labels)
            self._emit(sink, "access_frequency", 0.0, instance, *labels)

    @staticmethod
    def _accesses_from_stats(stats: Mapping[str, Any]) -> Dict[str, float]:
        accesses = {}
        for index, info in (get_document(stats, "indexAccesses") or {}).items():
            ops = get_number(info, "ops")
            if ops is not None:
                accesses[index] = ops
        return accesses

    async def _accesses_from_aggregation(self, database: str, collection: str) -> Dict[str, float]:
        try:
            entries = await self._aggregate(database, collection, [{"$indexStats": {}}])
        except PyMongoError as e:
            self.logger.debug(
                f"Failed to read $indexStats: {e}",
                extra={"database": database, "collection": collection},
            )
            return {}

        accesses = {}
        for entry in entries:
            index = get_string(entry, "name")
            ops = get_number(entry, "accesses", "ops")
            if index is not None and ops is not None:
                accesses[index] = ops
        return accesses

