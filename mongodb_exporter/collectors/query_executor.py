"""Query executor and plan cache collector."""

from typing import Dict

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


# serverStatus field -> descriptor key; plan cache fields vary by version
PLAN_CACHE_FIELDS = {
    "hits": "plan_cache_hits",
    "misses": "plan_cache_misses",
    "evictions": "plan_cache_evictions",
    "entries": "plan_cache_entries",
    "totalSizeEstimateBytes": "plan_cache_size",
}


class QueryExecutorCollector(BaseCollector):
    """Scan counters from ``serverStatus.metrics.queryExecutor``."""

    name = "query_executor"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "scanned": self._counter(
                "mongodb_metrics_query_executor_scanned_total",
                "Index keys scanned during query evaluation",
            ),
            "scanned_objects": self._counter(
                "mongodb_metrics_query_executor_scanned_objects_total",
                "Documents scanned during query evaluation",
            ),
            "collection_scans": self._counter(
                "mongodb_metrics_query_executor_collection_scans_total",
                "Queries that performed a collection scan",
                "type",
            ),
            "plan_cache_hits": self._counter(
                "mongodb_metrics_query_executor_plan_cache_hits_total",
                "Plan cache hits",
            ),
            "plan_cache_misses": self._counter(
                "mongodb_metrics_query_executor_plan_cache_misses_total",
                "Plan cache misses",
            ),
            "plan_cache_evictions": self._counter(
                "mongodb_metrics_query_executor_plan_cache_evictions_total",
                "Plan cache evictions",
            ),
            "plan_cache_entries": self._gauge(
                "mongodb_metrics_query_executor_plan_cache_entries",
                "Entries currently in the plan cache",
            ),
            "plan_cache_size": self._gauge(
                "mongodb_metrics_query_executor_plan_cache_size_bytes",
                "Estimated plan cache size in bytes",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        query_executor = get_document(status, "metrics", "queryExecutor")
        if query_executor is None:
            self.logger.debug("No queryExecutor metrics in serverStatus")
            return

        instance = self.get_instance_info(status)

        self._emit(sink, "scanned", get_number(query_executor, "scanned"), instance)
        self._emit(sink, "scanned_objects", get_number(query_executor, "scannedObjects"), instance)

        collection_scans = get_document(query_executor, "collectionScans") or {}
        self._emit(sink, "collection_scans", get_number(collection_scans, "total"), instance, "total")
        self._emit(sink, "collection_scans", get_number(collection_scans, "nonTailable"), instance, "non_tailable")

        plan_cache = get_document(query_executor, "planCache") or get_document(status, "metrics", "query", "planCache")
        if plan_cache is None:
            return
        for field, key in PLAN_CACHE_FIELDS.items():
            self._emit(sink, key, get_number(plan_cache, field), instance)
