"""WiredTiger storage engine collector."""

from typing import Dict

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


CACHE_PAGES = {
    "pages currently held in the cache": "total",
    "tracked dirty pages in the cache": "dirty",
    "pages read into cache": "read",
    "pages written from cache": "written",
}

CACHE_EVICTIONS = {
    "unmodified pages evicted": "clean",
    "modified pages evicted": "dirty",
}

BLOCK_MANAGER = {
    "blocks read": "read",
    "blocks written": "written",
    "bytes read": "bytes_read",
    "bytes written": "bytes_written",
}


class WiredTigerCollector(BaseCollector):
    """Cache, block manager and ticket metrics from ``serverStatus.wiredTiger``."""

    name = "wiredtiger"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "cache_max": self._gauge(
                "mongodb_wiredtiger_cache_max_bytes",
                "Maximum configured WiredTiger cache size in bytes",
            ),
            "cache_used": self._gauge(
                "mongodb_wiredtiger_cache_used_bytes",
                "Bytes currently held in the WiredTiger cache",
            ),
            "cache_dirty": self._gauge(
                "mongodb_wiredtiger_cache_dirty_bytes",
                "Tracked dirty bytes in the WiredTiger cache",
            ),
            "cache_pages": self._gauge(
                "mongodb_wiredtiger_cache_pages",
                "WiredTiger cache pages by type",
                "type",
            ),
            "cache_evicted": self._counter(
                "mongodb_wiredtiger_cache_evicted_total",
                "Pages evicted from the WiredTiger cache by mode",
                "mode",
            ),
            "block_operations": self._counter(
                "mongodb_wiredtiger_block_operations_total",
                "WiredTiger block manager operations",
                "type",
            ),
            "tickets": self._gauge(
                "mongodb_wiredtiger_concurrent_transactions",
                "WiredTiger concurrent transaction tickets by type",
                "type",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        wired_tiger = get_document(status, "wiredTiger")
        if wired_tiger is None:
            self.logger.debug("WiredTiger section not present, skipping")
            return

        instance = self.get_instance_info(status)

        cache = get_document(wired_tiger, "cache") or {}
        self._emit(sink, "cache_max", get_number(cache, "maximum bytes configured"), instance)
        self._emit(sink, "cache_used", get_number(cache, "bytes currently in the cache"), instance)
        self._emit(sink, "cache_dirty", get_number(cache, "tracked dirty bytes in the cache"), instance)
        for field, label in CACHE_PAGES.items():
            self._emit(sink, "cache_pages", get_number(cache, field), instance, label)
        for field, mode in CACHE_EVICTIONS.items():
            self._emit(sink, "cache_evicted", get_number(cache, field), instance, mode)

        block_manager = get_document(wired_tiger, "block-manager") or {}
        for field, label in BLOCK_MANAGER.items():
            self._emit(sink, "block_operations", get_number(block_manager, field), instance, label)

        transactions = get_document(wired_tiger, "concurrentTransactions") or {}
        for tx_type, tickets in transactions.items():
            self._emit(sink, "tickets", get_number(tickets, "available"), instance, f"{tx_type}_available")
            self._emit(sink, "tickets", get_number(tickets, "out"), instance, f"{tx_type}_used")
