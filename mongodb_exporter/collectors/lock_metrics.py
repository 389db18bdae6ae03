"""Coarse global, database and collection lock metrics."""

from typing import Dict

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


INTENT_MODES = {
    "r": "intent_read",
    "w": "intent_write",
}


class LockMetricsCollector(BaseCollector):
    """
    Summarize lock acquisition without the per-database breakdown.

    Gated by its own name ("lock_metrics") only; disabling "locks" does not
    silence it.
    """

    name = "lock_metrics"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "acquire_count": self._counter(
                "mongodb_locks_acquire_count_total",
                "Global intent-shared lock acquisitions",
            ),
            "acquire_wait_count": self._counter(
                "mongodb_locks_acquire_wait_count_total",
                "Global intent-shared lock acquisitions that had to wait",
            ),
            "time_acquiring_global": self._counter(
                "mongodb_locks_time_acquiring_global_microseconds_total",
                "Time spent waiting for the global lock in microseconds",
            ),
            "deadlock_count": self._counter(
                "mongodb_locks_deadlock_count_total",
                "Global lock deadlocks",
            ),
            "time_acquiring_database": self._counter(
                "mongodb_locks_time_acquiring_database_microseconds_total",
                "Time spent waiting for database locks in microseconds",
                "mode",
            ),
            "time_acquiring_collection": self._counter(
                "mongodb_locks_time_acquiring_collection_microseconds_total",
                "Time spent waiting for collection locks in microseconds",
                "mode",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        locks = get_document(status, "locks")
        if locks is None:
            self.logger.debug("No locks section in serverStatus")
            return

        instance = self.get_instance_info(status)

        global_lock = get_document(locks, "Global") or {}
        self._emit(sink, "acquire_count", get_number(global_lock, "acquireCount", "r"), instance)
        self._emit(sink, "acquire_wait_count", get_number(global_lock, "acquireWaitCount", "r"), instance)
        self._emit(
            sink, "time_acquiring_global",
            get_number(global_lock, "timeAcquiringMicros", "r"), instance,
        )
        self._emit(sink, "deadlock_count", get_number(global_lock, "deadlockCount", "r"), instance)

        for lock_type, key in (("Database", "time_acquiring_database"), ("Collection", "time_acquiring_collection")):
            lock_info = get_document(locks, lock_type) or {}
            for code, mode in INTENT_MODES.items():
                self._emit(
                    sink, key, get_number(lock_info, "timeAcquiringMicros", code), instance, mode,
                )
