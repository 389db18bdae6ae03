"""Per-database lock contention collector."""

from typing import Dict, Mapping

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


LOCK_TYPES = (
    "ParallelBatchWriterMode",
    "ReplicationStateTransition",
    "Global",
    "Database",
    "Collection",
    "Mutex",
    "Metadata",
)

# Lock mode codes reported by the server
LOCK_MODES = {
    "R": "read",
    "W": "write",
    "r": "intent_read",
    "w": "intent_write",
}


class LocksCollector(BaseCollector):
    """
    Walk ``serverStatus.locks`` as a lock type x mode cross product.

    Servers before 4.0 nest lock documents per database; newer ones report
    the lock types directly. Both shapes are accepted: a top-level key that
    is itself a known lock type is reported under the database label "all".
    """

    name = "locks"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "acquire_count": self._counter(
                "mongodb_locks_acquired_total",
                "Number of times each lock was acquired in the given mode",
                "database", "lock_type",
            ),
            "time_acquiring": self._counter(
                "mongodb_locks_time_acquiring_microseconds_total",
                "Time spent waiting to acquire each lock in microseconds",
                "database", "lock_type",
            ),
            "deadlocks": self._counter(
                "mongodb_locks_deadlock_total",
                "Number of deadlocks encountered per lock and mode",
                "database", "lock_type",
            ),
            "waiting": self._gauge(
                "mongodb_locks_waiting_total",
                "Number of times a lock acquisition had to wait",
                "database", "lock_type",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        locks = get_document(status, "locks")
        if locks is None:
            return

        instance = self.get_instance_info(status)

        if any(key in LOCK_TYPES for key in locks):
            self._collect_database(sink, instance, "all", locks)
            return

        for database, db_locks in locks.items():
            if isinstance(db_locks, Mapping):
                self._collect_database(sink, instance, database, db_locks)

    def _collect_database(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        database: str,
        db_locks: Mapping,
    ) -> None:
        for lock_type in LOCK_TYPES:
            lock_info = get_document(db_locks, lock_type)
            if lock_info is None:
                continue

            for code, mode in LOCK_MODES.items():
                label = f"{lock_type}_{mode}"
                self._emit(
                    sink, "acquire_count",
                    get_number(lock_info, "acquireCount", code), instance, database, label,
                )
                self._emit(
                    sink, "time_acquiring",
                    get_number(lock_info, "timeAcquiringMicros", code), instance, database, label,
                )
                self._emit(
                    sink, "deadlocks",
                    get_number(lock_info, "deadlockCount", code), instance, database, label,
                )
                self._emit(
                    sink, "waiting",
                    get_number(lock_info, "acquireWaitCount", code), instance, database, label,
                )
