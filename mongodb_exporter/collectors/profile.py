"""Slow operation collector reading the database profiler."""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_int, get_number, get_string
from .base import BaseCollector, safe_collect


INITIAL_LOOKBACK = timedelta(hours=1)

LOCK_MODES = ("r", "w")

STORAGE_STATS = (
    "data_read",
    "data_written",
    "index_read",
    "index_written",
    "cache_hits",
    "cache_misses",
    "pages_read",
    "pages_written",
)

IGNORED_COMMAND_KEYS = frozenset({"filter", "sort", "projection"})


def extract_operation_type(entry: Mapping[str, Any]) -> str:
    """Return ``op``, else the first command key that is not a query modifier."""
    op = get_string(entry, "op")
    if op is not None:
        return op
    for key in get_document(entry, "command") or {}:
        if key not in IGNORED_COMMAND_KEYS:
            return key
    return "unknown"


def extract_collection(entry: Mapping[str, Any]) -> str:
    """Return the part of ``ns`` after the last dot."""
    namespace = get_string(entry, "ns")
    if namespace is None:
        return "unknown"
    return namespace.rsplit(".", 1)[-1]


@dataclass
class OperationStats:
    """Aggregated profiler figures for one (database, operation, collection)."""
    count: float = 0
    total_duration_ms: float = 0
    max_duration_ms: float = 0
    docs_examined: float = 0
    docs_returned: float = 0
    keys_examined: float = 0
    response_length: float = 0
    write_conflicts: float = 0
    cpu_time_micros: float = 0
    locks_acquired: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    lock_wait_time: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    lock_wait_count: Dict[str, float] = field(default_factory=lambda: defaultdict(float))
    storage: Dict[str, float] = field(default_factory=lambda: defaultdict(float))

    def add_entry(self, entry: Mapping[str, Any]) -> None:
        """Fold one ``system.profile`` document into the totals."""
        self.count += 1

        millis = get_number(entry, "millis")
        if millis is not None:
            self.total_duration_ms += millis
            self.max_duration_ms = max(self.max_duration_ms, millis)

        # Newer servers report these at the top level, older ones in execStats
        self.docs_examined += self._first_number(entry, ("docsExamined",), ("execStats", "totalDocsExamined"))
        self.docs_returned += self._first_number(entry, ("nreturned",), ("execStats", "totalDocsReturned"))
        self.keys_examined += self._first_number(entry, ("keysExamined",), ("execStats", "totalKeysExamined"))
        self.response_length += get_number(entry, "responseLength") or 0
        self.write_conflicts += get_number(entry, "writeConflicts") or 0
        self.cpu_time_micros += (get_number(entry, "cpuNanos") or 0) / 1000.0

        for lock_type, info in (get_document(entry, "locks") or {}).items():
            for mode in LOCK_MODES:
                self.locks_acquired[lock_type] += get_number(info, "acquireCount", mode) or 0
                self.lock_wait_time[lock_type] += get_number(info, "timeAcquiringMicros", mode) or 0
                self.lock_wait_count[lock_type] += get_number(info, "acquireWaitCount", mode) or 0

        storage = get_document(entry, "storage") or {}
        for stat in STORAGE_STATS:
            value = get_number(storage, stat)
            if value is not None:
                self.storage[stat] += value

    def merge(self, other: "OperationStats") -> None:
        """Add another aggregate's counters into this one."""
        self.count += other.count
        self.total_duration_ms += other.total_duration_ms
        self.max_duration_ms = max(self.max_duration_ms, other.max_duration_ms)
        self.docs_examined += other.docs_examined
        self.docs_returned += other.docs_returned
        self.keys_examined += other.keys_examined
        self.response_length += other.response_length
        self.write_conflicts += other.write_conflicts
        self.cpu_time_micros += other.cpu_time_micros
        for target, source in (
            (self.locks_acquired, other.locks_acquired),
            (self.lock_wait_time, other.lock_wait_time),
            (self.lock_wait_count, other.lock_wait_count),
            (self.storage, other.storage),
        ):
            for key, value in source.items():
                target[key] += value

    @staticmethod
    def _first_number(entry: Mapping[str, Any], *paths: Tuple[str, ...]) -> float:
        for path in paths:
            value = get_number(entry, *path)
            if value is not None:
                return value
        return 0.0


OperationKey = Tuple[str, str, str]


@dataclass(frozen=True)
class ReadPosition:
    """Where to resume reading a profiler: a timestamp and how many entries at it were already read."""
    ts: datetime
    seen: int = 0


class ProfileCollector(BaseCollector):
    """
    Aggregate ``system.profile`` entries logged since the previous cycle.

    ``_last_check`` is a watermark advanced at the end of every cycle so
    each profiler entry is counted once. A database whose read failed keeps
    its own position in ``_pending`` so the next cycle resumes there.
    Counters are kept cumulatively on the instance. All of this relies on
    ``collect`` never running concurrently with itself on the same instance;
    the registry calls each collector at most once per cycle and cycles are
    serialized.
    """

    name = "profile"
    timeout = 15.0

    def __init__(self, client, config, logger):
        super().__init__(client, config, logger)
        self._last_check = datetime.now(timezone.utc) - INITIAL_LOOKBACK
        self._totals: Dict[OperationKey, OperationStats] = {}
        self._pending: Dict[str, ReadPosition] = {}
        self._plan_summaries: Dict[Tuple[str, str], float] = defaultdict(float)

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        labels = ("database", "operation", "collection")
        return {
            "slow_operations": self._counter(
                "mongodb_profile_slow_operations_total",
                "Profiled operations by type",
                *labels,
            ),
            "duration": self._gauge(
                "mongodb_profile_operations_duration_seconds",
                "Average duration of operations profiled in the last cycle in seconds",
                *labels,
            ),
            "max_duration": self._gauge(
                "mongodb_profile_operations_max_duration_seconds",
                "Longest operation profiled in the last cycle in seconds",
                *labels,
            ),
            "examined_docs": self._counter(
                "mongodb_profile_operations_examined_docs_total",
                "Documents examined by profiled operations",
                *labels,
            ),
            "docs_returned": self._counter(
                "mongodb_profile_operations_docs_returned_total",
                "Documents returned by profiled operations",
                *labels,
            ),
            "keys_examined": self._counter(
                "mongodb_profile_operations_keys_examined_total",
                "Index keys examined by profiled operations",
                *labels,
            ),
            "response_length": self._counter(
                "mongodb_profile_operations_response_length_bytes_total",
                "Response bytes of profiled operations",
                *labels,
            ),
            "write_conflicts": self._counter(
                "mongodb_profile_write_conflicts_total",
                "Write conflicts in profiled operations",
                *labels,
            ),
            "cpu_time": self._counter(
                "mongodb_profile_cpu_time_microseconds_total",
                "CPU time of profiled operations in microseconds",
                *labels,
            ),
            "locks_acquired": self._counter(
                "mongodb_profile_operations_locks_acquired_total",
                "Locks acquired by profiled operations",
                *labels, "lock_type",
            ),
            "lock_wait_time": self._counter(
                "mongodb_profile_operations_lock_wait_time_microseconds_total",
                "Time profiled operations waited for locks in microseconds",
                *labels, "lock_type",
            ),
            "storage": self._counter(
                "mongodb_profile_storage_stats_total",
                "Storage engine statistics of profiled operations",
                *labels, "storage_stat",
            ),
            "plan_summary": self._counter(
                "mongodb_profile_plan_summary_total",
                "Profiled operations by plan summary",
                "database", "plan_summary",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        databases = await self._list_databases()
        instance = self.get_instance_info()
        until = datetime.now(timezone.utc)

        window: Dict[OperationKey, OperationStats] = {}
        for database in databases:
            entries = await self._read_profile(
                database, self._pending.get(database, ReadPosition(self._last_check)), until,
            )
            for entry in entries:
                key = (database, extract_operation_type(entry), extract_collection(entry))
                window.setdefault(key, OperationStats()).add_entry(entry)
                plan_summary = get_string(entry, "planSummary")
                if plan_summary is not None:
                    self._plan_summaries[(database, plan_summary)] += 1

        for key, stats in window.items():
            self._totals.setdefault(key, OperationStats()).merge(stats)
        self._last_check = until

        self._emit_window(sink, instance, window)
        self._emit_totals(sink, instance)

    async def _read_profile(self, database: str, since: ReadPosition, until: datetime) -> List[Dict[str, Any]]:
        """
        Return every profiler entry logged between ``since`` and ``until``, oldest first.

        ``max_entries_per_cycle`` bounds a single query; reads continue from the
        last timestamp returned until a short page comes back. Entries at that
        timestamp which were already read are skipped by position. When a
        query fails midway the position is kept so the next cycle resumes there.
        """
        try:
            status = await self._run_command(database, {"profile": -1})
        except PyMongoError as e:
            self.logger.debug(f"Failed to get profile status: {e}", extra={"database": database})
            return []

        if get_int(status, "was") == 0:
            self._pending.pop(database, None)
            return []

        threshold_ms = self._slow_threshold_ms()
        limit = int(self.settings.get("max_entries_per_cycle") or 0)
        position = since
        entries: List[Dict[str, Any]] = []
        while True:
            query: Dict[str, Any] = {"ts": {"$gte": position.ts, "$lt": until}}
            if threshold_ms:
                query["millis"] = {"$gte": threshold_ms}
            try:
                page = await self._find(
                    database, "system.profile", filter=query, sort=[("ts", 1)],
                    limit=limit + position.seen if limit else 0,
                )
            except PyMongoError as e:
                self.logger.debug(f"Failed to query profile collection: {e}", extra={"database": database})
                self._pending[database] = position
                return entries

            skipped = 0
            while skipped < min(position.seen, len(page)) and page[skipped].get("ts") == position.ts:
                skipped += 1
            entries.extend(page[skipped:])

            if not limit or len(page) < limit + position.seen:
                break
            last_ts = page[-1].get("ts")
            if not isinstance(last_ts, datetime):
                self.logger.warning(
                    "Profile entries without a timestamp, stopping after one page",
                    extra={"database": database},
                )
                break
            position = ReadPosition(last_ts, sum(1 for entry in page if entry.get("ts") == last_ts))

        self._pending.pop(database, None)
        return entries

    def _slow_threshold_ms(self) -> Optional[float]:
        threshold = get_number(self.settings, "slow_operation_threshold")
        return threshold * 1000.0 if threshold else None

    def _emit_window(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        window: Mapping[OperationKey, OperationStats],
    ) -> None:
        for labels, stats in window.items():
            if stats.count <= 0:
                continue
            self._emit(sink, "duration", stats.total_duration_ms / stats.count / 1000.0, instance, *labels)
            self._emit(sink, "max_duration", stats.max_duration_ms / 1000.0, instance, *labels)

    def _emit_totals(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        for labels, stats in self._totals.items():
            self._emit(sink, "slow_operations", stats.count, instance, *labels)

            for key, value in (
                ("examined_docs", stats.docs_examined),
                ("docs_returned", stats.docs_returned),
                ("keys_examined", stats.keys_examined),
                ("response_length", stats.response_length),
                ("write_conflicts", stats.write_conflicts),
                ("cpu_time", stats.cpu_time_micros),
            ):
                if value > 0:
                    self._emit(sink, key, value, instance, *labels)

            for lock_type, acquired in stats.locks_acquired.items():
                if acquired > 0:
                    self._emit(sink, "locks_acquired", acquired, instance, *labels, lock_type)
                if stats.lock_wait_count.get(lock_type, 0) > 0:
                    self._emit(
                        sink, "lock_wait_time", stats.lock_wait_time[lock_type],
                        instance, *labels, lock_type,
                    )

            for stat, value in stats.storage.items():
                self._emit(sink, "storage", value, instance, *labels, stat)

        for (database, plan_summary), count in self._plan_summaries.items():
            self._emit(sink, "plan_summary", count, instance, database, plan_summary)
