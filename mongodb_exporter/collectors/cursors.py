"""Cursor activity collector."""

from typing import Any, Dict, Mapping, Optional

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_list, get_number
from .base import BaseCollector, safe_collect


OPEN_CURSOR_TYPES = {
    "noTimeout": "no_timeout",
    "pinned": "pinned",
    "total": "total",
}


class CursorsCollector(BaseCollector):
    """
    Cursor counters from ``serverStatus`` plus live cursor usage.

    Memory usage and batch size are approximated by scanning in-progress
    operations that carry a ``cursor`` sub-document.
    """

    name = "cursors"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "timed_out": self._counter(
                "mongodb_cursors_timed_out_total",
                "Cursors that timed out since the server started",
            ),
            "created": self._counter(
                "mongodb_cursors_created_total",
                "Cursors opened since the server started",
            ),
            "open": self._gauge(
                "mongodb_cursors_open",
                "Currently open cursors by type",
                "cursor_type",
            ),
            "pinned": self._gauge(
                "mongodb_pinned_cursors",
                "Currently pinned cursors",
            ),
            "getmore": self._counter(
                "mongodb_cursor_getmore_operations_total",
                "getMore operations since the server started",
            ),
            "memory_usage": self._gauge(
                "mongodb_cursor_memory_usage_bytes",
                "Memory used by cursors of in-progress operations in bytes",
            ),
            "batch_size": self._gauge(
                "mongodb_cursor_batch_size_avg",
                "Average batch size of cursors of in-progress operations",
            ),
            "killed": self._counter(
                "mongodb_cursors_killed_total",
                "Cursors killed by cause",
                "operation",
            ),
            "timeout": self._gauge(
                "mongodb_cursor_timeout_seconds",
                "Configured idle cursor timeout in seconds",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        instance = self.get_instance_info(status)

        cursor_metrics = get_document(status, "metrics", "cursor") or {}
        self._emit(sink, "timed_out", get_number(cursor_metrics, "timedOut"), instance)
        self._emit(sink, "created", get_number(cursor_metrics, "totalOpened"), instance)

        open_cursors = get_document(cursor_metrics, "open") or {}
        for field, cursor_type in OPEN_CURSOR_TYPES.items():
            self._emit(sink, "open", get_number(open_cursors, field), instance, cursor_type)
        self._emit(sink, "pinned", get_number(open_cursors, "pinned"), instance)

        getmore = get_number(status, "opcounters", "getmore")
        if getmore is None:
            getmore = get_number(status, "metrics", "operation", "getmore")
        self._emit(sink, "getmore", getmore, instance)

        self._emit(
            sink, "killed", get_number(status, "opcounters", "killcursors"),
            instance, "killcursors_command",
        )
        self._emit(sink, "killed", get_number(cursor_metrics, "totalKilled"), instance, "timeout")

        await self._collect_active_cursors(sink, instance)
        await self._collect_timeout_setting(sink, instance)

    async def _collect_active_cursors(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        try:
            current_op = await self._run_command("admin", {"currentOp": 1, "$all": True})
        except PyMongoError as e:
            self.logger.warning(f"Failed to get current operations: {e}")
            return

        memory_usage = 0.0
        batch_total = 0.0
        batch_count = 0
        for op in get_list(current_op, "inprog") or []:
            cursor = get_document(op, "cursor")
            if cursor is None:
                continue
            memory_usage += get_number(cursor, "memUsage") or 0.0
            batch_size = get_number(cursor, "batchSize")
            if batch_size is not None:
                batch_total += batch_size
                batch_count += 1

        if memory_usage > 0:
            self._emit(sink, "memory_usage", memory_usage, instance)
        if batch_count:
            self._emit(sink, "batch_size", batch_total / batch_count, instance)

    async def _collect_timeout_setting(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        """Read the cursor timeout, trying the modern parameter first."""
        timeout = await self._get_parameter("cursorTimeoutMillis")
        if timeout is not None:
            self._emit(sink, "timeout", timeout / 1000.0, instance)
            return

        # Older servers only expose the monitor frequency, already in seconds
        frequency = await self._get_parameter("clientCursorMonitorFrequencySecs")
        self._emit(sink, "timeout", frequency, instance)

    async def _get_parameter(self, parameter: str) -> Optional[float]:
        try:
            reply: Any = await self._run_command("admin", {"getParameter": 1, parameter: 1})
        except PyMongoError as e:
            self.logger.debug(f"getParameter {parameter} failed: {e}")
            return None
        return get_number(reply, parameter)
