"""Operation counters from ``serverStatus.metrics.operation``."""

from typing import Dict

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


# serverStatus field -> (metric suffix, help)
OPERATION_FIELDS = {
    "fastmod": ("fastmod", "Update operations that neither grew documents nor touched indexes"),
    "idhack": ("idhack", "Queries that used the _id fast path"),
    "scanAndOrder": ("scan_and_order", "Queries that could not use an index to sort"),
    "writeConflicts": ("write_conflicts", "Queries that hit a write conflict"),
    "commits": ("commits", "Committed transactions"),
    "rollbacks": ("rollbacks", "Rolled back transactions"),
    "applyOps": ("apply_ops", "applyOps operations"),
    "commands": ("commands", "Commands executed"),
}


class OperationMetricsCollector(BaseCollector):
    """One counter per field of the fixed operation table."""

    name = "operation_metrics"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            field: self._counter(f"mongodb_metrics_operation_{suffix}_total", documentation)
            for field, (suffix, documentation) in OPERATION_FIELDS.items()
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        operations = get_document(status, "metrics", "operation")
        if operations is None:
            return

        instance = self.get_instance_info(status)
        for field in OPERATION_FIELDS:
            self._emit(sink, field, get_number(operations, field), instance)
