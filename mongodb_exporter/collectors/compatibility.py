"""Legacy metric names kept for existing dashboards."""

from typing import Dict

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_document, get_number
from .base import BaseCollector, safe_collect


class CompatibilityCollector(BaseCollector):
    """Re-emit replicated opcounters under the legacy family name."""

    name = "compatibility"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "op_counters_repl": self._counter(
                "mongodb_op_counters_repl_total",
                "Replicated operations by type since the server started",
                "type",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        status = await self._server_status()
        instance = self.get_instance_info(status)

        for op_type, count in (get_document(status, "opcountersRepl") or {}).items():
            self._emit(sink, "op_counters_repl", get_number(count), instance, op_type)
