"""Collector registry and concurrent fan-out engine."""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..utils.metrics import MetricDescriptor, MetricSink
from .base import BaseCollector


@dataclass
class CollectorFault:
    """An unexpected exception raised by one collector during a cycle."""
    collector_name: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.collector_name}: {type(self.error).__name__}: {self.error}"


class MultiCollector:
    """
    Run every registered collector concurrently as one collector.

    Each collector gets its own task; results are captured per task with
    ``asyncio.gather(return_exceptions=True)`` so a fault in one collector
    is logged and counted without affecting the others. ``collect`` always
    returns normally.
    """

    name = "multi_collector"

    def __init__(
        self,
        logger: logging.Logger,
        collectors: Optional[List[BaseCollector]] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the registry.

        Args:
            logger: Logger instance
            collectors: Collectors to register up front
            stop_event: When set, new cycles are not dispatched
        """
        self.logger = logger.getChild(self.__class__.__name__)
        self.stop_event = stop_event or threading.Event()
        self._collectors: List[BaseCollector] = []
        self._lock = threading.Lock()

        for collector in collectors or []:
            self.add_collector(collector)

    def add_collector(self, collector: BaseCollector) -> None:
        """
        Register a collector.

        Args:
            collector: Collector to add

        Raises:
            ValueError: If one of its metric names is already registered
        """
        with self._lock:
            registered: Dict[str, str] = {
                descriptor.name: existing.name
                for existing in self._collectors
                for descriptor in existing.describe()
            }
            for descriptor in collector.describe():
                owner = registered.get(descriptor.name)
                if owner is not None:
                    raise ValueError(
                        f"Metric {descriptor.name} of collector {collector.name} "
                        f"is already registered by {owner}"
                    )
            self._collectors.append(collector)

        self.logger.info("Added collector", extra={"collector": collector.name})

    def remove_collector(self, name: str) -> None:
        """Unregister the first collector called *name*; unknown names are ignored."""
        with self._lock:
            for index, collector in enumerate(self._collectors):
                if collector.name == name:
                    del self._collectors[index]
                    break
            else:
                return

        self.logger.info("Removed collector", extra={"collector": name})

    @property
    def collectors(self) -> List[BaseCollector]:
        """Snapshot of the registered collectors."""
        with self._lock:
            return list(self._collectors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._collectors)

    def describe(self) -> List[MetricDescriptor]:
        """Descriptors of every registered collector, in registration order."""
        descriptors: List[MetricDescriptor] = []
        for collector in self.collectors:
            descriptors.extend(collector.describe())
        return descriptors

    async def collect(self, sink: MetricSink) -> List[CollectorFault]:
        """
        Run one collection cycle across all collectors.

        Args:
            sink: Output channel shared by every collector

        Returns:
            List[CollectorFault]: Faults raised during the cycle (already logged)
        """
        if self.stop_event.is_set():
            self.logger.debug("Collector shutdown in progress, skipping collection")
            return []

        collectors = self.collectors
        start_time = time.time()

        results = await asyncio.gather(
            *(self._collect_one(collector, sink) for collector in collectors),
            return_exceptions=True,
        )

        faults = []
        for collector, result in zip(collectors, results):
            if isinstance(result, BaseException):
                faults.append(CollectorFault(collector.name, result))
                self.logger.error(
                    f"Collector '{collector.name}' failed: {result}",
                    exc_info=(type(result), result, result.__traceback__),
                    extra={"collector": collector.name},
                )

        if faults:
            self.logger.warning(
                "Errors occurred during collection",
                extra={"error_count": len(faults), "collectors": [f.collector_name for f in faults]},
            )

        self.logger.debug(
            "Collection cycle finished",
            extra={
                "collector_count": len(collectors),
                "observation_count": len(sink),
                "duration_seconds": round(time.time() - start_time, 3),
            },
        )
        return faults

    async def _collect_one(self, collector: BaseCollector, sink: MetricSink) -> None:
        start_time = time.time()
        await collector.collect(sink)
        self.logger.debug(
            "Collector finished",
            extra={
                "collector": collector.name,
                "duration_seconds": round(time.time() - start_time, 3),
            },
        )
