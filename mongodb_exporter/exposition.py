"""Bridge between the async collectors and prometheus_client."""

import asyncio
import logging
import threading
from typing import Dict, Iterable, Iterator, Tuple

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

from .collectors.registry import MultiCollector
from .utils.metrics import MetricDescriptor, MetricKind, MetricSink, Observation


def new_family(descriptor: MetricDescriptor) -> Metric:
    """Create an empty metric family for *descriptor*."""
    if descriptor.kind is MetricKind.COUNTER:
        return CounterMetricFamily(
            descriptor.name, descriptor.documentation, labels=list(descriptor.label_names)
        )
    return GaugeMetricFamily(
        descriptor.name, descriptor.documentation, labels=list(descriptor.label_names)
    )


def build_families(observations: Iterable[Observation]) -> Iterator[Metric]:
    """
    Group observations into metric families.

    Observations with identical label values within one family collapse to
    the last emitted value.

    Args:
        observations: Observations from one collection cycle

    Yields:
        Metric: One family per descriptor that received observations
    """
    grouped: Dict[MetricDescriptor, Dict[Tuple[str, ...], float]] = {}
    for observation in observations:
        grouped.setdefault(observation.descriptor, {})[observation.label_values] = observation.value

    for descriptor, samples in grouped.items():
        family = new_family(descriptor)
        for label_values, value in samples.items():
            family.add_metric(list(label_values), value)
        yield family


class PrometheusBridge(Collector):
    """
    prometheus_client collector that runs one collection cycle per scrape.

    Scrapes are served from HTTP worker threads; cycles are serialized with
    a lock so a collector never runs concurrently with itself.
    """

    def __init__(self, collector: MultiCollector, logger: logging.Logger):
        """
        Initialize bridge.

        Args:
            collector: Merged collector to expose
            logger: Logger instance
        """
        self.collector = collector
        self.logger = logger.getChild(self.__class__.__name__)
        self._lock = threading.Lock()

    def describe(self) -> Iterator[Metric]:
        for descriptor in self.collector.describe():
            yield new_family(descriptor)

    def collect(self) -> Iterator[Metric]:
        sink = MetricSink()
        with self._lock:
            asyncio.run(self.collector.collect(sink))
        return build_families(sink.observations)
