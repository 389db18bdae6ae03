"""Metric descriptor, observation and sink data structures."""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Tuple


class MetricKind(Enum):
    """Prometheus value type of a metric family."""
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDescriptor:
    """Static metadata for one metric family."""
    name: str
    documentation: str
    label_names: Tuple[str, ...]
    kind: MetricKind = MetricKind.GAUGE

    def __post_init__(self):
        duplicates = sorted({n for n in self.label_names if self.label_names.count(n) > 1})
        if duplicates:
            raise ValueError(f"{self.name}: duplicate label names {duplicates}")


@dataclass(frozen=True)
class Observation:
    """One labeled sample emitted during a collection cycle."""
    descriptor: MetricDescriptor
    value: float
    label_values: Tuple[str, ...]
    kind: MetricKind = field(default=None)

    def __post_init__(self):
        if len(self.label_values) != len(self.descriptor.label_names):
            raise ValueError(
                f"{self.descriptor.name}: expected {len(self.descriptor.label_names)} "
                f"label values, got {len(self.label_values)}"
            )
        if self.kind is None:
            object.__setattr__(self, "kind", self.descriptor.kind)

    @property
    def labels(self) -> Dict[str, str]:
        """Label names zipped with their values."""
        return dict(zip(self.descriptor.label_names, self.label_values))


class MetricSink:
    """
    Append-only output channel shared by all collectors in one cycle.

    Appends are guarded by a lock so collectors may emit from executor
    threads as well as from the event loop.
    """

    def __init__(self):
        self._observations: List[Observation] = []
        self._lock = threading.Lock()

    def emit(self, observation: Observation) -> None:
        with self._lock:
            self._observations.append(observation)

    @property
    def observations(self) -> List[Observation]:
        """Snapshot of everything emitted so far."""
        with self._lock:
            return list(self._observations)

    def select(self, name: str) -> List[Observation]:
        """
        Return observations whose descriptor carries *name*.

        Args:
            name: Metric family name

        Returns:
            List[Observation]: Matching observations in emission order
        """
        return [obs for obs in self.observations if obs.descriptor.name == name]

    def __iter__(self) -> Iterator[Observation]:
        return iter(self.observations)

    def __len__(self) -> int:
        with self._lock:
            return len(self._observations)
