"""Base collector abstract class for all MongoDB collectors."""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import wraps
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from pymongo.errors import PyMongoError

from ..database.client import DEFAULT_TIMEOUT
from ..utils.metrics import MetricDescriptor, MetricKind, MetricSink, Observation
from .common import (
    INSTANCE_LABEL_NAMES,
    instance_labels,
    should_skip_collection,
    should_skip_database,
)
from .policy import is_metric_enabled


@dataclass(frozen=True)
class CollectorConfig:
    """Resolved, read-only configuration shared by every collector."""
    custom_labels: Mapping[str, str] = field(default_factory=dict)
    enabled_metrics: Tuple[str, ...] = ()
    disabled_metrics: Tuple[str, ...] = ()
    collectors: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "custom_labels", MappingProxyType(dict(self.custom_labels)))
        object.__setattr__(self, "enabled_metrics", tuple(self.enabled_metrics))
        object.__setattr__(self, "disabled_metrics", tuple(self.disabled_metrics))
        object.__setattr__(
            self,
            "collectors",
            MappingProxyType({k: MappingProxyType(dict(v or {})) for k, v in self.collectors.items()}),
        )

    def settings(self, collector_name: str) -> Mapping[str, Any]:
        """Return the free-form settings for *collector_name* (empty if unset)."""
        return self.collectors.get(collector_name, MappingProxyType({}))

    @classmethod
    def from_exporter_config(cls, config) -> "CollectorConfig":
        """
        Resolve collector configuration from the loaded exporter config.

        Args:
            config: ExporterConfig instance

        Returns:
            CollectorConfig: Immutable collector configuration
        """
        return cls(
            custom_labels=config.metrics.custom_labels,
            enabled_metrics=config.metrics.enabled_metrics,
            disabled_metrics=config.metrics.disabled_metrics,
            collectors=config.collectors.model_dump(),
        )


class BaseCollector(ABC):
    """
    Abstract base class for all collectors.

    Subclasses build their descriptors once in ``_build_descriptors`` and
    emit observations from ``collect``. Upstream calls are blocking pymongo
    calls and always go through ``_call`` so they run in the loop's executor.
    """

    timeout: float = DEFAULT_TIMEOUT

    def __init__(self, client: Any, config: CollectorConfig, logger: logging.Logger):
        """
        Initialize base collector.

        Args:
            client: DiagnosticClient (or compatible) shared by all collectors
            config: Resolved collector configuration
            logger: Logger instance
        """
        self.client = client
        self.config = config
        self.logger = logger.getChild(self.__class__.__name__)
        self.instance_label_names: Tuple[str, ...] = INSTANCE_LABEL_NAMES + tuple(
            key for key in config.custom_labels if key not in INSTANCE_LABEL_NAMES
        )
        self.descriptors: Mapping[str, MetricDescriptor] = MappingProxyType(self._build_descriptors())

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, also the name checked by the enablement policy."""

    @abstractmethod
    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        """
        Create this collector's descriptors.

        Returns:
            Dict[str, MetricDescriptor]: Short key -> descriptor
        """

    @abstractmethod
    async def collect(self, sink: MetricSink) -> None:
        """
        Query the server and emit observations into *sink*.

        Args:
            sink: Output channel shared by the collection cycle

        Note:
            Implementations should use @safe_collect so that disabled
            collectors stay silent and query errors are logged, not raised.
        """

    def describe(self) -> List[MetricDescriptor]:
        """Return every descriptor this collector may emit."""
        return list(self.descriptors.values())

    def is_metric_enabled(self, metric_name: str) -> bool:
        """Evaluate the enablement policy for *metric_name*."""
        return is_metric_enabled(
            metric_name, self.config.enabled_metrics, self.config.disabled_metrics
        )

    def is_enabled(self) -> bool:
        """Whether this collector should run in the current cycle."""
        return self.is_metric_enabled(self.name)

    @property
    def settings(self) -> Mapping[str, Any]:
        """Per-collector settings from configuration."""
        return self.config.settings(self.name)

    def get_instance_info(self, snapshot: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """
        Build instance labels from a snapshot plus configured static labels.

        Args:
            snapshot: Server reply, or None when the collector has none

        Returns:
            Dict[str, str]: Fully populated instance labels
        """
        return instance_labels(snapshot or {}, self.config.custom_labels)

    # ------------------------------------------------------------------
    # Descriptors and emission
    # ------------------------------------------------------------------

    def _gauge(self, name: str, documentation: str, *labels: str) -> MetricDescriptor:
        return MetricDescriptor(
            name, documentation, self.instance_label_names + labels, MetricKind.GAUGE
        )

    def _counter(self, name: str, documentation: str, *labels: str) -> MetricDescriptor:
        return MetricDescriptor(
            name, documentation, self.instance_label_names + labels, MetricKind.COUNTER
        )

    def _emit(
        self,
        sink: MetricSink,
        key: str,
        value: Optional[float],
        instance: Mapping[str, str],
        *label_values: str,
    ) -> bool:
        """
        Emit one observation for descriptor *key*.

        Args:
            sink: Output channel
            key: Short descriptor key
            value: Coerced value; None skips the observation
            instance: Instance labels from get_instance_info
            *label_values: Values for the collector-specific labels

        Returns:
            bool: True if an observation was emitted
        """
        if value is None:
            return False
        descriptor = self.descriptors[key]
        values = tuple(instance[name] for name in self.instance_label_names)
        sink.emit(Observation(descriptor, float(value), values + tuple(str(v) for v in label_values)))
        return True

    # ------------------------------------------------------------------
    # Upstream queries
    # ------------------------------------------------------------------

    async def _call(self, func: Callable, *args, **kwargs) -> Any:
        """Run a blocking client call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def _run_command(self, database: str, command: Any, timeout: Optional[float] = None) -> Dict[str, Any]:
        return await self._call(
            self.client.run_command, database, command, timeout=timeout or self.timeout
        )

    async def _server_status(self) -> Dict[str, Any]:
        return await self._run_command("admin", "serverStatus")

    async def _list_databases(self) -> List[str]:
        """List user databases, system databases excluded."""
        names = await self._call(self.client.list_database_names, timeout=self.timeout)
        return [name for name in names if not should_skip_database(name)]

    async def _list_collections(self, database: str) -> List[str]:
        """List collections of *database*, system collections excluded."""
        names = await self._call(self.client.list_collection_names, database, timeout=self.timeout)
        return [name for name in names if not should_skip_collection(name)]

    async def _find(
        self,
        database: str,
        collection: str,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[Sequence[Tuple[str, int]]] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        return await self._call(
            self.client.find, database, collection,
            filter=filter, sort=sort, limit=limit, timeout=self.timeout,
        )

    async def _aggregate(self, database: str, collection: str, pipeline: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return await self._call(
            self.client.aggregate, database, collection, pipeline, timeout=self.timeout
        )


def safe_collect(func):
    """
    Decorator applying the enablement policy and upstream error handling.

    A disabled collector returns without querying. A ``PyMongoError`` raised
    by any query (including timeouts) is logged and swallowed, leaving the
    observations emitted so far in the sink. Other exceptions propagate to
    the fan-out engine, which records them as collector faults.

    Args:
        func: Collector ``collect`` method to wrap

    Returns:
        Wrapped coroutine function
    """
    @wraps(func)
    async def wrapper(self, sink, *args, **kwargs):
        if not self.is_enabled():
            self.logger.debug(f"Collector {self.name} disabled, skipping")
            return None
        try:
            return await func(self, sink, *args, **kwargs)
        except PyMongoError as e:
            self.logger.error(
                f"Collection failed: {e}",
                extra={"collector": self.name, "error_type": type(e).__name__},
            )
            return None
    return wrapper
