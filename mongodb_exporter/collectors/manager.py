"""Collector lifecycle management."""

import logging
import threading
from typing import Any, List, Optional, Type

from .base import BaseCollector, CollectorConfig
from .collstats import CollStatsCollector
from .compatibility import CompatibilityCollector
from .connection_pool import ConnectionPoolCollector
from .cursors import CursorsCollector
from .index_stats import IndexStatsCollector
from .lock_metrics import LockMetricsCollector
from .locks import LocksCollector
from .operation_metrics import OperationMetricsCollector
from .profile import ProfileCollector
from .query_executor import QueryExecutorCollector
from .registry import MultiCollector
from .replica_set import ReplicaSetCollector
from .server_status import ServerStatusCollector
from .sharding import ShardingCollector
from .storage_stats import StorageStatsCollector
from .wiredtiger import WiredTigerCollector


DEFAULT_COLLECTORS: List[Type[BaseCollector]] = [
    ServerStatusCollector,
    ReplicaSetCollector,
    QueryExecutorCollector,
    OperationMetricsCollector,
    WiredTigerCollector,
    LocksCollector,
    LockMetricsCollector,
    IndexStatsCollector,
    StorageStatsCollector,
    CompatibilityCollector,
    ShardingCollector,
    CollStatsCollector,
    CursorsCollector,
    ProfileCollector,
    ConnectionPoolCollector,
]


class CollectorManager:
    """
    Own the merged collector for the exporter's lifetime.

    ``shutdown`` sets the cancel event; cycles already running finish
    their in-flight queries, later cycles are not dispatched.
    """

    def __init__(self, client: Any, config: CollectorConfig, logger: logging.Logger):
        """
        Initialize collector manager.

        Args:
            client: Diagnostic client shared by all collectors
            config: Resolved collector configuration
            logger: Logger instance
        """
        self.client = client
        self.config = config
        self.logger = logger.getChild(self.__class__.__name__)
        self._base_logger = logger
        self._stop_event = threading.Event()
        self.multi_collector = MultiCollector(logger, stop_event=self._stop_event)

    @property
    def context(self) -> threading.Event:
        """Cancel event; set once shutdown has been requested."""
        return self._stop_event

    def initialize_collectors(
        self,
        collector_classes: Optional[List[Type[BaseCollector]]] = None,
    ) -> MultiCollector:
        """
        Instantiate and register the collector catalogue.

        Args:
            collector_classes: Classes to register, defaults to DEFAULT_COLLECTORS

        Returns:
            MultiCollector: The merged collector

        Raises:
            ValueError: If a class is missing or metric names collide
        """
        for collector_class in collector_classes or DEFAULT_COLLECTORS:
            if collector_class is None:
                raise ValueError("Cannot register an empty collector")

            collector = collector_class(self.client, self.config, self._base_logger)
            self.multi_collector.add_collector(collector)
            if not collector.is_enabled():
                self.logger.info(
                    "Collector registered but disabled by configuration",
                    extra={"collector": collector.name},
                )

        self.logger.info(
            "Collectors initialized",
            extra={"collector_count": len(self.multi_collector)},
        )
        return self.multi_collector

    def get_collector(self) -> MultiCollector:
        """Return the merged collector."""
        return self.multi_collector

    def shutdown(self) -> None:
        """Stop dispatching new collection cycles."""
        self._stop_event.set()
        self.logger.info("Collector manager shutdown")
