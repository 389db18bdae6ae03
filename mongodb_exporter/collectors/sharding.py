"""Sharded cluster topology collector (router processes only)."""

from typing import Any, Dict, List, Mapping

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_bool, get_document, get_number, get_string, get_value
from .base import BaseCollector, safe_collect
from .common import parse_namespace


ROUTER_MESSAGE = "isdbgrid"

MIGRATION_EVENTS = ("moveChunk.from", "moveChunk.to", "moveChunk.commit")

CHUNK_PIPELINE = [
    {"$group": {
        "_id": {"ns": "$ns", "uuid": "$uuid", "shard": "$shard"},
        "count": {"$sum": 1},
    }},
]

MIGRATION_PIPELINE = [
    {"$match": {"what": {"$in": list(MIGRATION_EVENTS)}}},
    {"$group": {"_id": "$what", "count": {"$sum": 1}}},
]


class ShardingCollector(BaseCollector):
    """
    Shard, chunk and balancer metrics read from the config database.

    Only a mongos answers ``isMaster`` with ``msg: "isdbgrid"``; on any other
    process the collector emits nothing and logs at debug level only.
    """

    name = "sharding"
    timeout = 15.0

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "mongos_up": self._gauge(
                "mongodb_mongos_up",
                "Whether the mongos router is reachable",
            ),
            "shards": self._gauge(
                "mongodb_shards_total",
                "Number of shards in the cluster",
            ),
            "shard_databases": self._gauge(
                "mongodb_shard_databases_total",
                "Number of databases whose primary is each shard",
                "shard_name", "shard_host",
            ),
            "balancer_enabled": self._gauge(
                "mongodb_balancer_enabled",
                "Whether the balancer is enabled (1) or off (0)",
            ),
            "balancer_running": self._gauge(
                "mongodb_balancer_running",
                "Whether a balancer round is in progress",
            ),
            "chunks": self._gauge(
                "mongodb_shard_chunks_total",
                "Chunks per sharded collection and shard",
                "database", "collection", "shard_name",
            ),
            "sharded_collections": self._gauge(
                "mongodb_sharded_collections_total",
                "Number of sharded collections",
            ),
            "migrations": self._counter(
                "mongodb_balancer_migrations_total",
                "Chunk migration events recorded in the changelog",
                "type",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        hello = await self._run_command("admin", {"isMaster": 1})
        if get_string(hello, "msg") != ROUTER_MESSAGE:
            self.logger.debug("Not a mongos instance, skipping sharding metrics")
            return

        instance = self.get_instance_info(hello)
        self._emit(sink, "mongos_up", 1.0, instance)

        await self._collect_shards(sink, instance)
        await self._collect_balancer(sink, instance)
        collections = await self._collect_sharded_collections(sink, instance)
        if self.settings.get("collect_chunk_distribution", True):
            await self._collect_chunks(sink, instance, collections)
        if self.settings.get("collect_migration_history", True):
            await self._collect_migrations(sink, instance)

    async def _collect_shards(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        try:
            shards = await self._find("config", "shards")
        except PyMongoError as e:
            self.logger.error(f"Failed to query config.shards: {e}")
            return

        self._emit(sink, "shards", float(len(shards)), instance)

        for shard in shards:
            shard_name = get_string(shard, "_id")
            shard_host = get_string(shard, "host")
            if shard_name is None or shard_host is None:
                self.logger.warning("Invalid shard data", extra={"shard": str(shard)[:200]})
                continue
            try:
                databases = await self._call(
                    self.client.count_documents, "config", "databases",
                    {"primary": shard_name}, timeout=self.timeout,
                )
            except PyMongoError as e:
                self.logger.error(f"Failed to query config.databases: {e}", extra={"shard": shard_name})
                continue
            self._emit(sink, "shard_databases", float(databases), instance, shard_name, shard_host)

    async def _collect_balancer(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        try:
            status = await self._run_command("admin", {"balancerStatus": 1})
        except PyMongoError as e:
            self.logger.error(f"Failed to get balancer status: {e}")
            return

        mode = get_string(status, "mode")
        if mode is not None:
            self._emit(sink, "balancer_enabled", 0.0 if mode == "off" else 1.0, instance)

        in_round = get_bool(status, "inBalancerRound")
        if in_round is not None:
            self._emit(sink, "balancer_running", 1.0 if in_round else 0.0, instance)

    async def _collect_sharded_collections(self, sink: MetricSink, instance: Mapping[str, str]) -> Dict[Any, str]:
        """Count sharded collections and return their uuid -> namespace map."""
        try:
            collections = await self._find("config", "collections")
        except PyMongoError as e:
            self.logger.error(f"Failed to query config.collections: {e}")
            return {}

        active = [c for c in collections if not get_bool(c, "dropped")]
        self._emit(sink, "sharded_collections", float(len(active)), instance)

        namespaces = {}
        for collection in active:
            uuid = get_value(collection, "uuid")
            namespace = get_string(collection, "_id")
            if uuid is not None and namespace is not None:
                namespaces[uuid] = namespace
        return namespaces

    async def _collect_chunks(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        namespaces: Mapping[Any, str],
    ) -> None:
        """Chunk counts; chunks carry ``ns`` before 5.0 and only ``uuid`` after."""
        try:
            results = await self._aggregate("config", "chunks", CHUNK_PIPELINE)
        except PyMongoError as e:
            self.logger.error(f"Failed to aggregate chunks: {e}")
            return

        for result in results:
            key = get_document(result, "_id") or {}
            namespace = get_string(key, "ns")
            if namespace is None:
                uuid = get_value(key, "uuid")
                namespace = namespaces.get(uuid) if uuid is not None else None
            shard_name = get_string(key, "shard")
            count = get_number(result, "count")
            if namespace is None or shard_name is None or count is None:
                continue

            database, collection = parse_namespace(namespace)
            self._emit(sink, "chunks", count, instance, database, collection, shard_name)

    async def _collect_migrations(self, sink: MetricSink, instance: Mapping[str, str]) -> None:
        try:
            results: List[Dict[str, Any]] = await self._aggregate("config", "changelog", MIGRATION_PIPELINE)
        except PyMongoError as e:
            # config.changelog does not exist on every version
            self.logger.debug(f"Failed to query config.changelog: {e}")
            return

        for result in results:
            migration_type = get_string(result, "_id")
            if migration_type is None:
                continue
            self._emit(sink, "migrations", get_number(result, "count"), instance, migration_type)
