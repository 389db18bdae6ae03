"""Database and collection storage collector."""

from typing import Dict, Mapping

from pymongo.errors import PyMongoError

from ..utils.metrics import MetricDescriptor, MetricSink
from ..utils.values import get_bool, get_number
from .base import BaseCollector, safe_collect


COLLECTION_FIELDS = {
    "size": "collection_size",
    "storageSize": "collection_storage_size",
    "avgObjSize": "collection_avg_obj_size",
    "count": "collection_count",
    "totalIndexSize": "collection_index_size",
}


class StorageStatsCollector(BaseCollector):
    """``dbStats`` and ``collStats`` for all non-system databases and collections."""

    name = "storage_stats"

    def _build_descriptors(self) -> Dict[str, MetricDescriptor]:
        return {
            "database_size": self._gauge(
                "mongodb_database_size_bytes",
                "Uncompressed data size of each database in bytes",
                "database",
            ),
            "collection_size": self._gauge(
                "mongodb_collection_size_bytes",
                "Uncompressed data size of each collection in bytes",
                "database", "collection",
            ),
            "collection_storage_size": self._gauge(
                "mongodb_collection_storage_size_bytes",
                "Storage allocated to each collection in bytes",
                "database", "collection",
            ),
            "collection_avg_obj_size": self._gauge(
                "mongodb_collection_avg_obj_size_bytes",
                "Average document size of each collection in bytes",
                "database", "collection",
            ),
            "collection_count": self._gauge(
                "mongodb_collection_count",
                "Number of documents in each collection",
                "database", "collection",
            ),
            "collection_index_size": self._gauge(
                "mongodb_collection_index_size_bytes",
                "Total index size of each collection in bytes",
                "database", "collection",
            ),
            "collection_capped": self._gauge(
                "mongodb_collection_capped",
                "Whether the collection is capped (1) or not (0)",
                "database", "collection",
            ),
        }

    @safe_collect
    async def collect(self, sink: MetricSink) -> None:
        instance = self.get_instance_info()

        for database in await self._list_databases():
            try:
                db_stats = await self._run_command(database, {"dbStats": 1})
            except PyMongoError as e:
                self.logger.error(f"Failed to get database stats: {e}", extra={"database": database})
                continue

            self._emit(sink, "database_size", get_number(db_stats, "dataSize"), instance, database)

            try:
                collections = await self._list_collections(database)
            except PyMongoError as e:
                self.logger.error(f"Failed to list collections: {e}", extra={"database": database})
                continue

            for collection in collections:
                await self._collect_collection(sink, instance, database, collection)

    async def _collect_collection(
        self,
        sink: MetricSink,
        instance: Mapping[str, str],
        database: str,
        collection: str,
    ) -> None:
        try:
            stats = await self._run_command(database, {"collStats": collection})
        except PyMongoError as e:
            self.logger.error(
                f"Failed to get collection stats: {e}",
                extra={"database": database, "collection": collection},
            )
            return

        for field, key in COLLECTION_FIELDS.items():
            self._emit(sink, key, get_number(stats, field), instance, database, collection)

        capped = get_bool(stats, "capped")
        if capped is not None:
            self._emit(
                sink, "collection_capped", 1.0 if capped else 0.0, instance, database, collection,
            )
