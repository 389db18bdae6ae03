"""Tests for the sharding collector."""

import logging
import uuid

import pytest

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.collectors.sharding import ShardingCollector
from mongodb_exporter.utils.metrics import MetricSink

from conftest import make_client, samples


ORDERS_UUID = uuid.UUID("3b241101-e2bb-4255-8caf-4136c566a962")


def make_mongos_client(**overrides):
    options = {
        "commands": {
            ("admin", "isMaster"): {"ismaster": True, "msg": "isdbgrid", "host": "mongos-1"},
            ("admin", "balancerStatus"): {"mode": "full", "inBalancerRound": False},
        },
        "find": {
            ("config", "shards"): [
                {"_id": "shard01", "host": "shard01/db-1:27018,db-2:27018"},
                {"_id": "shard02", "host": "shard02/db-3:27018"},
                {"_id": "broken"},
            ],
            ("config", "collections"): [
                {"_id": "app.users", "uuid": uuid.uuid4()},
                {"_id": "app.orders", "uuid": ORDERS_UUID},
                {"_id": "app.old", "dropped": True},
            ],
        },
        "aggregate": {
            ("config", "chunks"): [
                {"_id": {"ns": "app.users", "shard": "shard01"}, "count": 12},
                {"_id": {"uuid": ORDERS_UUID, "shard": "shard02"}, "count": 7},
                {"_id": {"uuid": uuid.uuid4(), "shard": "shard02"}, "count": 1},
            ],
            ("config", "changelog"): [
                {"_id": "moveChunk.commit", "count": 5},
                {"_id": "moveChunk.error", "count": 1},
            ],
        },
        "count": {("config", "databases"): 2},
    }
    options.update(overrides)
    return make_client(**options)


@pytest.mark.asyncio
async def test_sharding_collector(propagating_logger, caplog):
    collector = ShardingCollector(make_mongos_client(), CollectorConfig(), propagating_logger)
    sink = MetricSink()

    with caplog.at_level(logging.WARNING):
        await collector.collect(sink)

    assert samples(sink, "mongodb_mongos_up") == {(): 1.0}
    assert sink.select("mongodb_mongos_up")[0].labels["instance"] == "mongos-1"
    assert samples(sink, "mongodb_shards_total") == {(): 3.0}
    assert samples(sink, "mongodb_shard_databases_total") == {
        ("shard01", "shard01/db-1:27018,db-2:27018"): 2.0,
        ("shard02", "shard02/db-3:27018"): 2.0,
    }
    assert any(r.getMessage() == "Invalid shard data" for r in caplog.records)
    assert samples(sink, "mongodb_balancer_enabled") == {(): 1.0}
    assert samples(sink, "mongodb_balancer_running") == {(): 0.0}
    assert samples(sink, "mongodb_sharded_collections_total") == {(): 2.0}
    assert samples(sink, "mongodb_shard_chunks_total") == {
        ("app", "users", "shard01"): 12.0,
        ("app", "orders", "shard02"): 7.0,
    }
    assert samples(sink, "mongodb_balancer_migrations_total") == {
        ("moveChunk.commit",): 5.0,
        ("moveChunk.error",): 1.0,
    }


@pytest.mark.asyncio
async def test_not_mongos_is_noop(logger):
    client = make_client(commands={("admin", "isMaster"): {"ismaster": True, "setName": "rs0"}})
    collector = ShardingCollector(client, CollectorConfig(), logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert len(sink) == 0
    client.find.assert_not_called()


@pytest.mark.asyncio
async def test_optional_sections_follow_settings(logger):
    client = make_mongos_client()
    config = CollectorConfig(collectors={
        "sharding": {"collect_chunk_distribution": False, "collect_migration_history": False},
    })
    collector = ShardingCollector(client, config, logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert sink.select("mongodb_shard_chunks_total") == []
    assert sink.select("mongodb_balancer_migrations_total") == []
    client.aggregate.assert_not_called()
