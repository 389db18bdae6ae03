"""Tests for the WiredTiger collector."""

import pytest

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.collectors.wiredtiger import WiredTigerCollector
from mongodb_exporter.utils.metrics import MetricSink

from conftest import make_client, samples


@pytest.mark.asyncio
async def test_wiredtiger_collector(logger):
    status = {
        "host": "db-1",
        "wiredTiger": {
            "cache": {
                "maximum bytes configured": 1073741824,
                "bytes currently in the cache": 536870912,
                "tracked dirty bytes in the cache": 1024,
                "pages currently held in the cache": 300,
                "modified pages evicted": 4,
                "unmodified pages evicted": 6,
            },
            "block-manager": {"blocks read": 11, "bytes written": 4096},
            "concurrentTransactions": {
                "read": {"out": 2, "available": 126},
                "write": {"out": 1, "available": 127},
            },
        },
    }
    client = make_client(commands={("admin", "serverStatus"): status})
    collector = WiredTigerCollector(client, CollectorConfig(), logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert samples(sink, "mongodb_wiredtiger_cache_max_bytes") == {(): 1073741824.0}
    assert samples(sink, "mongodb_wiredtiger_cache_used_bytes") == {(): 536870912.0}
    assert samples(sink, "mongodb_wiredtiger_cache_dirty_bytes") == {(): 1024.0}
    assert samples(sink, "mongodb_wiredtiger_cache_pages") == {("total",): 300.0}
    assert samples(sink, "mongodb_wiredtiger_cache_evicted_total") == {("clean",): 6.0, ("dirty",): 4.0}
    assert samples(sink, "mongodb_wiredtiger_block_operations_total") == {
        ("read",): 11.0,
        ("bytes_written",): 4096.0,
    }
    assert samples(sink, "mongodb_wiredtiger_concurrent_transactions") == {
        ("read_available",): 126.0,
        ("read_used",): 2.0,
        ("write_available",): 127.0,
        ("write_used",): 1.0,
    }


@pytest.mark.asyncio
async def test_other_storage_engine_emits_nothing(logger):
    client = make_client(commands={("admin", "serverStatus"): {"storageEngine": {"name": "inMemory"}}})
    collector = WiredTigerCollector(client, CollectorConfig(), logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert len(sink) == 0
