"""Tests for the query executor collector."""

import pytest

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.collectors.query_executor import QueryExecutorCollector
from mongodb_exporter.utils.metrics import MetricSink

from conftest import make_client, samples


@pytest.mark.asyncio
async def test_query_executor_collector(logger):
    status = {
        "metrics": {
            "queryExecutor": {
                "scanned": 1200,
                "scannedObjects": 3400,
                "collectionScans": {"total": 12, "nonTailable": 10},
            },
            "query": {"planCache": {"hits": 50, "misses": 5, "entries": 8}},
        },
    }
    client = make_client(commands={("admin", "serverStatus"): status})
    collector = QueryExecutorCollector(client, CollectorConfig(), logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert samples(sink, "mongodb_metrics_query_executor_scanned_total") == {(): 1200.0}
    assert samples(sink, "mongodb_metrics_query_executor_scanned_objects_total") == {(): 3400.0}
    assert samples(sink, "mongodb_metrics_query_executor_collection_scans_total") == {
        ("total",): 12.0,
        ("non_tailable",): 10.0,
    }
    assert samples(sink, "mongodb_metrics_query_executor_plan_cache_hits_total") == {(): 50.0}
    assert samples(sink, "mongodb_metrics_query_executor_plan_cache_misses_total") == {(): 5.0}
    assert samples(sink, "mongodb_metrics_query_executor_plan_cache_entries") == {(): 8.0}
    assert sink.select("mongodb_metrics_query_executor_plan_cache_evictions_total") == []


@pytest.mark.asyncio
async def test_query_executor_missing_section(logger):
    client = make_client(commands={("admin", "serverStatus"): {"metrics": {}}})
    collector = QueryExecutorCollector(client, CollectorConfig(), logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert len(sink) == 0
