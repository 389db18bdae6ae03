"""Tests for the connection pool collector."""

import pytest

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.collectors.connection_pool import ConnectionPoolCollector, client_host
from mongodb_exporter.utils.metrics import MetricSink

from conftest import make_client, samples


STATUS = {
    "host": "db-1:27017",
    "connections": {"current": 12, "available": 88, "totalCreated": 240},
    "metrics": {
        "connectionPool": {
            "replication": {
                "currentCheckedOut": 1,
                "maxPoolSize": 10,
                "totalDestroyed": 3,
                "requestsSuccessful": 90,
                "requestsFailed": 2,
                "avgWaitTimeMs": 1.5,
            },
        },
        "cursor": {"timedOut": 4},
        "network": {"timeouts": 1},
    },
}

CURRENT_OP = {
    "inprog": [
        {"client": "10.0.0.5:51234"},
        {"client": "10.0.0.5:51235"},
        {"client": "10.0.0.9:40000"},
        {"desc": "internal"},
    ],
}

POOL_STATS = {"hosts": {"db-2:27017": {"inUse": 2, "available": 5, "created": 20}}}


def make_pool_collector(logger, settings=None):
    client = make_client(commands={
        ("admin", "serverStatus"): STATUS,
        ("admin", "currentOp"): CURRENT_OP,
        ("admin", "connPoolStats"): POOL_STATS,
    })
    config = CollectorConfig(collectors={"connection_pool": settings or {}})
    return client, ConnectionPoolCollector(client, config, logger)


def test_client_host():
    assert client_host("10.0.0.5:51234") == "10.0.0.5"
    assert client_host("[::1]:27017") == "[::1]"
    assert client_host("localhost") == "localhost"


@pytest.mark.asyncio
async def test_connection_pool_collector(logger):
    _, collector = make_pool_collector(logger)
    sink = MetricSink()

    await collector.collect(sink)

    assert samples(sink, "mongodb_connection_pool_current_checked_out") == {
        ("default",): 12.0,
        ("replication",): 1.0,
        ("db-2:27017",): 2.0,
    }
    assert samples(sink, "mongodb_connection_pool_current_checked_in") == {
        ("default",): 88.0,
        ("db-2:27017",): 5.0,
    }
    assert samples(sink, "mongodb_connection_pool_current_created") == {
        ("default",): 100.0,
        ("db-2:27017",): 20.0,
    }
    assert samples(sink, "mongodb_connection_pool_connections_created_total") == {("default",): 240.0}
    assert samples(sink, "mongodb_connection_pool_max_size") == {("replication",): 10.0}
    assert samples(sink, "mongodb_connection_pool_connections_destroyed_total") == {("replication",): 3.0}
    assert samples(sink, "mongodb_connection_pool_requests_total") == {
        ("replication", "success"): 90.0,
        ("replication", "failed"): 2.0,
    }
    assert samples(sink, "mongodb_connection_pool_wait_time_milliseconds") == {("replication",): 1.5}
    assert samples(sink, "mongodb_connection_errors_total") == {
        ("timeout", "db-1:27017"): 4.0,
        ("network_timeout", "db-1:27017"): 1.0,
    }
    assert samples(sink, "mongodb_connection_client_operations") == {
        ("10.0.0.5",): 2.0,
        ("10.0.0.9",): 1.0,
    }


@pytest.mark.asyncio
async def test_optional_queries_follow_settings(logger):
    client, collector = make_pool_collector(
        logger, {"collect_per_host_metrics": False, "analyze_current_operations": False},
    )
    sink = MetricSink()

    await collector.collect(sink)

    client.run_command.assert_called_once()
    assert sink.select("mongodb_connection_client_operations") == []
    assert ("db-2:27017",) not in samples(sink, "mongodb_connection_pool_current_checked_out")
