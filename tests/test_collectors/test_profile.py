"""Tests for the profiler collector."""

import operator
from datetime import datetime, timedelta, timezone

import pytest
from pymongo.errors import ExecutionTimeout

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.collectors.profile import (
    OperationStats,
    ProfileCollector,
    ReadPosition,
    extract_collection,
    extract_operation_type,
)
from mongodb_exporter.config.models import ExporterConfig
from mongodb_exporter.utils.metrics import MetricSink

from conftest import make_client, samples


PROFILE_ENTRIES = [
    {
        "op": "query",
        "ns": "app.users",
        "millis": 200,
        "docsExamined": 100,
        "nreturned": 10,
        "keysExamined": 50,
        "responseLength": 2048,
        "cpuNanos": 5000,
        "planSummary": "IXSCAN { email: 1 }",
        "locks": {
            "Global": {
                "acquireCount": {"r": 2},
                "timeAcquiringMicros": {"r": 30},
                "acquireWaitCount": {"r": 1},
            },
        },
        "storage": {"data_read": 512},
    },
    {
        "op": "query",
        "ns": "app.users",
        "millis": 400,
        "execStats": {"totalDocsExamined": 20},
        "planSummary": "COLLSCAN",
    },
    {
        "command": {"filter": {}, "aggregate": "orders"},
        "ns": "app.orders",
        "millis": 150,
    },
]

PROFILE_SETTINGS = {"profile": {"slow_operation_threshold": 0.1, "max_entries_per_cycle": 500}}


RANGE_OPERATORS = {"$gte": operator.ge, "$gt": operator.gt, "$lt": operator.lt}


def profile_store(entries):
    """Return a find side effect that applies the ts range, sort and limit like the server."""
    def find(database, collection, filter=None, sort=None, limit=0, timeout=None):
        ts_range = (filter or {}).get("ts", {})
        matched = [
            entry for entry in entries
            if all(RANGE_OPERATORS[op](entry["ts"], bound) for op, bound in ts_range.items())
        ]
        for key, direction in reversed(sort or []):
            matched.sort(key=lambda entry: entry[key], reverse=direction < 0)
        return matched[:limit] if limit else matched
    return find


def timed_entries(count, start):
    return [
        {"op": "query", "ns": "app.users", "millis": 10, "ts": start + timedelta(seconds=i)}
        for i in range(count)
    ]


def make_profile_collector(logger, profiling_level=1):
    client = make_client(
        commands={("app", "profile"): {"was": profiling_level, "slowms": 100}},
        databases=["admin", "app"],
        find={("app", "system.profile"): PROFILE_ENTRIES},
    )
    return client, ProfileCollector(client, CollectorConfig(collectors=PROFILE_SETTINGS), logger)


def test_extract_helpers():
    assert extract_operation_type({"op": "update"}) == "update"
    assert extract_operation_type({"command": {"sort": 1, "find": "users"}}) == "find"
    assert extract_operation_type({}) == "unknown"
    assert extract_collection({"ns": "app.users"}) == "users"
    assert extract_collection({"ns": "app"}) == "app"
    assert extract_collection({}) == "unknown"


def test_operation_stats_merge():
    first = OperationStats()
    first.add_entry(PROFILE_ENTRIES[0])
    second = OperationStats()
    second.add_entry(PROFILE_ENTRIES[1])

    first.merge(second)

    assert first.count == 2
    assert first.total_duration_ms == 600
    assert first.max_duration_ms == 400
    assert first.docs_examined == 120
    assert first.locks_acquired["Global"] == 2
    assert first.storage["data_read"] == 512


@pytest.mark.asyncio
async def test_profile_collector(logger):
    client, collector = make_profile_collector(logger)
    sink = MetricSink()

    await collector.collect(sink)

    users = ("app", "query", "users")
    orders = ("app", "aggregate", "orders")
    assert samples(sink, "mongodb_profile_slow_operations_total") == {users: 2.0, orders: 1.0}
    duration = samples(sink, "mongodb_profile_operations_duration_seconds")
    assert duration[users] == pytest.approx(0.3)
    assert duration[orders] == pytest.approx(0.15)
    assert samples(sink, "mongodb_profile_operations_max_duration_seconds")[users] == pytest.approx(0.4)
    assert samples(sink, "mongodb_profile_operations_examined_docs_total") == {users: 120.0}
    assert samples(sink, "mongodb_profile_operations_docs_returned_total") == {users: 10.0}
    assert samples(sink, "mongodb_profile_operations_keys_examined_total") == {users: 50.0}
    assert samples(sink, "mongodb_profile_operations_response_length_bytes_total") == {users: 2048.0}
    assert samples(sink, "mongodb_profile_cpu_time_microseconds_total") == {users: 5.0}
    assert samples(sink, "mongodb_profile_operations_locks_acquired_total") == {users + ("Global",): 2.0}
    assert samples(sink, "mongodb_profile_operations_lock_wait_time_microseconds_total") == {
        users + ("Global",): 30.0,
    }
    assert samples(sink, "mongodb_profile_storage_stats_total") == {users + ("data_read",): 512.0}
    assert samples(sink, "mongodb_profile_plan_summary_total") == {
        ("app", "IXSCAN { email: 1 }"): 1.0,
        ("app", "COLLSCAN"): 1.0,
    }

    query = client.find.call_args.kwargs
    assert query["filter"]["millis"] == {"$gte": pytest.approx(100.0)}
    assert query["sort"] == [("ts", 1)]
    assert query["limit"] == 500


@pytest.mark.asyncio
async def test_profile_watermark_and_cumulative_counters(logger):
    client, collector = make_profile_collector(logger)

    await collector.collect(MetricSink())
    sink = MetricSink()
    await collector.collect(sink)

    first, second = [call.kwargs["filter"]["ts"] for call in client.find.call_args_list]
    assert second["$gte"] == first["$lt"]
    assert second["$lt"] >= second["$gte"]
    # counters keep growing across cycles
    assert samples(sink, "mongodb_profile_slow_operations_total")[("app", "query", "users")] == 4.0


@pytest.mark.asyncio
async def test_profiling_disabled_database_is_skipped(logger):
    client, collector = make_profile_collector(logger, profiling_level=0)
    sink = MetricSink()

    await collector.collect(sink)

    assert len(sink) == 0
    client.find.assert_not_called()


@pytest.mark.asyncio
async def test_profile_default_settings_do_not_filter_by_duration(logger):
    client = make_client(
        commands={("app", "profile"): {"was": 2}},
        databases=["app"],
        find={("app", "system.profile"): PROFILE_ENTRIES},
    )
    config = CollectorConfig.from_exporter_config(ExporterConfig())
    collector = ProfileCollector(client, config, logger)

    await collector.collect(MetricSink())

    query = client.find.call_args.kwargs
    assert "millis" not in query["filter"]
    assert query["limit"] == 1000


def make_paged_collector(logger, entries, find=None):
    client = make_client(commands={("app", "profile"): {"was": 2}}, databases=["app"])
    client.find.side_effect = find or profile_store(entries)
    config = CollectorConfig(collectors={"profile": {"max_entries_per_cycle": 2}})
    return client, ProfileCollector(client, config, logger)


@pytest.mark.asyncio
async def test_profile_reads_every_entry_beyond_page_size(logger):
    entries = timed_entries(5, datetime.now(timezone.utc) - timedelta(minutes=10))
    client, collector = make_paged_collector(logger, entries)

    first = MetricSink()
    await collector.collect(first)
    second = MetricSink()
    await collector.collect(second)

    users = ("app", "query", "users")
    assert samples(first, "mongodb_profile_slow_operations_total") == {users: 5.0}
    assert samples(second, "mongodb_profile_slow_operations_total") == {users: 5.0}
    assert all(call.kwargs["sort"] == [("ts", 1)] for call in client.find.call_args_list)


@pytest.mark.asyncio
async def test_profile_entries_sharing_a_timestamp_span_pages(logger):
    start = datetime.now(timezone.utc) - timedelta(minutes=10)
    entries = [dict(entry, ts=start) for entry in timed_entries(4, start)]
    entries += timed_entries(1, start + timedelta(seconds=30))
    _, collector = make_paged_collector(logger, entries)
    sink = MetricSink()

    await collector.collect(sink)

    assert samples(sink, "mongodb_profile_slow_operations_total") == {("app", "query", "users"): 5.0}


@pytest.mark.asyncio
async def test_profile_failed_page_resumes_next_cycle(logger):
    entries = timed_entries(5, datetime.now(timezone.utc) - timedelta(minutes=10))
    store = profile_store(entries)
    calls = []

    def flaky_find(*args, **kwargs):
        calls.append(kwargs)
        if len(calls) == 2:
            raise ExecutionTimeout("operation exceeded time limit")
        return store(*args, **kwargs)

    _, collector = make_paged_collector(logger, entries, find=flaky_find)

    first = MetricSink()
    await collector.collect(first)
    assert samples(first, "mongodb_profile_slow_operations_total") == {("app", "query", "users"): 2.0}
    assert collector._pending["app"] == ReadPosition(entries[1]["ts"], 1)

    second = MetricSink()
    await collector.collect(second)
    assert samples(second, "mongodb_profile_slow_operations_total") == {("app", "query", "users"): 5.0}
    assert collector._pending == {}
