"""Tests for CollectorManager."""

import pytest

from mongodb_exporter.collectors.base import CollectorConfig
from mongodb_exporter.collectors.common import COLLECTOR_LABEL_NAMES, INSTANCE_LABEL_NAMES
from mongodb_exporter.collectors.manager import DEFAULT_COLLECTORS, CollectorManager
from mongodb_exporter.collectors.server_status import ServerStatusCollector
from mongodb_exporter.utils.metrics import MetricSink

from conftest import make_client


def test_initialize_registers_full_catalogue(logger):
    manager = CollectorManager(make_client(), CollectorConfig(), logger)

    multi = manager.initialize_collectors()

    names = [c.name for c in multi.collectors]
    assert len(names) == len(DEFAULT_COLLECTORS) == 15
    assert len(set(names)) == 15
    assert "server_status" in names
    assert "replica_set_status" in names
    assert manager.get_collector() is multi


def test_metric_names_are_unique_across_catalogue(logger):
    manager = CollectorManager(make_client(), CollectorConfig(custom_labels={"env": "x"}), logger)

    descriptors = manager.initialize_collectors().describe()

    names = [d.name for d in descriptors]
    assert len(names) == len(set(names))
    assert all(name.startswith("mongodb_") for name in names)
    assert all(d.name.endswith("_total") for d in descriptors if d.kind.value == "counter")
    assert all("env" in d.label_names for d in descriptors)


def test_collector_label_names_are_known(logger):
    manager = CollectorManager(make_client(), CollectorConfig(), logger)

    used = {name for d in manager.initialize_collectors().describe() for name in d.label_names}

    assert used - set(INSTANCE_LABEL_NAMES) == COLLECTOR_LABEL_NAMES


def test_disabled_collectors_still_registered(logger):
    config = CollectorConfig(disabled_metrics=["profile"])
    manager = CollectorManager(make_client(), config, logger)

    multi = manager.initialize_collectors()

    profile = next(c for c in multi.collectors if c.name == "profile")
    assert not profile.is_enabled()


def test_initialize_rejects_missing_class(logger):
    manager = CollectorManager(make_client(), CollectorConfig(), logger)

    with pytest.raises(ValueError):
        manager.initialize_collectors([ServerStatusCollector, None])


@pytest.mark.asyncio
async def test_shutdown_stops_new_cycles(logger):
    client = make_client(commands={("admin", "serverStatus"): {"uptime": 10}})
    manager = CollectorManager(client, CollectorConfig(), logger)
    multi = manager.initialize_collectors([ServerStatusCollector])

    first = MetricSink()
    await multi.collect(first)
    manager.shutdown()
    second = MetricSink()
    await multi.collect(second)

    assert manager.context.is_set()
    assert len(first) > 0
    assert len(second) == 0
