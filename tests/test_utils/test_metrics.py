"""Tests for metric descriptors, observations and the sink."""

import threading

import pytest

from mongodb_exporter.utils.metrics import MetricDescriptor, MetricKind, MetricSink, Observation


@pytest.fixture
def descriptor():
    return MetricDescriptor("mongodb_test", "Test metric", ("instance", "state"))


def test_observation_defaults_kind_from_descriptor(descriptor):
    observation = Observation(descriptor, 1.0, ("host", "current"))

    assert observation.kind is MetricKind.GAUGE
    assert observation.labels == {"instance": "host", "state": "current"}


def test_observation_rejects_label_arity_mismatch(descriptor):
    with pytest.raises(ValueError, match="expected 2 label values"):
        Observation(descriptor, 1.0, ("host",))


def test_descriptor_rejects_duplicate_label_names():
    with pytest.raises(ValueError, match="duplicate label names"):
        MetricDescriptor("mongodb_test", "Test metric", ("instance", "type", "type"))


def test_descriptor_is_hashable_and_frozen(descriptor):
    assert {descriptor: 1}[MetricDescriptor("mongodb_test", "Test metric", ("instance", "state"))] == 1
    with pytest.raises(Exception):
        descriptor.name = "other"


def test_sink_select_and_len(descriptor):
    other = MetricDescriptor("mongodb_other_total", "Other", (), MetricKind.COUNTER)
    sink = MetricSink()
    sink.emit(Observation(descriptor, 1.0, ("a", "x")))
    sink.emit(Observation(other, 2.0, ()))

    assert len(sink) == 2
    assert [o.value for o in sink.select("mongodb_other_total")] == [2.0]
    assert sink.select("mongodb_other_total")[0].kind is MetricKind.COUNTER
    assert [o.descriptor.name for o in sink] == ["mongodb_test", "mongodb_other_total"]


def test_sink_accepts_concurrent_emitters(descriptor):
    sink = MetricSink()

    def emit_many(prefix):
        for i in range(200):
            sink.emit(Observation(descriptor, float(i), (prefix, str(i))))

    threads = [threading.Thread(target=emit_many, args=(f"t{n}",)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(sink) == 800
