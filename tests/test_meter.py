"""Tests for the meter and the no-op fallbacks."""
import pytest

from tally.config import MetricDefinition, MetricOptions, ValueType
from tally.meter import Meter, get_meter, set_meter
from tally.metric import CounterMetric, GaugeMetric, MeasureMetric
from tally.noop import NOOP_METER, NoopCounterMetric, NoopGaugeMetric, NoopMeasureMetric


@pytest.fixture(autouse=True)
def reset_global_meter():
    yield
    set_meter(None)


def test_create_metrics():
    meter = Meter()
    assert isinstance(meter.create_counter("requests"), CounterMetric)
    assert isinstance(meter.create_gauge("temperature"), GaugeMetric)
    assert isinstance(meter.create_measure("latency"), MeasureMetric)
    assert [m.name for m in meter.metrics()] == ["requests", "temperature", "latency"]


def test_duplicate_name_rejected():
    meter = Meter()
    meter.create_counter("requests")
    with pytest.raises(ValueError):
        meter.create_gauge("requests")


def test_invalid_name_returns_noop(caplog):
    meter = Meter()
    counter = meter.create_counter("1bad name")

    assert isinstance(counter, NoopCounterMetric)
    assert "Invalid metric name" in caplog.text
    assert meter.metrics() == []

    # The no-op surface accepts everything
    labels = meter.labels({"method": "GET"})
    counter.add(1, labels)
    counter.bind(labels).add(1)
    counter.get_default_bound().add(1)
    counter.unbind(labels)
    counter.clear()
    counter.set_callback(lambda: None)
    assert counter.collect() == []


def test_labels_canonicalizes():
    meter = Meter()
    assert meter.labels({"b": "2", "a": "1"}).identifier == "a=1,b=2"
    assert meter.labels({"a": "1", "b": "2"}) == meter.labels({"b": "2", "a": "1"})


def test_collect_across_metrics():
    meter = Meter()
    counter = meter.create_counter("requests")
    gauge = meter.create_gauge("temperature")
    measure = meter.create_measure("latency")

    labels = meter.labels({"host": "h1"})
    counter.add(3, labels)
    gauge.set(-1.5, labels)
    measure.record(0.5, labels)
    measure.record(1.5, labels)

    points = {p.name: p for p in meter.collect()}
    assert points["requests"].value == 3
    assert points["temperature"].value == -1.5
    assert points["latency"].value == 2
    assert points["latency"].distribution.sum == 2.0


def test_remove_metric():
    meter = Meter()
    meter.create_counter("requests")
    meter.remove_metric("requests")
    meter.remove_metric("requests")
    assert meter.get_metric("requests") is None
    meter.create_counter("requests")


def test_from_definitions():
    meter = Meter()
    created = meter.from_definitions([
        MetricDefinition(name="requests", kind="counter", label_keys=["method"]),
        MetricDefinition(name="bytes", kind="gauge", value_type=ValueType.INT, description="Bytes in use"),
        MetricDefinition(name="latency", kind="measure", unit="s"),
    ])

    assert [m.kind for m in created] == ["counter", "gauge", "measure"]
    assert meter.get_metric("requests").options.label_keys == ("method",)
    assert meter.get_metric("bytes").options.value_type == ValueType.INT
    assert meter.get_metric("latency").options.unit == "s"
    assert meter.get_metric("latency").absolute is True


def test_options_are_immutable():
    options = MetricOptions(description="x")
    with pytest.raises(Exception):
        options.description = "y"


def test_global_meter_defaults_to_noop():
    assert get_meter() is NOOP_METER
    assert isinstance(get_meter().create_gauge("g"), NoopGaugeMetric)
    assert isinstance(get_meter().create_measure("m"), NoopMeasureMetric)
    assert get_meter().collect() == []

    meter = Meter("app")
    set_meter(meter)
    assert get_meter() is meter
