"""No-op meter and metrics used when instrumentation is off or a metric is invalid."""
from typing import Callable, List, Optional

from tally.config import MetricOptions
from tally.labels import LabelSet, canonicalize
from tally.series import SeriesPoint


class NoopBoundCounter:
    def add(self, value: float) -> None:
        pass


class NoopBoundGauge:
    def set(self, value: float) -> None:
        pass


class NoopBoundMeasure:
    def record(self, value: float, dist_context=None, span_context=None) -> None:
        pass


NOOP_BOUND_COUNTER = NoopBoundCounter()
NOOP_BOUND_GAUGE = NoopBoundGauge()
NOOP_BOUND_MEASURE = NoopBoundMeasure()


class NoopMetric:
    """Metric that accepts every operation and records nothing."""

    kind = ""
    _bound = None

    def __init__(self, name: str = "", options: Optional[MetricOptions] = None):
        self.name = name
        self.options = options or MetricOptions()

    @property
    def series_count(self) -> int:
        return 0

    def bind(self, label_set: LabelSet):
        return self._bound

    def get_default_bound(self):
        return self._bound

    def unbind(self, label_set: LabelSet) -> None:
        pass

    def clear(self) -> None:
        pass

    def set_callback(self, fn: Optional[Callable[[], None]]) -> None:
        pass

    def collect(self) -> List[SeriesPoint]:
        return []


class NoopCounterMetric(NoopMetric):
    kind = "counter"
    _bound = NOOP_BOUND_COUNTER

    def add(self, value: float, label_set: LabelSet) -> None:
        pass


class NoopGaugeMetric(NoopMetric):
    kind = "gauge"
    _bound = NOOP_BOUND_GAUGE

    def set(self, value: float, label_set: LabelSet) -> None:
        pass


class NoopMeasureMetric(NoopMetric):
    kind = "measure"
    _bound = NOOP_BOUND_MEASURE

    def record(self, value: float, label_set: LabelSet, dist_context=None, span_context=None) -> None:
        pass


class NoopMeter:
    """Meter whose metrics discard everything."""

    name = "noop"

    def labels(self, labels=None) -> LabelSet:
        return canonicalize(labels)

    def create_counter(self, name: str, options: Optional[MetricOptions] = None) -> NoopCounterMetric:
        return NoopCounterMetric(name, options)

    def create_gauge(self, name: str, options: Optional[MetricOptions] = None) -> NoopGaugeMetric:
        return NoopGaugeMetric(name, options)

    def create_measure(self, name: str, options: Optional[MetricOptions] = None) -> NoopMeasureMetric:
        return NoopMeasureMetric(name, options)

    def get_metric(self, name: str):
        return None

    def metrics(self) -> list:
        return []

    def remove_metric(self, name: str) -> None:
        pass

    def collect(self) -> List[SeriesPoint]:
        return []


NOOP_METER = NoopMeter()
