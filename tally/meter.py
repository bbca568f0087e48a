"""Meter: registry and factory of named metrics."""
from typing import Dict, Iterable, List, Mapping, Optional, Union
import logging
import re
import threading

from tally.config import MetricDefinition, MetricOptions
from tally.labels import LabelSet, canonicalize
from tally.metric import METRIC_KINDS, CounterMetric, GaugeMetric, MeasureMetric, Metric
from tally.noop import NOOP_METER, NoopCounterMetric, NoopGaugeMetric, NoopMeasureMetric, NoopMeter
from tally.series import SeriesPoint

logger = logging.getLogger(__name__)

METRIC_NAME_PATTERN = re.compile(r'^[a-zA-Z][a-zA-Z0-9_.\-]*$')

_NOOP_KINDS = {
    "counter": NoopCounterMetric,
    "gauge": NoopGaugeMetric,
    "measure": NoopMeasureMetric,
}


class Meter:
    """Creates metrics and collects their timeseries."""

    def __init__(self, name: str = "tally"):
        self.name = name
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.Lock()

    def labels(self, labels: Optional[Mapping[str, str]] = None) -> LabelSet:
        """Canonicalize labels into a LabelSet."""
        return canonicalize(labels)

    def _create(self, kind: str, name: str, options: Optional[MetricOptions]):
        if not isinstance(name, str) or not METRIC_NAME_PATTERN.match(name):
            logger.warning(f"Invalid metric name {name!r}, returning a no-op {kind}")
            return _NOOP_KINDS[kind](str(name), options)

        metric = METRIC_KINDS[kind](name, options)
        with self._lock:
            if name in self._metrics:
                raise ValueError(f"A metric with the name '{name}' has already been registered")
            self._metrics[name] = metric

        logger.info(f"Registered {kind} metric: {name}")
        return metric

    def create_counter(self, name: str, options: Optional[MetricOptions] = None) -> Union[CounterMetric, NoopCounterMetric]:
        """Create and register a counter metric."""
        return self._create("counter", name, options)

    def create_gauge(self, name: str, options: Optional[MetricOptions] = None) -> Union[GaugeMetric, NoopGaugeMetric]:
        """Create and register a gauge metric."""
        return self._create("gauge", name, options)

    def create_measure(self, name: str, options: Optional[MetricOptions] = None) -> Union[MeasureMetric, NoopMeasureMetric]:
        """Create and register a measure metric."""
        return self._create("measure", name, options)

    def from_definitions(self, definitions: Iterable[MetricDefinition]) -> List[Metric]:
        """Create metrics from declarative definitions."""
        created = []
        for definition in definitions:
            options = MetricOptions(**definition.model_dump(exclude={"name", "kind"}))
            created.append(self._create(definition.kind, definition.name, options))
        return created

    def get_metric(self, name: str) -> Optional[Metric]:
        with self._lock:
            return self._metrics.get(name)

    def metrics(self) -> List[Metric]:
        """Registered metrics, in registration order."""
        with self._lock:
            return list(self._metrics.values())

    def remove_metric(self, name: str) -> None:
        """Unregister a metric; no error if absent."""
        with self._lock:
            self._metrics.pop(name, None)

    def collect(self) -> List[SeriesPoint]:
        """Collect every timeseries of every registered metric."""
        points: List[SeriesPoint] = []
        for metric in self.metrics():
            points.extend(metric.collect())
        return points


# Global meter instance (set by bootstrap.build_meter)
_global_meter: Optional[Union[Meter, NoopMeter]] = None


def set_meter(meter: Optional[Union[Meter, NoopMeter]]):
    """Set the global meter."""
    global _global_meter
    _global_meter = meter


def get_meter() -> Union[Meter, NoopMeter]:
    """Get the global meter, a no-op meter if none was set."""
    if _global_meter is None:
        return NOOP_METER
    return _global_meter
