"""In-process metrics instrumentation: label sets, metrics and bound instruments."""

from .config import MetricDefinition, MetricOptions, ValueType, load_config
from .instruments import BoundCounter, BoundGauge, BoundMeasure
from .labels import EMPTY_LABEL_SET, LabelSet, canonicalize
from .meter import Meter, get_meter, set_meter
from .metric import CounterMetric, GaugeMetric, MeasureMetric, Metric
from .noop import NOOP_METER, NoopMeter
from .series import Distribution, Exemplar, SeriesPoint

__all__ = [
    "MetricDefinition",
    "MetricOptions",
    "ValueType",
    "load_config",
    "BoundCounter",
    "BoundGauge",
    "BoundMeasure",
    "EMPTY_LABEL_SET",
    "LabelSet",
    "canonicalize",
    "Meter",
    "get_meter",
    "set_meter",
    "CounterMetric",
    "GaugeMetric",
    "MeasureMetric",
    "Metric",
    "NOOP_METER",
    "NoopMeter",
    "Distribution",
    "Exemplar",
    "SeriesPoint",
]
