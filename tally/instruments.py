"""Bound instruments: per-label-set handles through which values are recorded."""
from typing import Dict, Optional, TYPE_CHECKING
import logging
import math
import threading
import time

from opentelemetry import baggage, trace
from opentelemetry.context import Context
from opentelemetry.trace import SpanContext, format_span_id, format_trace_id

from tally.config import ValueType
from tally.labels import LabelSet
from tally.series import Distribution, Exemplar, SeriesPoint

if TYPE_CHECKING:
    from tally.metric import Metric

logger = logging.getLogger(__name__)


class BoundInstrument:
    """Base class for instruments bound to one label set of a metric."""

    def __init__(self, metric: "Metric", label_set: LabelSet):
        self.metric = metric
        self.label_set = label_set
        self._lock = threading.Lock()

    def _prepare(self, value: float) -> Optional[float]:
        """Apply the metric's value type; None means drop the value."""
        if self.metric.options.disabled:
            logger.debug(f"Metric '{self.metric.name}' is disabled, dropping value")
            return None

        try:
            value = float(value)
        except (TypeError, ValueError):
            logger.error(f"Metric '{self.metric.name}' received non-numeric value {value!r}")
            return None

        if math.isnan(value):
            logger.warning(f"Dropping NaN value for {self.metric.name}{{{self.label_set.identifier}}}")
            return None

        if self.metric.options.value_type == ValueType.INT:
            if math.isinf(value):
                logger.warning(f"Dropping infinite value for INT metric '{self.metric.name}'")
                return None
            return float(math.trunc(value))

        return value

    def _labels(self) -> Dict[str, str]:
        labels = dict(self.metric.options.constant_labels)
        labels.update(self.label_set.labels)
        return labels

    def snapshot(self) -> SeriesPoint:
        raise NotImplementedError


class BoundCounter(BoundInstrument):
    """Counter handle: values are accumulated."""

    def __init__(self, metric: "Metric", label_set: LabelSet):
        super().__init__(metric, label_set)
        self._value = 0.0

    def add(self, value: float) -> None:
        """Adds the given value to the current value. Values cannot be negative
        on a monotonic counter."""
        value = self._prepare(value)
        if value is None:
            return

        if self.metric.monotonic and value < 0:
            logger.error(
                f"Monotonic counter '{self.metric.name}' cannot descend "
                f"({value} for {{{self.label_set.identifier}}})"
            )
            return

        with self._lock:
            self._value += value

    @property
    def value(self) -> float:
        with self._lock:
            return self._value

    def snapshot(self) -> SeriesPoint:
        return SeriesPoint(self.metric.name, "counter", self._labels(), self.value)


class BoundGauge(BoundInstrument):
    """Gauge handle: values are overwritten."""

    def __init__(self, metric: "Metric", label_set: LabelSet):
        super().__init__(metric, label_set)
        self._value: Optional[float] = None

    def set(self, value: float) -> None:
        """Sets the given value. Values can be negative."""
        value = self._prepare(value)
        if value is None:
            return

        with self._lock:
            if self.metric.monotonic and self._value is not None and value < self._value:
                logger.error(
                    f"Monotonic gauge '{self.metric.name}' cannot descend "
                    f"from {self._value} to {value} for {{{self.label_set.identifier}}}"
                )
                return
            self._value = value

    @property
    def value(self) -> float:
        """Current value; 0.0 until the first set."""
        with self._lock:
            return 0.0 if self._value is None else self._value

    def snapshot(self) -> SeriesPoint:
        return SeriesPoint(self.metric.name, "gauge", self._labels(), self.value)


def make_exemplar(
    value: float,
    dist_context: Optional[Context] = None,
    span_context: Optional[SpanContext] = None,
) -> Optional[Exemplar]:
    """Build an exemplar from correlation metadata, or None if there is none."""
    entries: Dict[str, str] = {}
    if dist_context is not None:
        entries = {k: str(v) for k, v in baggage.get_all(dist_context).items()}
        if span_context is None:
            span_context = trace.get_current_span(dist_context).get_span_context()

    if span_context is not None and not span_context.is_valid:
        span_context = None

    if span_context is None and not entries:
        return None

    return Exemplar(
        value=value,
        timestamp=time.time(),
        trace_id=format_trace_id(span_context.trace_id) if span_context else None,
        span_id=format_span_id(span_context.span_id) if span_context else None,
        baggage=entries,
    )


class BoundMeasure(BoundInstrument):
    """Measure handle: each value is an observation."""

    def __init__(self, metric: "Metric", label_set: LabelSet):
        super().__init__(metric, label_set)
        self._distribution = Distribution()

    def record(
        self,
        value: float,
        dist_context: Optional[Context] = None,
        span_context: Optional[SpanContext] = None,
    ) -> None:
        """Records the given value to this measure.

        Args:
            value: the observation
            dist_context: context carrying baggage entries and possibly a span
            span_context: span to correlate the observation with
        """
        value = self._prepare(value)
        if value is None:
            return

        if self.metric.absolute and value < 0:
            logger.error(
                f"Absolute measure '{self.metric.name}' cannot record negative "
                f"value {value} for {{{self.label_set.identifier}}}"
            )
            return

        exemplar = None
        if dist_context is not None or span_context is not None:
            exemplar = make_exemplar(value, dist_context, span_context)

        with self._lock:
            self._distribution = self._distribution.observe(value, exemplar)

    @property
    def distribution(self) -> Distribution:
        with self._lock:
            return self._distribution

    def snapshot(self) -> SeriesPoint:
        distribution = self.distribution
        return SeriesPoint(
            self.metric.name,
            "measure",
            self._labels(),
            float(distribution.count),
            distribution=distribution,
        )
