"""Metric kinds: factories of bound instruments keyed by label set."""
from abc import ABC, abstractmethod
from typing import Callable, Dict, Generic, List, Optional, TypeVar
import logging
import threading

from opentelemetry.context import Context
from opentelemetry.trace import SpanContext

from tally.config import MetricOptions
from tally.instruments import BoundCounter, BoundGauge, BoundInstrument, BoundMeasure
from tally.labels import EMPTY_LABEL_SET, LabelSet
from tally.series import SeriesPoint

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BoundInstrument)


class Metric(ABC, Generic[T]):
    """Base class for the different metric kinds.

    Holds one bound instrument per label set. It is recommended to keep a
    reference to the instrument instead of calling bind() for every operation.
    """

    kind: str = ""

    def __init__(self, name: str, options: Optional[MetricOptions] = None):
        self.name = name
        self.options = options or MetricOptions()
        self._instruments: Dict[LabelSet, T] = {}
        self._callback: Optional[Callable[[], None]] = None
        self._lock = threading.Lock()

    @abstractmethod
    def _make_instrument(self, label_set: LabelSet) -> T:
        """Create the kind-specific instrument."""
        pass

    @property
    def monotonic(self) -> bool:
        return bool(self.options.monotonic)

    @property
    def absolute(self) -> bool:
        return bool(self.options.absolute)

    @property
    def series_count(self) -> int:
        with self._lock:
            return len(self._instruments)

    def _check_label_set(self, label_set: LabelSet):
        if not isinstance(label_set, LabelSet):
            raise TypeError(
                f"Metric '{self.name}' expects a LabelSet, got {type(label_set).__name__}"
            )

        keys = set(label_set.keys())
        if self.options.label_keys:
            unknown = keys - set(self.options.label_keys)
            if unknown:
                raise ValueError(
                    f"Metric '{self.name}' does not declare label keys {sorted(unknown)}"
                )

        clashing = keys & set(self.options.constant_labels)
        if clashing:
            raise ValueError(
                f"Metric '{self.name}' cannot rebind constant labels {sorted(clashing)}"
            )

    def bind(self, label_set: LabelSet) -> T:
        """
        Return the instrument associated with a label set, creating it on first use.

        Args:
            label_set: the canonicalized LabelSet used to associate with this metric instrument
        """
        self._check_label_set(label_set)

        with self._lock:
            instrument = self._instruments.get(label_set)
            if instrument is None:
                instrument = self._make_instrument(label_set)
                self._instruments[label_set] = instrument
                logger.debug(f"Bound {self.kind} '{self.name}' to {{{label_set.identifier}}}")
            return instrument

    def get_default_bound(self) -> T:
        """Return the instrument for the timeseries with all labels not set."""
        return self.bind(EMPTY_LABEL_SET)

    def unbind(self, label_set: LabelSet) -> None:
        """Remove the instrument from the metric, if it is present."""
        with self._lock:
            if self._instruments.pop(label_set, None) is not None:
                logger.debug(f"Unbound {self.kind} '{self.name}' from {{{label_set.identifier}}}")

    def clear(self) -> None:
        """Clear all timeseries from the metric."""
        with self._lock:
            count = len(self._instruments)
            self._instruments.clear()
        logger.debug(f"Cleared {count} series from {self.kind} '{self.name}'")

    def set_callback(self, fn: Optional[Callable[[], None]]) -> None:
        """Register a zero-argument callback run at the start of collect()."""
        if fn is not None and not callable(fn):
            raise TypeError(f"Callback for metric '{self.name}' must be callable")
        self._callback = fn

    def collect(self) -> List[SeriesPoint]:
        """Run the callback, then snapshot every bound instrument."""
        if self.options.disabled:
            return []

        callback = self._callback
        if callback is not None:
            try:
                callback()
            except Exception as e:
                logger.error(f"Callback for metric '{self.name}' failed: {e}", exc_info=True)

        with self._lock:
            instruments = list(self._instruments.values())

        return [instrument.snapshot() for instrument in instruments]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class CounterMetric(Metric[BoundCounter]):
    """Counter metric: monotonic by default."""

    kind = "counter"

    def __init__(self, name: str, options: Optional[MetricOptions] = None):
        options = options or MetricOptions()
        if options.monotonic is None:
            options = options.model_copy(update={"monotonic": True})
        super().__init__(name, options)

    def _make_instrument(self, label_set: LabelSet) -> BoundCounter:
        return BoundCounter(self, label_set)

    def add(self, value: float, label_set: LabelSet) -> None:
        """Add the given value to the timeseries of label_set."""
        self.bind(label_set).add(value)


class GaugeMetric(Metric[BoundGauge]):
    """Gauge metric: non-monotonic by default."""

    kind = "gauge"

    def __init__(self, name: str, options: Optional[MetricOptions] = None):
        options = options or MetricOptions()
        if options.monotonic is None:
            options = options.model_copy(update={"monotonic": False})
        super().__init__(name, options)

    def _make_instrument(self, label_set: LabelSet) -> BoundGauge:
        return BoundGauge(self, label_set)

    def set(self, value: float, label_set: LabelSet) -> None:
        """Set the value of the timeseries of label_set."""
        self.bind(label_set).set(value)


class MeasureMetric(Metric[BoundMeasure]):
    """Measure metric: absolute (non-negative) by default."""

    kind = "measure"

    def __init__(self, name: str, options: Optional[MetricOptions] = None):
        options = options or MetricOptions()
        if options.absolute is None:
            options = options.model_copy(update={"absolute": True})
        super().__init__(name, options)

    def _make_instrument(self, label_set: LabelSet) -> BoundMeasure:
        return BoundMeasure(self, label_set)

    def record(
        self,
        value: float,
        label_set: LabelSet,
        dist_context: Optional[Context] = None,
        span_context: Optional[SpanContext] = None,
    ) -> None:
        """Record an observation for the timeseries of label_set."""
        self.bind(label_set).record(value, dist_context, span_context)


METRIC_KINDS = {
    "counter": CounterMetric,
    "gauge": GaugeMetric,
    "measure": MeasureMetric,
}
