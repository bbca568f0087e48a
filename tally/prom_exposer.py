"""Prometheus scrape endpoint exposing a meter's timeseries via prometheus_client."""
from typing import Iterable, List, Optional, Set
import logging
import re
import time

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server
from prometheus_client.core import (
    CounterMetricFamily, GaugeMetricFamily, Metric as PromMetric, SummaryMetricFamily
)
from prometheus_client.registry import Collector

from tally.config import PrometheusConfig
from tally.meter import Meter
from tally.metric import Metric
from tally.series import SeriesPoint

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r'[^a-zA-Z0-9_:]')


def prometheus_name(prefix: str, name: str) -> str:
    """Map a metric name onto the Prometheus name charset."""
    return _INVALID_NAME_CHARS.sub("_", f"{prefix}{name}")


class SelfMetrics:
    """Self-monitoring metrics for the scrape endpoint."""

    def __init__(self, registry=None, prefix=""):
        if registry is None:
            registry = CollectorRegistry()

        self.scrape_duration_seconds = Histogram(
            f"{prefix}tally_scrape_duration_seconds",
            "Duration of each meter collection in seconds",
            buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
            registry=registry
        )

        self.collect_errors_total = Counter(
            f"{prefix}tally_collect_errors_total",
            "Total number of failed meter collections",
            registry=registry
        )

    def record_scrape_duration(self, duration: float):
        """Record scrape duration."""
        self.scrape_duration_seconds.observe(duration)

    def record_collect_error(self):
        """Record collection error."""
        self.collect_errors_total.inc()


class MeterCollector(Collector):
    """Custom collector that snapshots a meter on every scrape."""

    def __init__(self, meter: Meter, prefix: str = "", self_metrics: Optional[SelfMetrics] = None):
        self.meter = meter
        self.prefix = prefix
        self.self_metrics = self_metrics

        # Sample names owned by the self-monitoring metrics
        self.reserved_names: Set[str] = set()
        if self_metrics:
            for instrument in (self_metrics.scrape_duration_seconds, self_metrics.collect_errors_total):
                for family in instrument.collect():
                    self.reserved_names.add(family.name)
                    self.reserved_names.update(s.name for s in family.samples)

    def collect(self) -> Iterable[PromMetric]:
        start = time.time()
        families: List[PromMetric] = []
        claimed = set(self.reserved_names)

        try:
            for metric in self.meter.metrics():
                # Claimed in registration order, whether or not the metric has data yet
                names = self._sample_names(metric)
                if names & claimed:
                    logger.error(
                        f"Metric '{metric.name}' maps to Prometheus name "
                        f"'{prometheus_name(self.prefix, metric.name)}' which is already exposed, skipping"
                    )
                    continue
                claimed |= names

                points = metric.collect()
                if points:
                    families.append(self._family(metric, points))
        except Exception as e:
            logger.error(f"Failed to collect meter '{self.meter.name}': {e}", exc_info=True)
            if self.self_metrics:
                self.self_metrics.record_collect_error()
            return []

        if self.self_metrics:
            self.self_metrics.record_scrape_duration(time.time() - start)

        return families

    @staticmethod
    def _family_type(metric: Metric) -> str:
        if metric.kind == "counter" and metric.monotonic:
            return "counter"
        if metric.kind == "measure":
            return "summary"
        # Gauges and non-monotonic counters can go down
        return "gauge"

    def _sample_names(self, metric: Metric) -> Set[str]:
        """Names the metric's family and samples occupy in the exposition."""
        name = prometheus_name(self.prefix, metric.name)
        family_type = self._family_type(metric)

        if family_type == "counter":
            if name.endswith("_total"):
                name = name[:-len("_total")]
            return {name, f"{name}_total"}
        if family_type == "summary":
            return {name, f"{name}_count", f"{name}_sum"}
        return {name}

    def _family(self, metric: Metric, points: List[SeriesPoint]) -> PromMetric:
        """Build the metric family for one metric's points."""
        name = prometheus_name(self.prefix, metric.name)
        documentation = metric.options.description or f"{metric.kind} metric {metric.name}"
        family_type = self._family_type(metric)

        # Every sample of a family carries the same label names
        label_names = sorted({k for p in points for k in p.labels})

        def label_values(point: SeriesPoint) -> List[str]:
            return [point.labels.get(k, "") for k in label_names]

        if family_type == "counter":
            family = CounterMetricFamily(name, documentation, labels=label_names)
            for point in points:
                family.add_metric(label_values(point), point.value)

        elif family_type == "summary":
            family = SummaryMetricFamily(name, documentation, labels=label_names)
            for point in points:
                family.add_metric(
                    label_values(point),
                    count_value=point.distribution.count,
                    sum_value=point.distribution.sum
                )

        else:
            family = GaugeMetricFamily(name, documentation, labels=label_names)
            for point in points:
                family.add_metric(label_values(point), point.value)

        return family


class PrometheusExposer:
    """Manages the Prometheus registry and HTTP server for a meter."""

    def __init__(self, config: PrometheusConfig, meter: Meter):
        self.config = config
        self.meter = meter
        # Use a custom registry to avoid exporting default Python/process metrics
        self.registry = CollectorRegistry()

        self.self_metrics = SelfMetrics(registry=self.registry, prefix=config.prefix)
        self.collector = MeterCollector(meter, prefix=config.prefix, self_metrics=self.self_metrics)
        self.registry.register(self.collector)

        self.server = None
        self.server_thread = None

        # Start HTTP server
        if config.enabled:
            self._start_server()

    def _start_server(self):
        """Start Prometheus HTTP server."""
        try:
            self.server, self.server_thread = start_http_server(
                self.config.port,
                addr=self.config.bind_address,
                registry=self.registry
            )
            logger.info(
                f"Prometheus exposer listening on "
                f"{self.config.bind_address}:{self.config.port}/metrics"
            )
        except Exception as e:
            logger.error(f"Failed to start Prometheus HTTP server: {e}")
            raise

    def shutdown(self):
        """Stop the HTTP server, if running."""
        if self.server is None:
            return

        self.server.shutdown()
        self.server.server_close()
        self.server_thread.join()
        self.server = None
        self.server_thread = None
        logger.info("Prometheus exposer shutdown complete")
