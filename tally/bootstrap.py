"""Wiring a meter from configuration."""
from typing import Optional, Tuple
import logging

import structlog

from tally.config import Config, load_config
from tally.meter import Meter, set_meter
from tally.prom_exposer import PrometheusExposer

logger = logging.getLogger(__name__)


def json_formatter() -> logging.Formatter:
    """Formatter rendering stdlib log records as one JSON object per line."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def setup_logging(log_level: str, log_format: str):
    """Setup logging configuration."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler()
    if log_format == "json":
        handler.setFormatter(json_formatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))

    logging.basicConfig(level=level, handlers=[handler])


def build_meter(config: Config, install_global: bool = True) -> Tuple[Meter, Optional[PrometheusExposer]]:
    """
    Build a meter and its scrape endpoint from configuration.

    Args:
        config: validated root configuration
        install_global: make the meter the one returned by get_meter()

    Returns:
        The meter and the Prometheus exposer (None when disabled)
    """
    setup_logging(config.global_.log_level, config.global_.log_format)

    meter = Meter(config.global_.meter_name)
    meter.from_definitions(config.metrics)
    logger.info(f"Meter '{meter.name}' initialized with {len(config.metrics)} metrics")

    exposer = None
    if config.prometheus.enabled:
        exposer = PrometheusExposer(config.prometheus, meter)
    else:
        logger.info("Prometheus exposer disabled")

    if install_global:
        set_meter(meter)

    return meter, exposer


def build_meter_from_file(config_path: str, install_global: bool = True) -> Tuple[Meter, Optional[PrometheusExposer]]:
    """Load configuration from YAML and build the meter."""
    config = load_config(config_path)
    logger.info(f"Configuration loaded from: {config_path}")
    return build_meter(config, install_global=install_global)
