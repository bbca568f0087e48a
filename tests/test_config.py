"""Tests for YAML configuration loading and meter bootstrap."""
from pathlib import Path
import json
import logging
import sys

import pytest
import yaml

from tally.bootstrap import build_meter, build_meter_from_file, json_formatter, setup_logging
from tally.config import Config, MetricOptions, ValueType, load_config
from tally.meter import get_meter, set_meter

BASELINE = {
    "global": {"log_level": "DEBUG", "meter_name": "checkout"},
    "prometheus": {"enabled": False, "prefix": "app_"},
    "metrics": [
        {"name": "requests", "kind": "counter", "label_keys": ["method", "status"]},
        {"name": "queue_depth", "kind": "gauge", "value_type": "int"},
        {"name": "latency", "kind": "measure", "unit": "s", "description": "Request latency"},
    ],
}


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("PROMETHEUS_PORT", raising=False)
    path = tmp_path / "tally.yaml"
    path.write_text(yaml.safe_dump(BASELINE))
    return str(path)


@pytest.fixture(autouse=True)
def reset_global_meter():
    yield
    set_meter(None)


def test_load_config(config_file):
    config = load_config(config_file)

    assert isinstance(config, Config)
    assert config.global_.log_level == "DEBUG"
    assert config.prometheus.prefix == "app_"
    assert [m.name for m in config.metrics] == ["requests", "queue_depth", "latency"]
    assert config.metrics[1].value_type == ValueType.INT


def test_env_overrides(config_file, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.setenv("PROMETHEUS_PORT", "9100")

    config = load_config(config_file)
    assert config.global_.log_level == "WARNING"
    assert config.prometheus.port == 9100


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "missing.yaml"))


def test_duplicate_metric_names(tmp_path):
    path = tmp_path / "dup.yaml"
    path.write_text(yaml.safe_dump({
        "metrics": [
            {"name": "requests", "kind": "counter"},
            {"name": "requests", "kind": "gauge"},
        ]
    }))
    with pytest.raises(ValueError):
        load_config(str(path))


def test_unknown_kind(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"metrics": [{"name": "x", "kind": "histogram"}]}))
    with pytest.raises(ValueError):
        load_config(str(path))


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    config = load_config(str(path))
    assert config.metrics == []
    assert config.prometheus.enabled is False


def test_metric_options_defaults():
    options = MetricOptions()
    assert options.description == ""
    assert options.unit == "1"
    assert options.disabled is False
    assert options.monotonic is None
    assert options.value_type == ValueType.DOUBLE


def test_invalid_label_keys():
    with pytest.raises(ValueError):
        MetricOptions(label_keys=["ok", "not-ok"])
    with pytest.raises(ValueError):
        MetricOptions(label_keys=["a", "a"])


def test_build_meter_from_file(config_file):
    meter, exposer = build_meter_from_file(config_file)

    assert exposer is None
    assert meter.name == "checkout"
    assert get_meter() is meter
    assert meter.get_metric("requests").options.label_keys == ("method", "status")


def test_build_meter_without_global(config_file):
    meter, _ = build_meter(load_config(config_file), install_global=False)
    assert get_meter() is not meter


def test_example_config_loads(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("PROMETHEUS_PORT", raising=False)
    path = Path(__file__).parent.parent / "configs" / "example.yaml"

    config = load_config(str(path))
    assert config.prometheus.enabled is True
    assert config.metrics[0].constant_labels == {"service": "checkout"}


def test_json_log_lines_are_valid_json():
    formatter = json_formatter()
    record = logging.LogRecord("tally.metric", logging.ERROR, __file__, 1, 'value "q"', None, None)

    payload = json.loads(formatter.format(record))
    assert payload["event"] == 'value "q"'
    assert payload["level"] == "error"
    assert payload["logger"] == "tally.metric"


def test_json_log_lines_include_tracebacks():
    formatter = json_formatter()
    try:
        raise RuntimeError('bad "callback"')
    except RuntimeError:
        record = logging.LogRecord(
            "tally.metric", logging.ERROR, __file__, 1, "Callback failed", None, sys.exc_info()
        )

    line = formatter.format(record)
    assert "\n" not in line
    payload = json.loads(line)
    assert 'RuntimeError: bad "callback"' in payload["exception"]


def test_constant_labels_are_read_only(tmp_path):
    path = tmp_path / "tally.yaml"
    path.write_text(yaml.safe_dump({
        "metrics": [{"name": "requests", "kind": "counter", "constant_labels": {"service": "api"}}]
    }))
    definition = load_config(str(path)).metrics[0]

    with pytest.raises(TypeError):
        definition.constant_labels["service"] = "web"
    assert isinstance(definition.label_keys, tuple)


def test_meter_name_defaults_to_tally(tmp_path):
    path = tmp_path / "tally.yaml"
    path.write_text(yaml.safe_dump({"metrics": []}))

    config = load_config(str(path))
    assert config.global_.meter_name == "tally"

    meter, _ = build_meter(config, install_global=False)
    assert meter.name == "tally"


def test_setup_logging_leaves_other_loggers_alone(monkeypatch):
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: None)
    before = logging.getLogger("urllib3").level

    setup_logging("DEBUG", "text")
    assert logging.getLogger("urllib3").level == before
