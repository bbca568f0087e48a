"""Configuration models using Pydantic for validation."""
from enum import Enum
from typing import Dict, List, Optional, Literal, Tuple
from pydantic import BaseModel, Field, field_validator
import os

from tally.labels import validate_label_names


class ValueType(str, Enum):
    """The type of value. It describes how the data is reported."""
    INT = "int"
    DOUBLE = "double"


class FrozenLabels(dict):
    """Read-only label mapping."""

    def _readonly(self, *args, **kwargs):
        raise TypeError("FrozenLabels is read-only")

    __setitem__ = __delitem__ = __ior__ = _readonly
    clear = pop = popitem = setdefault = update = _readonly

    def __reduce__(self):
        return (FrozenLabels, (dict(self),))

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


class MetricOptions(BaseModel):
    """Options needed for metric creation."""
    component: Optional[str] = None
    description: str = ""
    unit: str = "1"
    label_keys: Tuple[str, ...] = ()
    constant_labels: Dict[str, str] = Field(default_factory=FrozenLabels)
    # Verbose metric that is disabled by default
    disabled: bool = False
    # None means the metric kind's default
    monotonic: Optional[bool] = None
    absolute: Optional[bool] = None
    value_type: ValueType = ValueType.DOUBLE

    class Config:
        frozen = True

    @field_validator('label_keys')
    @classmethod
    def validate_label_keys(cls, v):
        """Label keys must be Prometheus-safe and unique."""
        if not validate_label_names({k: "" for k in v}):
            raise ValueError(f"Invalid label keys: {list(v)}")
        if len(v) != len(set(v)):
            raise ValueError("Label keys must be unique")
        return v

    @field_validator('constant_labels')
    @classmethod
    def validate_constant_labels(cls, v):
        """Constant label names must be Prometheus-safe."""
        if not validate_label_names(v):
            raise ValueError(f"Invalid constant label names: {list(v.keys())}")
        return FrozenLabels(v)


class MetricDefinition(MetricOptions):
    """Declarative definition of a single metric."""
    name: str
    kind: Literal["counter", "gauge", "measure"]


class PrometheusConfig(BaseModel):
    """Prometheus scrape endpoint configuration."""
    enabled: bool = False
    port: int = 8000
    prefix: str = ""
    bind_address: str = "0.0.0.0"


class GlobalConfig(BaseModel):
    """Global configuration settings."""
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"
    meter_name: str = "tally"


class Config(BaseModel):
    """Root configuration model."""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    prometheus: PrometheusConfig = Field(default_factory=PrometheusConfig)
    metrics: List[MetricDefinition] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @field_validator('metrics')
    @classmethod
    def validate_metrics(cls, v):
        """Validate metric definitions."""
        names = [m.name for m in v]
        if len(names) != len(set(names)):
            raise ValueError("Metric names must be unique")

        return v


def load_config(config_path: str) -> Config:
    """Load and validate configuration from YAML file."""
    import yaml

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        raw_config = yaml.safe_load(f) or {}

    # Apply environment variable overrides
    if env_log_level := os.getenv('LOG_LEVEL'):
        if 'global' not in raw_config:
            raw_config['global'] = {}
        raw_config['global']['log_level'] = env_log_level

    if env_port := os.getenv('PROMETHEUS_PORT'):
        if 'prometheus' not in raw_config:
            raw_config['prometheus'] = {}
        raw_config['prometheus']['port'] = env_port

    try:
        config = Config(**raw_config)
        return config
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")
