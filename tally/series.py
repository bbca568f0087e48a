"""Data structures for collected metric series."""
from dataclasses import dataclass, field
from typing import Dict, Optional

from tally.labels import label_key


@dataclass(frozen=True)
class Exemplar:
    """Latest correlated observation of a measure."""
    value: float
    timestamp: float
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    baggage: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Distribution:
    """Count/sum/min/max summary of measure observations."""
    count: int = 0
    sum: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    exemplar: Optional[Exemplar] = None

    def observe(self, value: float, exemplar: Optional[Exemplar] = None) -> "Distribution":
        """Return a new distribution that includes value."""
        return Distribution(
            count=self.count + 1,
            sum=self.sum + value,
            min=value if self.min is None else min(self.min, value),
            max=value if self.max is None else max(self.max, value),
            exemplar=exemplar or self.exemplar,
        )


@dataclass
class SeriesPoint:
    """A single collected metric data point with labels."""
    name: str
    kind: str
    labels: Dict[str, str]
    value: float
    distribution: Optional[Distribution] = None

    def label_key(self) -> str:
        """Generate a stable key from sorted labels."""
        return label_key(self.labels)
