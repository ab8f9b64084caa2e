"""Process-wide store of labeled gauges shared by pollers and the HTTP exporter"""
import threading
import time
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from logging_config import get_logger
from .models import DEFAULT_DEFINITIONS, MetricDefinition, MetricValue, Sample
from .exporters.prometheus import PrometheusExporter


logger = get_logger(__name__)

LabelInput = Union[Mapping[str, str], Tuple[str, ...]]


class MetricsRegistry:
    """Synchronized mapping of (metric name, label values) to the latest value.

    Samples are overwritten in place and never removed, except through the
    explicit ``evict_stale`` policy. Every read and write happens under one
    lock, so a reader never observes a half-applied update.
    """

    def __init__(self, definitions: Optional[Iterable[MetricDefinition]] = None, clock=time.time):
        self._lock = threading.Lock()
        self._clock = clock
        self._definitions: Dict[str, MetricDefinition] = {}
        self._samples: Dict[str, Dict[Tuple[str, ...], Sample]] = {}
        for definition in (DEFAULT_DEFINITIONS if definitions is None else definitions):
            self.define(definition)

    def define(self, definition: MetricDefinition) -> None:
        """Register a metric family; redefining the same family is a no-op"""
        with self._lock:
            existing = self._definitions.get(definition.name)
            if existing is not None:
                if existing != definition:
                    raise ValueError(f"Metric {definition.name} already defined with different labels")
                return
            self._definitions[definition.name] = definition
            self._samples[definition.name] = {}

    def list_metrics(self) -> List[str]:
        """List all registered metric names"""
        with self._lock:
            return list(self._definitions.keys())

    def _key(self, name: str, labels: LabelInput) -> Tuple[str, ...]:
        definition = self._definitions.get(name)
        if definition is None:
            raise KeyError(f"Unknown metric: {name}")

        if isinstance(labels, Mapping):
            if set(labels) != set(definition.label_names):
                raise ValueError(
                    f"Metric {name} expects labels {list(definition.label_names)}, got {sorted(labels)}"
                )
            return tuple(str(labels[label]) for label in definition.label_names)

        if len(labels) != len(definition.label_names):
            raise ValueError(
                f"Metric {name} expects {len(definition.label_names)} label values, got {len(labels)}"
            )
        return tuple(str(value) for value in labels)

    def set(self, name: str, labels: LabelInput, value: float) -> None:
        """Overwrite the value of one label combination"""
        with self._lock:
            key = self._key(name, labels)
            self._samples[name][key] = Sample(value=float(value), updated_at=self._clock())

    def set_many(self, updates: Iterable[Tuple[str, LabelInput, float]]) -> int:
        """Apply several updates under a single lock acquisition"""
        count = 0
        with self._lock:
            now = self._clock()
            for name, labels, value in updates:
                key = self._key(name, labels)
                self._samples[name][key] = Sample(value=float(value), updated_at=now)
                count += 1
        return count

    def inc(self, name: str, labels: LabelInput, amount: float = 1.0) -> None:
        """Increase a counter, starting from zero"""
        with self._lock:
            key = self._key(name, labels)
            current = self._samples[name].get(key)
            base = current.value if current else 0.0
            self._samples[name][key] = Sample(value=base + amount, updated_at=self._clock())

    def get(self, name: str, labels: LabelInput) -> Optional[float]:
        """Current value of one label combination, or None if never observed"""
        with self._lock:
            sample = self._samples[name].get(self._key(name, labels)) if name in self._samples else None
            return sample.value if sample else None

    def collect(self) -> List[MetricValue]:
        """Snapshot of every observed sample, grouped by metric in definition order"""
        metrics = []
        with self._lock:
            for name, definition in self._definitions.items():
                for key, sample in self._samples[name].items():
                    metrics.append(MetricValue(
                        name=name,
                        value=sample.value,
                        labels=dict(zip(definition.label_names, key)),
                        help_text=definition.help_text,
                        metric_type=definition.metric_type,
                        timestamp=sample.updated_at,
                    ))
        return metrics

    def render(self) -> str:
        """Render the current state in the Prometheus text format"""
        return PrometheusExporter().export_metrics(self.collect())

    def evict_stale(self, max_age: float, exclude: Iterable[str] = ()) -> int:
        """Drop samples not updated within max_age seconds, skipping excluded families"""
        if max_age <= 0:
            return 0

        cutoff = self._clock() - max_age
        removed = 0
        skip = set(exclude)
        with self._lock:
            for name, samples in self._samples.items():
                if name in skip:
                    continue
                stale = [key for key, sample in samples.items() if sample.updated_at < cutoff]
                for key in stale:
                    del samples[key]
                removed += len(stale)

        if removed:
            logger.info("Evicted stale samples", removed=removed, max_age_seconds=max_age, event_type="metric_eviction")
        return removed

    def sample_count(self) -> int:
        with self._lock:
            return sum(len(samples) for samples in self._samples.values())
