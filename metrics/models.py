"""Metric data models"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from enum import Enum


class MetricType(Enum):
    """Prometheus metric types"""
    COUNTER = "counter"
    GAUGE = "gauge"


def escape_label_value(value: str) -> str:
    """Escape a label value for the text exposition format"""
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def format_sample_value(value: float) -> str:
    """Render integral floats without a trailing .0"""
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "+Inf" if value > 0 else "-Inf"
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class MetricDefinition:
    """Name, help text and fixed label names of a metric family"""
    name: str
    help_text: str
    label_names: Tuple[str, ...]
    metric_type: MetricType = MetricType.GAUGE


@dataclass
class MetricValue:
    """Represents a single metric value"""
    name: str
    value: float
    labels: Dict[str, str]
    help_text: str
    metric_type: MetricType = MetricType.GAUGE
    timestamp: Optional[float] = None

    def __post_init__(self):
        if self.labels is None:
            self.labels = {}

    def to_prometheus_line(self) -> str:
        """Convert to Prometheus exposition format"""
        labels_str = ""
        if self.labels:
            label_pairs = [f'{k}="{escape_label_value(v)}"' for k, v in self.labels.items()]
            labels_str = "{" + ",".join(label_pairs) + "}"

        return f"{self.name}{labels_str} {format_sample_value(self.value)}"


@dataclass
class Sample:
    """Stored value of one label combination"""
    value: float
    updated_at: float = field(default=0.0)


# Label names shared by the storage gauges
TABLE_LABELS = ("cloud_name", "database", "table", "origin_prometheus")

# Label names shared by the session gauges
SESSION_LABELS = ("cloud_name", "user", "db", "origin_prometheus")

COLLECTOR_LABELS = ("cloud_name", "collector", "origin_prometheus")

UNKNOWN_USER = "UNKNOWN_USER"
UNKNOWN_DB = "UNKNOWN_DB"

TABLE_SIZE = MetricDefinition(
    name="mysql_table_size_bytes",
    help_text="Size of tables in MySQL, in bytes.",
    label_names=TABLE_LABELS,
)
INDEX_SIZE = MetricDefinition(
    name="mysql_index_size_bytes",
    help_text="Size of indexes in MySQL, in bytes.",
    label_names=TABLE_LABELS,
)
TABLE_ROWS = MetricDefinition(
    name="mysql_table_rows",
    help_text="Number of rows in MySQL tables.",
    label_names=TABLE_LABELS,
)
PROCESSLIST_COUNT = MetricDefinition(
    name="mysql_processlist_count",
    help_text="Number of processes in the processlist, grouped by user and database.",
    label_names=SESSION_LABELS,
)
CONN_COUNT = MetricDefinition(
    name="mysql_conn_count",
    help_text="Number of connections grouped by user and database.",
    label_names=SESSION_LABELS,
)
LAST_SUCCESS = MetricDefinition(
    name="mysql_exporter_last_success_timestamp_seconds",
    help_text="Unix time of the last successful collection cycle.",
    label_names=COLLECTOR_LABELS,
)
COLLECTION_ERRORS = MetricDefinition(
    name="mysql_exporter_collection_errors_total",
    help_text="Number of failed collection cycles since start.",
    label_names=COLLECTOR_LABELS,
    metric_type=MetricType.COUNTER,
)

DEFAULT_DEFINITIONS = (
    TABLE_SIZE,
    INDEX_SIZE,
    TABLE_ROWS,
    PROCESSLIST_COUNT,
    CONN_COUNT,
    LAST_SUCCESS,
    COLLECTION_ERRORS,
)
