"""Base collector class and interfaces"""
import asyncio
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import List, Sequence, Tuple

from config import TargetConfig
from database.connection import DatabaseConnection
from logging_config import get_logger, log_error, log_metrics_collection
from metrics.models import COLLECTION_ERRORS, LAST_SUCCESS
from metrics.registry import MetricsRegistry


# (metric name, label values in definition order, value)
Update = Tuple[str, Tuple[str, ...], float]


class BaseCollector(ABC):
    """Base class for the per-target query collectors.

    A collector owns one fixed query. ``collect`` runs it and writes the
    resulting gauge updates into the registry; ``run_cycle`` wraps that with
    logging and the health samples and never raises.
    """

    #: statement executed every cycle
    query: str = ""

    def __init__(self, target: TargetConfig, connection: DatabaseConnection, registry: MetricsRegistry,
                 interval: float, name: str = "", help_text: str = ""):
        self.target = target
        self.connection = connection
        self.registry = registry
        self.interval = interval
        self._name = name
        self._help_text = help_text
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{target.name}_{name}")
        self.logger = get_logger(__name__).bind(cloud_name=target.name, collector=name)

    @property
    def name(self) -> str:
        """Collector name for identification"""
        return self._name

    @property
    def help_text(self) -> str:
        """Help text describing what this collector does"""
        return self._help_text or f"{self.name} metrics collector"

    @abstractmethod
    def build_updates(self, rows: Sequence[tuple]) -> List[Update]:
        """Translate result rows into gauge updates"""

    def collect(self) -> int:
        """Run the query once and apply its updates; returns the number of updates"""
        rows = self.connection.query(self.query)
        updates = self.build_updates(rows)
        return self.registry.set_many(updates)

    def run_cycle(self) -> bool:
        """One collection cycle; failures are logged and leave previous values in place"""
        start_time = time.time()
        try:
            count = self.collect()
        except Exception as e:
            log_error(self.logger, e, {"component": "collector", "query": self.query.split()[0]})
            self.registry.inc(COLLECTION_ERRORS.name, self.health_labels())
            return False

        finished = time.time()
        self.registry.set(LAST_SUCCESS.name, self.health_labels(), finished)
        log_metrics_collection(self.logger, count, finished - start_time)
        return True

    async def run_cycle_async(self) -> bool:
        """Async version of run_cycle; the blocking query runs on the collector's thread"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.run_cycle)

    def health_labels(self) -> Tuple[str, ...]:
        return (self.target.name, self.name, self.target.origin_prometheus)

    def table_labels(self, database: str, table: str) -> Tuple[str, ...]:
        """Labels for the storage gauges"""
        return (self.target.name, database, table, self.target.origin_prometheus)

    def session_labels(self, user: str, db: str) -> Tuple[str, ...]:
        """Labels for the session gauges"""
        return (self.target.name, user, db, self.target.origin_prometheus)

    def cleanup(self):
        """Cleanup resources"""
        self._executor.shutdown(wait=False)


def text_or_default(value, default: str) -> str:
    """Column value as text, or the sentinel when NULL"""
    if value is None:
        return default
    if isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8', errors='replace')
    return str(value)
