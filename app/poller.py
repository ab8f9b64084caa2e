"""Per-target polling loops"""
import asyncio
from typing import Any, Callable, List, Optional

from collectors import BaseCollector, build_collectors
from config import Config, TargetConfig
from database.connection import DatabaseConnection, open_connection
from logging_config import get_logger, log_error
from metrics.models import COLLECTION_ERRORS, LAST_SUCCESS
from metrics.registry import MetricsRegistry


logger = get_logger(__name__)

# Health samples survive eviction so a broken collector stays visible
HEALTH_METRICS = (LAST_SUCCESS.name, COLLECTION_ERRORS.name)


class TargetPoller:
    """Owns one target's connection and runs an independent loop per collector"""

    def __init__(self, target: TargetConfig, connection: DatabaseConnection, registry: MetricsRegistry, config: Config):
        self.target = target
        self.connection = connection
        self.registry = registry
        self.config = config
        self.collectors: List[BaseCollector] = build_collectors(target, connection, registry, config)
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Spawn one task per collector on the running event loop"""
        if self._tasks:
            return

        for collector in self.collectors:
            task = asyncio.create_task(
                self._collection_loop(collector),
                name=f"{self.target.name}:{collector.name}"
            )
            self._tasks.append(task)

        logger.info(
            "Target poller started",
            cloud_name=self.target.name,
            origin=self.target.origin_prometheus,
            collectors={c.name: c.interval for c in self.collectors},
            event_type="poller_start"
        )

    async def _collection_loop(self, collector: BaseCollector) -> None:
        """Collect, then sleep for the collector's interval, until cancelled"""
        while True:
            try:
                await collector.run_cycle_async()
                if self.config.metric_ttl:
                    self.registry.evict_stale(self.config.metric_ttl, exclude=HEALTH_METRICS)
            except asyncio.CancelledError:
                break
            except Exception as e:
                log_error(logger, e, {
                    "component": "collection_loop",
                    "cloud_name": self.target.name,
                    "collector": collector.name,
                })

            try:
                await asyncio.sleep(collector.interval)
            except asyncio.CancelledError:
                break

    async def stop(self) -> None:
        """Cancel the loops, then release the connection"""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        for collector in self.collectors:
            collector.cleanup()
        # close() waits for an in-flight query to release the connection lock
        await asyncio.get_running_loop().run_in_executor(None, self.connection.close)
        logger.info("Target poller stopped", cloud_name=self.target.name, event_type="poller_stop")


def create_pollers(targets: List[TargetConfig], registry: MetricsRegistry, config: Config,
                   connect: Optional[Callable[..., Any]] = None) -> List[TargetPoller]:
    """
    Open a connection for every target and build its poller.

    Any failure closes the connections opened so far and propagates.

    Raises:
        DSNError: If a target's DSN is malformed
        TargetConnectionError: If a target cannot be reached
    """
    pollers: List[TargetPoller] = []
    try:
        for target in targets:
            connection = open_connection(target, timeout=config.query_timeout, connect=connect)
            pollers.append(TargetPoller(target, connection, registry, config))
    except Exception:
        for poller in pollers:
            poller.connection.close()
        raise
    return pollers
