"""Query collectors for MySQL targets."""
from typing import List

from .base import BaseCollector
from .connections import ConnectionCountCollector
from .processlist import ProcessListCollector, decode_row
from .storage import StorageCollector


def build_collectors(target, connection, registry, config) -> List[BaseCollector]:
    """Collectors for one target with their configured intervals"""
    return [
        StorageCollector(target, connection, registry, config.storage_interval),
        ProcessListCollector(target, connection, registry, config.storage_interval),
        ConnectionCountCollector(target, connection, registry, config.connection_interval),
    ]


__all__ = [
    'BaseCollector',
    'ConnectionCountCollector',
    'ProcessListCollector',
    'StorageCollector',
    'build_collectors',
    'decode_row',
]
