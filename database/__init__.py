"""Database access for target pollers."""
from .connection import (
    DatabaseConnection,
    DSNError,
    TargetConnectionError,
    open_connection,
    parse_dsn,
)

__all__ = [
    'DatabaseConnection',
    'DSNError',
    'TargetConnectionError',
    'open_connection',
    'parse_dsn',
]
