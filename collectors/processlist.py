"""SHOW PROCESSLIST collector.

Servers return one of two row layouts:

- the classic eight columns ``Id, User, Host, db, Command, Time, State, Info``
- the same eight plus a trailing ``Progress`` column (MariaDB, Percona)

Each row is decoded into one of the two variants, trying the classic layout
first. Rows that fit neither are skipped and not counted.
"""
from collections import Counter
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from metrics.models import PROCESSLIST_COUNT, UNKNOWN_DB, UNKNOWN_USER
from .base import BaseCollector, Update, text_or_default


PROCESSLIST_QUERY = "SHOW PROCESSLIST"


class RowDecodeError(ValueError):
    """Row does not match the layout being decoded"""


def _optional_text(value) -> Optional[str]:
    if value is None:
        return None
    return text_or_default(value, "")


@dataclass(frozen=True)
class ProcessListRow:
    """Classic eight-column processlist row"""
    id: int
    user: Optional[str]
    host: Optional[str]
    db: Optional[str]
    command: Optional[str]
    time: object
    state: Optional[str]
    info: Optional[str]

    width = 8

    @classmethod
    def decode(cls, row: Sequence) -> "ProcessListRow":
        if len(row) != cls.width:
            raise RowDecodeError(f"expected {cls.width} columns, got {len(row)}")
        return cls(*cls._decode_common(row))

    @staticmethod
    def _decode_common(row: Sequence) -> tuple:
        try:
            process_id = int(row[0])
        except (TypeError, ValueError):
            raise RowDecodeError(f"invalid process id: {row[0]!r}")
        return (
            process_id,
            _optional_text(row[1]),
            _optional_text(row[2]),
            _optional_text(row[3]),
            _optional_text(row[4]),
            row[5],
            _optional_text(row[6]),
            _optional_text(row[7]),
        )

    @property
    def group_key(self) -> Tuple[str, str]:
        """(user, db) with sentinels for NULLs"""
        return (self.user if self.user is not None else UNKNOWN_USER,
                self.db if self.db is not None else UNKNOWN_DB)


@dataclass(frozen=True)
class ProgressProcessListRow(ProcessListRow):
    """Nine-column processlist row with a trailing Progress column"""
    progress: Optional[float] = None

    width = 9

    @classmethod
    def decode(cls, row: Sequence) -> "ProgressProcessListRow":
        if len(row) != cls.width:
            raise RowDecodeError(f"expected {cls.width} columns, got {len(row)}")
        progress = row[8]
        if progress is not None:
            try:
                progress = float(progress)
            except (TypeError, ValueError):
                raise RowDecodeError(f"invalid progress: {progress!r}")
        return cls(*cls._decode_common(row), progress=progress)


ROW_VARIANTS = (ProcessListRow, ProgressProcessListRow)

AnyProcessListRow = Union[ProcessListRow, ProgressProcessListRow]


def decode_row(row: Sequence) -> Optional[AnyProcessListRow]:
    """Decode a row into the first matching variant, or None"""
    for variant in ROW_VARIANTS:
        try:
            return variant.decode(row)
        except RowDecodeError:
            continue
    return None


def count_sessions(rows: Sequence[Sequence]) -> Tuple[Counter, int]:
    """Count decodable rows per (user, db); returns the counter and the number skipped"""
    counts: Counter = Counter()
    skipped = 0
    for row in rows:
        decoded = decode_row(row)
        if decoded is None:
            skipped += 1
            continue
        counts[decoded.group_key] += 1
    return counts, skipped


class ProcessListCollector(BaseCollector):
    """Sessions grouped by user and database"""

    query = PROCESSLIST_QUERY

    def __init__(self, target, connection, registry, interval):
        super().__init__(target, connection, registry, interval,
                         name="processlist", help_text="Processlist sessions per user and database")

    def build_updates(self, rows: Sequence[tuple]) -> List[Update]:
        counts, skipped = count_sessions(rows)
        if skipped:
            self.logger.warning("Skipped undecodable processlist rows", skipped=skipped, event_type="row_skipped")

        return [
            (PROCESSLIST_COUNT.name, self.session_labels(user, db), float(count))
            for (user, db), count in counts.items()
        ]
