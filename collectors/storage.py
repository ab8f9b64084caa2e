"""Table and index size collector backed by information_schema.tables"""
from typing import List, Sequence

from metrics.models import INDEX_SIZE, TABLE_ROWS, TABLE_SIZE
from .base import BaseCollector, Update, text_or_default


STORAGE_QUERY = (
    "SELECT table_schema, table_name, table_rows, data_length, index_length "
    "FROM information_schema.tables "
    "ORDER BY data_length DESC, index_length DESC"
)


def _number(value) -> float:
    # NULL sizes are reported as zero
    if value is None:
        return 0.0
    return float(value)


class StorageCollector(BaseCollector):
    """Data size, index size and row count of every table"""

    query = STORAGE_QUERY

    def __init__(self, target, connection, registry, interval):
        super().__init__(target, connection, registry, interval,
                         name="storage", help_text="Table data size, index size and row count")

    def build_updates(self, rows: Sequence[tuple]) -> List[Update]:
        updates: List[Update] = []
        skipped = 0

        for row in rows:
            try:
                schema, table, table_rows, data_length, index_length = row
                if schema is None or table is None:
                    raise ValueError("table_schema and table_name must not be NULL")
                labels = self.table_labels(text_or_default(schema, ""), text_or_default(table, ""))
                row_updates = [
                    (TABLE_SIZE.name, labels, _number(data_length)),
                    (INDEX_SIZE.name, labels, _number(index_length)),
                    (TABLE_ROWS.name, labels, _number(table_rows)),
                ]
            except (TypeError, ValueError) as e:
                skipped += 1
                self.logger.debug("Skipping unreadable table row", error=str(e), event_type="row_skipped")
                continue
            updates.extend(row_updates)

        if skipped:
            self.logger.warning("Storage rows skipped", skipped=skipped, event_type="row_skipped")
        return updates
