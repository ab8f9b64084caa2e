"""Connection count collector backed by information_schema.processlist"""
from typing import List, Sequence

from metrics.models import CONN_COUNT, UNKNOWN_DB, UNKNOWN_USER
from .base import BaseCollector, Update, text_or_default


TOP_CONNECTION_GROUPS = 20

CONNECTION_QUERY = (
    "SELECT db, user, count(*) "
    "FROM information_schema.processlist "
    "GROUP BY db, user "
    "ORDER BY count(*) DESC "
    f"LIMIT {TOP_CONNECTION_GROUPS}"
)


class ConnectionCountCollector(BaseCollector):
    """Connections of the busiest user and database pairs"""

    query = CONNECTION_QUERY

    def __init__(self, target, connection, registry, interval):
        super().__init__(target, connection, registry, interval,
                         name="connections", help_text="Top connection counts per user and database")

    def build_updates(self, rows: Sequence[tuple]) -> List[Update]:
        updates: List[Update] = []

        for row in rows[:TOP_CONNECTION_GROUPS]:
            try:
                db, user, count = row
                value = float(count)
            except (TypeError, ValueError) as e:
                self.logger.warning("Skipping unreadable connection count row", error=str(e), event_type="row_skipped")
                continue

            labels = self.session_labels(text_or_default(user, UNKNOWN_USER), text_or_default(db, UNKNOWN_DB))
            updates.append((CONN_COUNT.name, labels, value))

        return updates
