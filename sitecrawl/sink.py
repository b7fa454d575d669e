"""
Analytical Sink
Append-only storage for the fact records produced by the extractors.

Every implementation exposes ``insert(table, record)`` and raises SinkError on
failure; the orchestrator treats those failures as per-record and moves on.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List

from .errors import SinkError
from .models import Table

logger = logging.getLogger(__name__)

# Physical table names and their columns, in insert order
TABLE_SCHEMAS: Dict[Table, tuple] = {
    Table.PAGES: ("crawled_pages", (
        ("url", "TEXT"),
        ("meta_title", "TEXT"),
        ("meta_description", "TEXT"),
        ("canonical_url", "TEXT"),
        ("hreflang_links", "TEXT"),
    )),
    Table.RESOURCES: ("crawled_resources", (
        ("page_url", "TEXT"),
        ("resource_url", "TEXT"),
        ("resource_type", "TEXT"),
    )),
    Table.ISSUES: ("crawled_issues", (
        ("page_url", "TEXT"),
        ("issue_type", "TEXT"),
        ("issue_description", "TEXT"),
    )),
    Table.LINKS: ("crawled_links", (
        ("source_url", "TEXT"),
        ("target_url", "TEXT"),
        ("link_text", "TEXT"),
        ("is_internal", "INTEGER"),
    )),
}


def _row_for(table: Table, record) -> dict:
    if record.TABLE is not table:
        raise SinkError(table.value, f"{type(record).__name__} does not belong in this table")
    return record.to_row()


class Sink(ABC):
    """Append-only analytical store."""

    @abstractmethod
    def insert(self, table: Table, record) -> None:
        """Append *record* to *table*. Raises SinkError."""

    def close(self) -> None:
        pass


class MemorySink(Sink):
    """Keeps rows in memory; handy for tests and one-off runs."""

    def __init__(self):
        self._rows: Dict[Table, List[dict]] = defaultdict(list)
        self._lock = Lock()

    def insert(self, table: Table, record) -> None:
        row = _row_for(table, record)
        with self._lock:
            self._rows[table].append(row)
        logger.debug(f"[SINK] Inserted 1 row into {table.value}")

    def rows(self, table: Table) -> List[dict]:
        with self._lock:
            return list(self._rows[table])


class SQLiteSink(Sink):
    """
    SQLite-backed sink. The schema is created on construction, so a fresh
    database file is ready to receive rows immediately.
    """

    def __init__(self, path: str = "crawl.db"):
        self.path = path
        self._lock = Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False)
            self.ensure_tables()
        except sqlite3.Error as e:
            raise SinkError("*", f"Cannot open SQLite database {path}: {e}") from e

    def ensure_tables(self) -> None:
        with self._lock, self._conn:
            for name, columns in TABLE_SCHEMAS.values():
                cols = ", ".join(f"{col} {kind}" for col, kind in columns)
                self._conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {name} "
                    f"(id INTEGER PRIMARY KEY AUTOINCREMENT, {cols}, crawled_at TEXT NOT NULL)"
                )
        logger.info(f"[SINK] Tables ready in {self.path}")

    def insert(self, table: Table, record) -> None:
        row = _row_for(table, record)
        name, columns = TABLE_SCHEMAS[table]
        col_names = [col for col, _ in columns]
        values = [row[col] for col in col_names]
        values.append(datetime.now(timezone.utc).isoformat())
        placeholders = ", ".join("?" for _ in values)
        sql = f"INSERT INTO {name} ({', '.join(col_names)}, crawled_at) VALUES ({placeholders})"
        try:
            with self._lock, self._conn:
                self._conn.execute(sql, values)
        except sqlite3.Error as e:
            raise SinkError(table.value, str(e)) from e
        logger.debug(f"[SINK] Inserted 1 row into {name}")

    def fetch_all(self, table: Table) -> List[dict]:
        """Read back every row of *table*, oldest first."""
        name, columns = TABLE_SCHEMAS[table]
        col_names = [col for col, _ in columns] + ["crawled_at"]
        with self._lock:
            cursor = self._conn.execute(f"SELECT {', '.join(col_names)} FROM {name} ORDER BY id")
            return [dict(zip(col_names, values)) for values in cursor.fetchall()]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
