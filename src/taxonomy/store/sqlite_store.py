"""
SQLite-based rule store.

Used for local development, the CLI default and tests. A path of ``:memory:``
keeps everything in memory.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, List, Sequence, Union

from .base import SqlRuleStore


logger = logging.getLogger(__name__)


class SqliteRuleStore(SqlRuleStore):
    """
    SQLite implementation of the rule store.

    The single-fallback invariant is enforced by a partial unique index on
    ``is_fallback`` where it equals 1.
    """

    integrity_errors = (sqlite3.IntegrityError,)
    database_errors = (sqlite3.Error,)

    def __init__(self, db_path: Union[str, Path] = ":memory:", auto_init: bool = True):
        """
        Initialize the SQLite rule store.

        Args:
            db_path: Path to the SQLite database file, or ':memory:'
            auto_init: Whether to create tables automatically
        """
        super().__init__()
        self.db_path = str(db_path)
        self.conn = None
        self._connect()

        if auto_init:
            self.init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        logger.debug(f"Connected to SQLite rule store: {self.db_path}")

    def _get_connection(self):
        if self.conn is None:
            self._connect()
        return self.conn

    def _insert(self, cursor, table: str, columns: Sequence[str], values: Sequence[Any]) -> int:
        placeholders = ", ".join("?" for _ in columns)
        cursor.execute(
            f"INSERT INTO {self._table(table)} ({', '.join(columns)}) VALUES ({placeholders})",
            tuple(values),
        )
        return int(cursor.lastrowid)

    def _schema_statements(self) -> List[str]:
        return [
            """
            CREATE TABLE IF NOT EXISTS categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL COLLATE NOCASE UNIQUE,
                description TEXT,
                priority INTEGER NOT NULL DEFAULT 100,
                is_active INTEGER NOT NULL DEFAULT 1,
                is_fallback INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE UNIQUE INDEX IF NOT EXISTS ux_categories_single_fallback
            ON categories (is_fallback) WHERE is_fallback = 1
            """,
            """
            CREATE TABLE IF NOT EXISTS actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                handler_key TEXT NOT NULL,
                description TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS category_actions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category_id INTEGER NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
                action_id INTEGER NOT NULL REFERENCES actions (id) ON DELETE CASCADE,
                execution_order INTEGER NOT NULL DEFAULT 0,
                config TEXT NOT NULL DEFAULT '{}',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (category_id, action_id)
            )
            """,
            """
            CREATE INDEX IF NOT EXISTS ix_category_actions_order
            ON category_actions (category_id, execution_order)
            """,
            """
            CREATE TABLE IF NOT EXISTS matchers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category_id INTEGER NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
                matcher_type TEXT NOT NULL CHECK (matcher_type IN ('domain', 'keyword')),
                pattern TEXT NOT NULL,
                is_exclusion INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """,
            """
            CREATE TABLE IF NOT EXISTS category_aliases (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                alias TEXT NOT NULL UNIQUE,
                category_id INTEGER NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
                confidence_threshold REAL NOT NULL DEFAULT 0.7,
                created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
            """,
        ]

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed SQLite rule store connection")
