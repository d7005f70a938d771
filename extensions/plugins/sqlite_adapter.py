#!/usr/bin/env python3
"""
TableCopy SQLite Adapter

SQLite dialect for the copy engine:
- Double quoted identifiers
- Foreign key enforcement deferred to commit with PRAGMA defer_foreign_keys,
  which SQLite honours inside a transaction and resets at commit/rollback
- No TRUNCATE statement: DELETE FROM
- AUTOINCREMENT bookkeeping maintains itself, so no sequence work
"""

import logging
import sqlite3
from pathlib import Path
from typing import List, Tuple

from core.connection import ConnectionHandle
from core.dialect import Dialect, _normalize_type

logger = logging.getLogger(__name__)


class SQLiteDialect(Dialect):
    """SQLite family"""

    name = 'sqlite'
    quote_char = '"'

    def foreign_key_checks_sql(self, enabled: bool) -> str:
        return f"PRAGMA defer_foreign_keys = {'OFF' if enabled else 'ON'}"

    def truncate_sql(self, quoted_table: str) -> str:
        return f"DELETE FROM {quoted_table}"

    def list_tables(self, connection) -> List[str]:
        rows = connection.query("""
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
            AND name NOT LIKE 'sqlite_%'
            ORDER BY name
        """)
        return [row['name'] for row in rows]

    def _table_info(self, connection, table_name: str):
        return connection.query(f"PRAGMA table_info({self.quote_identifier(table_name)})")

    def list_columns(self, connection, table_name: str) -> List[Tuple[str, str]]:
        return [(row['name'], _normalize_type(row['type'])) for row in self._table_info(connection, table_name)]

    def list_primary_key_columns(self, connection, table_name: str) -> List[str]:
        # table_info reports the 1-based position inside the key, 0 otherwise
        keyed = [row for row in self._table_info(connection, table_name) if row['pk']]
        return [row['name'] for row in sorted(keyed, key=lambda row: row['pk'])]


def connect(profile, verbose: bool = False) -> ConnectionHandle:
    """Open a sqlite3 connection for a profile"""
    database = profile.database or ':memory:'
    if database != ':memory:':
        database = str(Path(database).expanduser())
    # Transactions are opened explicitly by the dialect
    connection = sqlite3.connect(database, isolation_level=None, **profile.options)
    logger.info(f"Connected to SQLite {database}")
    return ConnectionHandle(
        connection,
        SQLiteDialect(),
        name=profile.name,
        paramstyle=sqlite3.paramstyle,
        driver_error=sqlite3.Error,
        verbose=verbose,
    )
