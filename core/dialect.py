#!/usr/bin/env python3
"""
TableCopy Dialect Adapter

Per database family SQL idioms: identifier quoting, foreign key check
toggling, truncate semantics, sequence reconciliation, statement parameter
limits and value fixups. One Dialect instance is chosen per connection when
the connection is set up; the engine never branches on dialect names.

Supported families live in extensions/plugins:
- MySQL / MariaDB (mysql_adapter)
- PostgreSQL (postgresql_adapter)
- SQLite (sqlite_adapter)

Anything else falls back to GenericDialect, which quotes with double quotes,
introspects through information_schema and skips operations it has no
concept of.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from core.schema import ColumnDescriptor, TableDescriptor

logger = logging.getLogger(__name__)

# Upper bound of bound parameters in one statement
MAX_STATEMENT_PARAMETERS = 65000


@dataclass(frozen=True)
class SequenceUpdate:
    """Result of moving one sequence to the max value of its owning column"""
    sequence: str
    schema: str
    table: str
    column: str
    value: Optional[int]


class Dialect:
    """Base dialect: ANSI quoting, information_schema introspection, no-op extras"""

    name = 'generic'
    quote_char = '"'
    strips_nul_characters = False
    max_statement_parameters = MAX_STATEMENT_PARAMETERS

    # ----- identifiers -----

    def quote_identifier(self, name: str) -> str:
        q = self.quote_char
        return f"{q}{name.replace(q, q + q)}{q}"

    def quote_columns(self, columns) -> List[str]:
        return [self.quote_identifier(column) for column in columns]

    # ----- transactions -----

    def begin(self, connection):
        """Open a transaction on the connection"""
        connection.execute("BEGIN")

    # ----- foreign key checks -----

    def foreign_key_checks_sql(self, enabled: bool) -> Optional[str]:
        """Statement that switches FK checks, or None when the family has no such concept"""
        return None

    def toggle_foreign_key_checks(self, connection, enabled: bool):
        sql = self.foreign_key_checks_sql(enabled)
        if sql is None:
            logger.debug(f"{self.name}: foreign key toggle not supported, skipped")
            return
        connection.execute(sql)

    # ----- truncate -----

    def truncate_sql(self, quoted_table: str) -> str:
        return f"TRUNCATE TABLE {quoted_table}"

    def truncate(self, connection, quoted_table: str):
        connection.execute(self.truncate_sql(quoted_table))

    # ----- statement sizing -----

    def rows_per_chunk(self, column_count: int) -> int:
        """Rows that fit in one multi-row INSERT without exceeding the parameter cap"""
        if column_count <= 0:
            return 1
        return max(1, self.max_statement_parameters // column_count)

    def limit_clause(self, limit: int, offset: Optional[int] = None) -> str:
        clause = f" LIMIT {int(limit)}"
        if offset is not None:
            clause += f" OFFSET {int(offset)}"
        return clause

    # ----- sequences -----

    def reconcile_sequences(self, connection) -> List[SequenceUpdate]:
        """Align sequences with the data just loaded; no-op unless overridden"""
        return []

    # ----- values -----

    def sanitize_value(self, value: Any, column: Optional[ColumnDescriptor] = None) -> Any:
        """
        Fix values the destination would reject.

        - Empty strings bound to JSON columns become the empty object '{}'
        - NUL characters are stripped from non-empty strings when the
          destination cannot carry them
        """
        if not isinstance(value, str):
            return value
        if value == '':
            if column is not None and column.is_json:
                return '{}'
            return value
        if self.strips_nul_characters:
            return value.replace('\x00', '')
        return value

    def sanitize_row(self, row: Dict[str, Any], table: TableDescriptor) -> Dict[str, Any]:
        """Apply sanitize_value with the destination column of every value"""
        return {name: self.sanitize_value(value, table.column(name)) for name, value in row.items()}

    # ----- introspection -----

    def list_tables(self, connection) -> List[str]:
        rows = connection.query("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
            AND table_schema NOT IN ('information_schema', 'pg_catalog')
            ORDER BY table_name
        """)
        return [_first(row) for row in rows]

    def list_columns(self, connection, table_name: str) -> List[Tuple[str, str]]:
        p = connection.placeholder
        rows = connection.query(f"""
            SELECT column_name, data_type
            FROM information_schema.columns
            WHERE table_name = {p}
            ORDER BY ordinal_position
        """, (table_name,))
        return [(_value(row, 'column_name'), _normalize_type(_value(row, 'data_type'))) for row in rows]

    def list_primary_key_columns(self, connection, table_name: str) -> List[str]:
        p = connection.placeholder
        rows = connection.query(f"""
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
                AND tc.table_name = kcu.table_name
            WHERE tc.constraint_type = 'PRIMARY KEY'
            AND tc.table_name = {p}
            ORDER BY kcu.ordinal_position
        """, (table_name,))
        return [_value(row, 'column_name') for row in rows]

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"


class GenericDialect(Dialect):
    """Fallback for database families without a dedicated adapter"""

    def __init__(self, name: str = 'generic'):
        self.name = name


def _first(row: Dict[str, Any]) -> Any:
    return next(iter(row.values()))


def _value(row: Dict[str, Any], key: str) -> Any:
    """Read a column regardless of the case the server reports it in"""
    if key in row:
        return row[key]
    return row.get(key.upper())


def _normalize_type(type_name: Optional[str]) -> str:
    return (type_name or '').strip().lower()


_ALIASES = {
    'mysql': 'mysql',
    'mariadb': 'mysql',
    'postgresql': 'postgresql',
    'postgres': 'postgresql',
    'pgsql': 'postgresql',
    'sqlite': 'sqlite',
    'sqlite3': 'sqlite',
}


def get_dialect(name: str) -> Dialect:
    """Return the dialect for a driver or URL scheme name"""
    key = (name or '').split('+')[0].lower()
    family = _ALIASES.get(key)
    if family == 'mysql':
        from extensions.plugins.mysql_adapter import MySQLDialect
        return MySQLDialect()
    if family == 'postgresql':
        from extensions.plugins.postgresql_adapter import PostgreSQLDialect
        return PostgreSQLDialect()
    if family == 'sqlite':
        from extensions.plugins.sqlite_adapter import SQLiteDialect
        return SQLiteDialect()
    logger.warning(f"No dedicated dialect for '{name}', using generic SQL")
    return GenericDialect(key or 'generic')
